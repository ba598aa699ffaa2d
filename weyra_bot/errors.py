from __future__ import annotations


class WeyraError(Exception):
    """Base class for errors raised by the dialogue core."""


class ToolError(WeyraError):
    """A tool call could not be completed; the message is fed back to the model."""


class ValidationError(ToolError):
    pass


class UnknownTool(ToolError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ConfirmationRequired(ToolError):
    pass


class RateLimited(ToolError):
    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(
            f"Please wait {retry_after_seconds} seconds before sending multiple messages again."
        )
        self.retry_after_seconds = retry_after_seconds


class NotInServer(ToolError):
    def __init__(self, message: str = "This command can only be used in a server") -> None:
        super().__init__(message)


class UpstreamFailure(ToolError):
    """A model, platform, weather or store call failed."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
