from .addressing_mixin import AddressingMixin
from .message_mixin import MessageMixin

__all__ = [
    "AddressingMixin",
    "MessageMixin",
]
