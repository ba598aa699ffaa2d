from .channels import MemoryChannelsMixin
from .history import MemoryHistoryMixin
from .notes import MemoryNotesMixin
from .schema import MemorySchemaMixin

__all__ = [
    "MemorySchemaMixin",
    "MemoryHistoryMixin",
    "MemoryNotesMixin",
    "MemoryChannelsMixin",
]
