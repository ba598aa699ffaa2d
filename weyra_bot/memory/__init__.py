from .history import ConversationHistory
from .postgres_store import PostgresMemoryStore
from .store import MemoryStore

__all__ = ["ConversationHistory", "MemoryStore", "PostgresMemoryStore"]
