"""Document repository implementations (memory and SQLite)."""

from src.providers.repository.memory_repository import MemoryDocumentRepository
from src.providers.repository.sqlite_repository import SQLiteDocumentRepository

__all__ = ["MemoryDocumentRepository", "SQLiteDocumentRepository"]
