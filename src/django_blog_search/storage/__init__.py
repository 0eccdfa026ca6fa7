from .base import StorageProvider
from .inmemory import InMemoryProvider
from .pgvector import PgVectorProvider

__all__ = [
    "StorageProvider",
    "InMemoryProvider",
    "PgVectorProvider",
]
