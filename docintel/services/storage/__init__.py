"""
Storage abstraction layer for plug-and-play record storage.
Supports an indexed JSON file store, a flat key-value file store and an
in-memory store behind one repository contract with primary/fallback failover.
"""
from .abstraction import StorageAbstraction
from .base import StorageRepository
from .document_store import DocumentStore
from .indexed_repository import IndexedFileRepository
from .keyvalue_repository import KeyValueFileRepository
from .memory_repository import MemoryRepository
from .providers import (
    IndexedStorageProvider,
    KeyValueStorageProvider,
    MemoryStorageProvider,
    StorageProvider,
    create_providers,
)

__all__ = [
    "StorageRepository",
    "StorageAbstraction",
    "DocumentStore",
    "IndexedFileRepository",
    "KeyValueFileRepository",
    "MemoryRepository",
    "StorageProvider",
    "IndexedStorageProvider",
    "KeyValueStorageProvider",
    "MemoryStorageProvider",
    "create_providers",
]
