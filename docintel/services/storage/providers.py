"""
Storage providers.

A provider knows whether its backend can run in the current environment,
how to build a repository for it and what the backend can do. The
abstraction layer ranks providers by priority.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Type

from ...core.config import STORAGE_BACKENDS, STORAGE_DIR
from ...core.logging_config import get_logger
from ...models.storage import StorageCapabilities, StorageType
from .base import StorageRepository
from .indexed_repository import IndexedFileRepository
from .keyvalue_repository import KeyValueFileRepository
from .memory_repository import MemoryRepository

logger = get_logger(__name__)


def _directory_writable(directory: Path) -> bool:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        probe = directory / ".write_test"
        probe.write_text("test", encoding="utf-8")
        probe.unlink()
        return True
    except OSError as e:
        logger.warning(f"Storage directory {directory} is not writable: {e}")
        return False


class StorageProvider(ABC):
    """Factory and capability descriptor for one storage backend."""

    type: StorageType
    priority: int

    @abstractmethod
    async def is_available(self) -> bool:
        pass

    @abstractmethod
    def create_repository(self) -> StorageRepository:
        pass

    @abstractmethod
    def get_capabilities(self) -> StorageCapabilities:
        pass


class IndexedStorageProvider(StorageProvider):
    type = StorageType.INDEXED
    priority = 100

    def __init__(self, root_dir: Optional[Path] = None):
        self.data_dir = Path(root_dir or STORAGE_DIR) / "indexed"

    async def is_available(self) -> bool:
        return _directory_writable(self.data_dir)

    def create_repository(self) -> StorageRepository:
        return IndexedFileRepository(self.data_dir)

    def get_capabilities(self) -> StorageCapabilities:
        return StorageCapabilities(
            persistent=True,
            native_indexing=True,
            max_size_bytes=250 * 1024 * 1024,
            supports_transactions=True,
        )


class KeyValueStorageProvider(StorageProvider):
    type = StorageType.KEYVALUE
    priority = 50

    def __init__(self, root_dir: Optional[Path] = None):
        self.data_dir = Path(root_dir or STORAGE_DIR) / "keyvalue"

    async def is_available(self) -> bool:
        return _directory_writable(self.data_dir)

    def create_repository(self) -> StorageRepository:
        return KeyValueFileRepository(self.data_dir)

    def get_capabilities(self) -> StorageCapabilities:
        return StorageCapabilities(
            persistent=True,
            native_indexing=False,
            max_size_bytes=10 * 1024 * 1024,
            supports_transactions=False,
        )


class MemoryStorageProvider(StorageProvider):
    type = StorageType.MEMORY
    priority = 10

    def __init__(self, root_dir: Optional[Path] = None):
        pass

    async def is_available(self) -> bool:
        return True

    def create_repository(self) -> StorageRepository:
        return MemoryRepository()

    def get_capabilities(self) -> StorageCapabilities:
        return StorageCapabilities(
            persistent=False,
            native_indexing=False,
            max_size_bytes=50 * 1024 * 1024,
            supports_transactions=False,
        )


PROVIDER_CLASSES: Dict[str, Type[StorageProvider]] = {
    StorageType.INDEXED.value: IndexedStorageProvider,
    StorageType.KEYVALUE.value: KeyValueStorageProvider,
    StorageType.MEMORY.value: MemoryStorageProvider,
}


def create_providers(
    backend_names: Optional[List[str]] = None,
    root_dir: Optional[Path] = None
) -> List[StorageProvider]:
    """
    Build providers for the configured backends.

    Args:
        backend_names: Backend names (defaults to STORAGE_BACKENDS)
        root_dir: Root directory for file-based backends (defaults to STORAGE_DIR)

    Returns:
        Providers in configuration order
    """
    providers = []
    for name in backend_names if backend_names is not None else STORAGE_BACKENDS:
        provider_class = PROVIDER_CLASSES.get(name.lower())
        if provider_class is None:
            logger.warning(f"Unknown storage backend '{name}', skipping")
            continue
        providers.append(provider_class(root_dir))
    return providers
