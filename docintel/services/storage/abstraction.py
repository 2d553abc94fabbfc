"""
Storage abstraction layer with automatic failover.

Wraps a primary repository and an optional fallback repository, selected by
provider priority and runtime availability. Writes go to the primary and are
mirrored to the fallback; reads are served by the primary and fall through to
the fallback only when the primary fails. A primary hit is authoritative:
there is no reconciliation between the two copies.
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from ...api.exceptions import StorageError
from ...core.logging_config import get_logger
from ...models.storage import (
    BackupSnapshot,
    IntegrityResult,
    StorageCapabilities,
    StorageItem,
    StorageQuery,
    StorageStats,
    StorageType,
    StoredRecord,
    StoreOptions,
)
from .base import StorageRepository
from .providers import StorageProvider, create_providers

logger = get_logger(__name__)

T = TypeVar("T")


class StorageAbstraction(StorageRepository):
    """
    Primary/fallback storage with the repository contract.

    Args:
        providers: Candidate providers (defaults to the configured backends)
        primary: Pre-built primary repository (skips provider selection)
        fallback: Pre-built fallback repository, used together with primary
    """

    source_name = "Abstraction"

    def __init__(
        self,
        providers: Optional[List[StorageProvider]] = None,
        primary: Optional[StorageRepository] = None,
        fallback: Optional[StorageRepository] = None
    ):
        super().__init__()
        self.providers = sorted(
            providers if providers is not None else create_providers(),
            key=lambda provider: provider.priority,
            reverse=True,
        )
        self.primary: Optional[StorageRepository] = primary
        self.fallback: Optional[StorageRepository] = fallback
        self._explicit = primary is not None
        self._primary_provider: Optional[StorageProvider] = None
        self._fallback_provider: Optional[StorageProvider] = None

    @property
    def primary_type(self) -> Optional[StorageType]:
        return self.primary.storage_type if self.primary else None

    @property
    def fallback_type(self) -> Optional[StorageType]:
        return self.fallback.storage_type if self.fallback else None

    def get_capabilities(self) -> Dict[str, Optional[StorageCapabilities]]:
        """Capabilities of the selected backends (None for repositories passed in directly)."""
        return {
            "primary": self._primary_provider.get_capabilities() if self._primary_provider else None,
            "fallback": self._fallback_provider.get_capabilities() if self._fallback_provider else None,
        }

    # Lifecycle
    async def initialize(self) -> None:
        """
        Select and initialize the primary and fallback repositories.

        Raises:
            StorageError: If no provider can supply a primary repository
        """
        if self._initialized:
            return

        if self._explicit:
            await self.primary.initialize()
            if self.fallback is not None:
                await self.fallback.initialize()
            self._initialized = True
            return

        primary_provider = None
        for provider in self.providers:
            try:
                if await provider.is_available():
                    repository = provider.create_repository()
                    await repository.initialize()
                    self.primary = repository
                    primary_provider = provider
                    self._primary_provider = provider
                    logger.info(f"Primary storage initialized: {provider.type.value}")
                    break
            except Exception as e:
                logger.warning(f"Failed to initialize {provider.type.value} storage: {e}")

        if self.primary is None:
            raise StorageError("No storage provider available")

        for provider in self.providers:
            if provider is primary_provider or provider.type in (primary_provider.type, StorageType.MEMORY):
                continue
            try:
                if await provider.is_available():
                    repository = provider.create_repository()
                    await repository.initialize()
                    self.fallback = repository
                    self._fallback_provider = provider
                    logger.info(f"Fallback storage initialized: {provider.type.value}")
                    break
            except Exception as e:
                logger.warning(f"Fallback storage initialization failed ({provider.type.value}): {e}")

        self._initialized = True

    async def shutdown(self) -> None:
        for repository in (self.primary, self.fallback):
            if repository is not None:
                try:
                    await repository.shutdown()
                except Exception as e:
                    logger.error(f"Error shutting down {repository.source_name} storage: {e}")
        self._initialized = False

    async def is_healthy(self) -> bool:
        if self.primary is None:
            return False
        try:
            return await self.primary.is_healthy()
        except Exception:
            return False

    # Failover helpers
    def _require_primary(self) -> StorageRepository:
        if self.primary is None:
            raise StorageError("Primary storage not available")
        return self.primary

    async def _write(self, operation: str, call: Callable[[StorageRepository], Awaitable[T]]) -> T:
        """Write to primary and mirror to fallback; use fallback alone when primary fails."""
        try:
            result = await call(self._require_primary())
        except Exception as primary_error:
            logger.error(f"Primary storage {operation} failed: {primary_error}")
            if self.fallback is None:
                raise
            try:
                result = await call(self.fallback)
            except Exception as fallback_error:
                logger.error(f"Fallback storage {operation} also failed: {fallback_error}")
                raise primary_error
            logger.info(f"Used fallback storage for {operation}")
            return result

        if self.fallback is not None:
            try:
                await call(self.fallback)
            except Exception as e:
                logger.warning(f"Fallback storage {operation} failed: {e}")
        return result

    async def _read(
        self,
        operation: str,
        call: Callable[[StorageRepository], Awaitable[T]],
        default: Callable[[], T]
    ) -> T:
        """Read from primary, then fallback (degraded mode), then return the default."""
        try:
            return await call(self._require_primary())
        except Exception as primary_error:
            logger.warning(f"Primary storage {operation} failed: {primary_error}")

        if self.fallback is not None:
            try:
                result = await call(self.fallback)
                logger.warning(f"Degraded mode: used fallback storage for {operation}")
                return result
            except Exception as fallback_error:
                logger.error(f"Fallback storage {operation} also failed: {fallback_error}")
        return default()

    async def _both(self, operation: str, call: Callable[[StorageRepository], Awaitable[Any]]) -> None:
        """Apply to both repositories; raise the primary's error only if both fail."""
        errors: List[Exception] = []
        attempted = 0
        for repository in (self.primary, self.fallback):
            if repository is None:
                continue
            attempted += 1
            try:
                await call(repository)
            except Exception as e:
                logger.error(f"{repository.source_name} storage {operation} failed: {e}")
                errors.append(e)
        if errors and len(errors) == attempted:
            raise errors[0]

    # CRUD
    async def store(self, key: str, value: Any, options: Optional[StoreOptions] = None) -> StoredRecord:
        return await self._write("store", lambda repo: repo.store(key, value, options))

    async def retrieve(self, key: str) -> Optional[StoredRecord]:
        return await self._read("retrieve", lambda repo: repo.retrieve(key), lambda: None)

    async def remove(self, key: str) -> None:
        await self._both("remove", lambda repo: repo.remove(key))

    async def exists(self, key: str) -> bool:
        return await self._read("exists", lambda repo: repo.exists(key), lambda: False)

    # Batch operations
    async def store_batch(self, items: List[StorageItem]) -> List[StoredRecord]:
        return await self._write("batch store", lambda repo: repo.store_batch(items))

    async def retrieve_batch(self, keys: List[str]) -> List[Optional[StoredRecord]]:
        return await self._read(
            "batch retrieve", lambda repo: repo.retrieve_batch(keys), lambda: [None for _ in keys]
        )

    async def remove_batch(self, keys: List[str]) -> None:
        await self._both("batch remove", lambda repo: repo.remove_batch(keys))

    # Queries
    async def retrieve_by_category(self, category: str) -> List[StoredRecord]:
        return await self._read("category retrieve", lambda repo: repo.retrieve_by_category(category), list)

    async def retrieve_all(self) -> List[StoredRecord]:
        return await self._read("retrieve all", lambda repo: repo.retrieve_all(), list)

    async def search(self, query: StorageQuery) -> List[StoredRecord]:
        return await self._read("search", lambda repo: repo.search(query), list)

    async def _replace_all(self, records: List[StoredRecord]) -> None:
        await self._both("replace", lambda repo: repo._replace_all(records))

    # Backup
    async def backup(self) -> BackupSnapshot:
        """
        Snapshot the primary, or the fallback if the primary fails.

        Raises:
            StorageError: If neither repository can produce a snapshot
        """
        try:
            return await self._require_primary().backup()
        except Exception as primary_error:
            logger.warning(f"Primary backup failed: {primary_error}")
            if self.fallback is None:
                raise StorageError(f"Backup failed: {primary_error}", details=primary_error) from primary_error
            try:
                snapshot = await self.fallback.backup()
            except Exception as fallback_error:
                raise StorageError(f"Backup failed: {primary_error}", details=fallback_error) from primary_error
            logger.info("Used fallback storage for backup")
            return snapshot

    async def restore(self, snapshot: Union[BackupSnapshot, Dict[str, Any]]) -> None:
        await self._both("restore", lambda repo: repo.restore(snapshot))

    # Maintenance
    async def cleanup(self) -> None:
        for repository in (self.primary, self.fallback):
            if repository is None:
                continue
            try:
                await repository.cleanup()
            except Exception as e:
                logger.error(f"{repository.source_name} storage cleanup failed: {e}")

    async def get_stats(self) -> StorageStats:
        try:
            return await self._require_primary().get_stats()
        except Exception as e:
            logger.warning(f"Could not read storage stats: {e}")
            return StorageStats()

    async def validate_integrity(self) -> IntegrityResult:
        try:
            return await self._require_primary().validate_integrity()
        except Exception as e:
            return IntegrityResult(valid=False, errors=[str(e)])
