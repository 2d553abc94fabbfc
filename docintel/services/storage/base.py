"""
Abstract base class for storage repositories.
All storage backends must inherit from this class.

Backends implement the primitive operations (lifecycle, CRUD, full scan,
bulk replace, maintenance). Batch operations, structured search, backup
and restore are built on top of those primitives here, so every backend
produces the same snapshot format.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ...api.exceptions import StorageError
from ...core.logging_config import get_logger
from ...models.storage import (
    BackupMetadata,
    BackupSnapshot,
    IntegrityResult,
    StorageItem,
    StorageQuery,
    StorageStats,
    StorageType,
    StoredRecord,
    StoreOptions,
)

logger = get_logger(__name__)


def build_record(
    key: str,
    value: Any,
    options: Optional[StoreOptions] = None,
    existing: Optional[StoredRecord] = None
) -> StoredRecord:
    """
    Wrap a value in the storage envelope.

    Overwriting an existing key keeps its creation time and bumps the version.
    """
    options = options or StoreOptions()
    now = datetime.now()
    return StoredRecord(
        key=key,
        value=value,
        category=options.category or "general",
        service_id=options.service_id or "system",
        created=existing.created if existing else now,
        last_modified=now,
        accessed=now,
        is_default=options.is_default,
        is_encrypted=False,
        version=existing.version + 1 if existing else 1,
        tags=options.tags,
        notes=options.notes,
    )


def record_problem(key: str, record: StoredRecord) -> Optional[str]:
    """Describe what is wrong with a record, or None if it is valid."""
    if not record.key or record.key != key:
        return f"Record key mismatch: stored as {key} but record key is {record.key}"
    if not record.category:
        return f"Invalid category for record: {key}"
    if not record.service_id:
        return f"Invalid service_id for record: {key}"
    return None


def matches_query(record: StoredRecord, query: StorageQuery) -> bool:
    """Structured search predicate over the envelope. The value is never inspected."""
    if query.categories and record.category not in query.categories:
        return False
    if query.services and record.service_id not in query.services:
        return False
    if query.tags and not (record.tags and any(tag in record.tags for tag in query.tags)):
        return False
    if query.text:
        text = query.text.lower()
        if not (
            text in record.key.lower()
            or (record.notes and text in record.notes.lower())
            or (record.tags and any(text in tag.lower() for tag in record.tags))
        ):
            return False
    if query.modified_after and record.last_modified < query.modified_after:
        return False
    if query.modified_before and record.last_modified > query.modified_before:
        return False
    return True


class StorageRepository(ABC):
    """
    Abstract interface for record storage.
    All backends implement these methods.
    This allows plug-and-play storage support without changing business logic.
    """

    storage_type: StorageType
    source_name: str = "Storage"

    def __init__(self):
        self._initialized = False
        self._last_cleanup: Optional[datetime] = None

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise StorageError(f"{self.source_name} repository not initialized")

    # Lifecycle
    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (load files, build indexes)."""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """Flush and release the backend."""
        pass

    async def is_healthy(self) -> bool:
        return self._initialized

    # CRUD
    @abstractmethod
    async def store(self, key: str, value: Any, options: Optional[StoreOptions] = None) -> StoredRecord:
        """Create or overwrite a record."""
        pass

    @abstractmethod
    async def retrieve(self, key: str) -> Optional[StoredRecord]:
        """Get a record by key (a copy), or None."""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete a record. Removing a missing key is a no-op."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def retrieve_all(self) -> List[StoredRecord]:
        """Every stored record (copies)."""
        pass

    @abstractmethod
    async def _replace_all(self, records: List[StoredRecord]) -> None:
        """Drop every record and write the given envelopes unchanged."""
        pass

    # Maintenance
    @abstractmethod
    async def cleanup(self) -> None:
        pass

    @abstractmethod
    async def get_stats(self) -> StorageStats:
        pass

    @abstractmethod
    async def validate_integrity(self) -> IntegrityResult:
        pass

    # Batch operations
    async def store_batch(self, items: List[StorageItem]) -> List[StoredRecord]:
        self._require_initialized()
        return [await self.store(item.key, item.value, item.options) for item in items]

    async def retrieve_batch(self, keys: List[str]) -> List[Optional[StoredRecord]]:
        self._require_initialized()
        return [await self.retrieve(key) for key in keys]

    async def remove_batch(self, keys: List[str]) -> None:
        self._require_initialized()
        for key in keys:
            await self.remove(key)

    # Queries
    async def retrieve_by_category(self, category: str) -> List[StoredRecord]:
        return [record for record in await self.retrieve_all() if record.category == category]

    async def search(self, query: StorageQuery) -> List[StoredRecord]:
        """
        Filter records by category, service, tags, text and modification date.

        Args:
            query: Structured query (all supplied criteria must match)

        Returns:
            Matching records after offset/limit
        """
        records = [record for record in await self.retrieve_all() if matches_query(record, query)]
        if query.offset:
            records = records[query.offset:]
        if query.limit:
            records = records[:query.limit]
        return records

    # Backup
    async def backup(self) -> BackupSnapshot:
        """Snapshot every record in the versioned backup format."""
        records = await self.retrieve_all()
        return BackupSnapshot(
            configurations=records,
            schemas=[],
            metadata=BackupMetadata(
                source=self.source_name,
                total_items=len(records),
                categories=sorted({record.category for record in records}),
                services=sorted({record.service_id for record in records}),
            ),
        )

    async def restore(self, snapshot: Union[BackupSnapshot, Dict[str, Any]]) -> None:
        """
        Replace the repository content with a snapshot.

        Raises:
            StorageError: If the snapshot is malformed
        """
        self._require_initialized()
        if isinstance(snapshot, dict):
            if not isinstance(snapshot.get("configurations"), list):
                raise StorageError("Invalid backup format: missing configurations array")
            try:
                snapshot = BackupSnapshot.model_validate(snapshot)
            except ValidationError as e:
                raise StorageError(f"Invalid backup format: {e}", details=e) from e

        await self._replace_all([record.model_copy(deep=True) for record in snapshot.configurations])
        logger.info(f"{self.source_name} restored {len(snapshot.configurations)} records")
