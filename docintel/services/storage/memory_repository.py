"""
In-memory storage repository.
Stores records in Python dicts - the last-resort backend and the one used in tests.
Data is lost on restart.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from ...core.logging_config import get_logger
from ...models.storage import (
    IntegrityResult,
    StorageStats,
    StorageType,
    StoredRecord,
    StoreOptions,
)
from .base import StorageRepository, build_record, record_problem

logger = get_logger(__name__)


class MemoryRepository(StorageRepository):
    """
    In-memory repository with category and service indexes.
    Records are deep-copied on the way in and out.
    """

    storage_type = StorageType.MEMORY
    source_name = "Memory"

    def __init__(self):
        super().__init__()
        self._records: Dict[str, StoredRecord] = {}
        self._category_index: Dict[str, Set[str]] = {}
        self._service_index: Dict[str, Set[str]] = {}
        self._access_count = 0

    async def initialize(self) -> None:
        if self._initialized:
            return
        logger.info("Initializing MemoryRepository (data will not persist)")
        self._initialized = True
        self._last_cleanup = datetime.now()

    async def shutdown(self) -> None:
        self._records.clear()
        self._category_index.clear()
        self._service_index.clear()
        self._initialized = False

    def _index(self, record: StoredRecord) -> None:
        self._category_index.setdefault(record.category, set()).add(record.key)
        self._service_index.setdefault(record.service_id, set()).add(record.key)

    def _unindex(self, record: StoredRecord) -> None:
        for index, name in ((self._category_index, record.category), (self._service_index, record.service_id)):
            keys = index.get(name)
            if keys is not None:
                keys.discard(record.key)
                if not keys:
                    del index[name]

    async def store(self, key: str, value: Any, options: Optional[StoreOptions] = None) -> StoredRecord:
        self._require_initialized()
        existing = self._records.get(key)
        record = build_record(key, value, options, existing)
        if existing:
            self._unindex(existing)
        self._records[key] = record.model_copy(deep=True)
        self._index(record)
        return record

    async def retrieve(self, key: str) -> Optional[StoredRecord]:
        self._require_initialized()
        record = self._records.get(key)
        if record is None:
            return None
        record.accessed = datetime.now()
        self._access_count += 1
        return record.model_copy(deep=True)

    async def remove(self, key: str) -> None:
        self._require_initialized()
        record = self._records.pop(key, None)
        if record is not None:
            self._unindex(record)

    async def exists(self, key: str) -> bool:
        self._require_initialized()
        return key in self._records

    async def retrieve_all(self) -> List[StoredRecord]:
        self._require_initialized()
        self._access_count += len(self._records)
        return [record.model_copy(deep=True) for record in self._records.values()]

    async def retrieve_by_category(self, category: str) -> List[StoredRecord]:
        self._require_initialized()
        keys = self._category_index.get(category, set())
        return [self._records[key].model_copy(deep=True) for key in sorted(keys) if key in self._records]

    async def _replace_all(self, records: List[StoredRecord]) -> None:
        self._records.clear()
        self._category_index.clear()
        self._service_index.clear()
        for record in records:
            self._records[record.key] = record
            self._index(record)

    async def cleanup(self) -> None:
        self._require_initialized()
        self._last_cleanup = datetime.now()
        logger.info("Memory storage cleanup completed")

    async def get_stats(self) -> StorageStats:
        self._require_initialized()
        total_size = sum(
            len(key) + len(json.dumps(record.model_dump(mode="json")))
            for key, record in self._records.items()
        )
        return StorageStats(
            total_size=total_size,
            item_count=len(self._records),
            cache_hit_rate=100.0,
            last_cleanup=self._last_cleanup,
            quota_used=0.0,
            average_access_time_ms=0.001 if self._records else 0.0,
        )

    async def validate_integrity(self) -> IntegrityResult:
        self._require_initialized()
        errors: List[str] = []
        corrupted_keys: List[str] = []

        for key, record in self._records.items():
            problem = record_problem(key, record)
            if problem:
                corrupted_keys.append(key)
                errors.append(problem)
            elif key not in self._category_index.get(record.category, set()):
                errors.append(f"Record {key} is missing from the category index")

        for label, index, attribute in (
            ("Category", self._category_index, "category"),
            ("Service", self._service_index, "service_id"),
        ):
            for name, keys in index.items():
                for key in keys:
                    record = self._records.get(key)
                    if record is None:
                        errors.append(f"{label} index references non-existent key: {key} in {name}")
                    elif getattr(record, attribute) != name:
                        errors.append(f"{label} index mismatch: {key} indexed under {name}")

        return IntegrityResult(valid=not errors, corrupted_keys=corrupted_keys, missing_keys=[], errors=errors)
