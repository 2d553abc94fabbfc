"""
JSON file-based indexed repository.
The durable primary backend - all records live in one JSON data file,
with category, service and tag indexes rebuilt in memory on load.
Data persists between restarts.
"""
import asyncio
import json
import os
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from ...api.exceptions import StorageError
from ...core.config import STORAGE_DIR
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

DATA_FILE_NAME = "records.json"


class IndexedFileRepository(StorageRepository):
    """
    Indexed repository backed by a single JSON file.

    Every mutation rewrites the data file in the default executor. Records
    that fail validation on load are kept verbatim so that integrity checks
    can report them and a later save does not silently drop them.
    """

    storage_type = StorageType.INDEXED
    source_name = "Indexed"

    def __init__(self, data_dir: Optional[Path] = None):
        """
        Initialize the repository.

        Args:
            data_dir: Directory holding the data file (defaults to STORAGE_DIR/indexed)
        """
        super().__init__()
        self.data_dir = Path(data_dir) if data_dir is not None else STORAGE_DIR / "indexed"
        self.data_file = self.data_dir / DATA_FILE_NAME

        self._records: Dict[str, StoredRecord] = {}
        self._corrupted: Dict[str, Any] = {}
        self._category_index: Dict[str, Set[str]] = {}
        self._service_index: Dict[str, Set[str]] = {}
        self._tag_index: Dict[str, Set[str]] = {}

        # Lock for thread-safe file operations
        self._lock = Lock()
        self._save_lock = asyncio.Lock()
        self._access_count = 0
        self._access_time_total = 0.0

    async def initialize(self) -> None:
        """Load the data file and rebuild indexes."""
        if self._initialized:
            return
        loop = asyncio.get_running_loop()
        try:
            payload = await loop.run_in_executor(None, self._read_file)
        except OSError as e:
            raise StorageError(f"Could not open indexed storage at {self.data_dir}: {e}", details=e) from e

        self._load(payload)
        self._initialized = True
        logger.info(f"IndexedFileRepository loaded {len(self._records)} records from {self.data_file}")

    async def shutdown(self) -> None:
        if self._initialized:
            await self._save()
        self._initialized = False

    def _read_file(self) -> Dict[str, Any]:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not self.data_file.exists():
            return {}
        with self._lock:
            try:
                with open(self.data_file, "r", encoding="utf-8") as f:
                    return json.load(f)
            except json.JSONDecodeError as e:
                logger.warning(f"Could not parse {self.data_file}, starting empty: {e}")
                return {}

    def _load(self, payload: Dict[str, Any]) -> None:
        self._records.clear()
        self._corrupted.clear()
        for key, raw in (payload.get("records") or {}).items():
            try:
                self._records[key] = StoredRecord.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Corrupted record {key} in {self.data_file}: {e.error_count()} error(s)")
                self._corrupted[key] = raw

        last_cleanup = (payload.get("metadata") or {}).get("last_cleanup")
        try:
            self._last_cleanup = datetime.fromisoformat(last_cleanup) if isinstance(last_cleanup, str) else None
        except ValueError:
            self._last_cleanup = None
        self._rebuild_indexes()

    def _rebuild_indexes(self) -> None:
        self._category_index.clear()
        self._service_index.clear()
        self._tag_index.clear()
        for record in self._records.values():
            self._index(record)

    def _index(self, record: StoredRecord) -> None:
        self._category_index.setdefault(record.category, set()).add(record.key)
        self._service_index.setdefault(record.service_id, set()).add(record.key)
        for tag in record.tags or []:
            self._tag_index.setdefault(tag, set()).add(record.key)

    def _unindex(self, record: StoredRecord) -> None:
        names = [(self._category_index, record.category), (self._service_index, record.service_id)]
        names.extend((self._tag_index, tag) for tag in record.tags or [])
        for index, name in names:
            keys = index.get(name)
            if keys is not None:
                keys.discard(record.key)
                if not keys:
                    del index[name]

    async def _save(self) -> None:
        """Save records from memory to the JSON data file."""
        records = {key: record.model_dump(mode="json") for key, record in self._records.items()}
        records.update(self._corrupted)
        payload = {
            "records": records,
            "metadata": {
                "last_cleanup": self._last_cleanup.isoformat() if self._last_cleanup else None,
                "saved_at": datetime.now().isoformat(),
            },
        }

        def _write():
            with self._lock:
                self.data_dir.mkdir(parents=True, exist_ok=True)
                tmp_file = self.data_file.with_suffix(".tmp")
                with open(tmp_file, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp_file, self.data_file)

        # Run in executor to avoid blocking; saves are applied in call order
        async with self._save_lock:
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, _write)
            except OSError as e:
                raise StorageError(f"Error saving {self.data_file}: {e}", details=e) from e

    async def store(self, key: str, value: Any, options: Optional[StoreOptions] = None) -> StoredRecord:
        self._require_initialized()
        existing = self._records.get(key)
        record = build_record(key, value, options, existing)
        if existing:
            self._unindex(existing)
        self._corrupted.pop(key, None)
        self._records[key] = record
        self._index(record)
        await self._save()
        return record.model_copy(deep=True)

    async def retrieve(self, key: str) -> Optional[StoredRecord]:
        self._require_initialized()
        started = datetime.now()
        record = self._records.get(key)
        if record is None:
            return None
        record.accessed = datetime.now()
        self._access_count += 1
        self._access_time_total += (datetime.now() - started).total_seconds() * 1000
        return record.model_copy(deep=True)

    async def remove(self, key: str) -> None:
        self._require_initialized()
        record = self._records.pop(key, None)
        corrupted = self._corrupted.pop(key, None)
        if record is not None:
            self._unindex(record)
        if record is not None or corrupted is not None:
            await self._save()

    async def exists(self, key: str) -> bool:
        self._require_initialized()
        return key in self._records

    async def retrieve_all(self) -> List[StoredRecord]:
        self._require_initialized()
        return [record.model_copy(deep=True) for record in self._records.values()]

    async def retrieve_by_category(self, category: str) -> List[StoredRecord]:
        self._require_initialized()
        keys = self._category_index.get(category, set())
        return [self._records[key].model_copy(deep=True) for key in sorted(keys) if key in self._records]

    async def _replace_all(self, records: List[StoredRecord]) -> None:
        self._records = {record.key: record for record in records}
        self._corrupted.clear()
        self._rebuild_indexes()
        await self._save()

    async def cleanup(self) -> None:
        """Drop empty index buckets and records that failed validation on load."""
        self._require_initialized()
        dropped = len(self._corrupted)
        self._corrupted.clear()
        self._rebuild_indexes()
        self._last_cleanup = datetime.now()
        await self._save()
        logger.info(f"Indexed storage cleanup completed: removed {dropped} corrupted records")

    async def get_stats(self) -> StorageStats:
        self._require_initialized()
        total_size = self.data_file.stat().st_size if self.data_file.exists() else 0
        average = self._access_time_total / self._access_count if self._access_count else 0.0
        return StorageStats(
            total_size=total_size,
            item_count=len(self._records),
            cache_hit_rate=100.0,
            last_cleanup=self._last_cleanup,
            quota_used=0.0,
            average_access_time_ms=average,
        )

    async def validate_integrity(self) -> IntegrityResult:
        self._require_initialized()
        errors: List[str] = []
        corrupted_keys: List[str] = []
        missing_keys: List[str] = []

        for key in self._corrupted:
            corrupted_keys.append(key)
            errors.append(f"Record {key} has missing fields or unparseable timestamps")

        for key, record in self._records.items():
            problem = record_problem(key, record)
            if problem:
                corrupted_keys.append(key)
                errors.append(problem)
            elif key not in self._category_index.get(record.category, set()):
                missing_keys.append(key)
                errors.append(f"Record {key} is missing from the category index")

        for name, keys in self._category_index.items():
            for key in keys:
                if key not in self._records:
                    missing_keys.append(key)
                    errors.append(f"Category index references non-existent key: {key} in {name}")

        return IntegrityResult(
            valid=not errors,
            corrupted_keys=corrupted_keys,
            missing_keys=missing_keys,
            errors=errors,
        )
