"""
Flat key-value file repository.
One JSON file per key under a common prefix, plus a separate index entry
(keys, categories, services, last update) and a metadata entry. The
backend has no native indexing, so the index file is maintained by hand
and integrity checks compare it against the files on disk.
"""
import asyncio
import json
import os
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote, unquote

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
from .base import StorageRepository, build_record

logger = get_logger(__name__)

T = TypeVar("T")

STORAGE_PREFIX = "docintel_"
RECORD_SUFFIX = ".record.json"


def _empty_index() -> Dict[str, Any]:
    return {"keys": [], "categories": {}, "services": {}, "last_updated": None}


class KeyValueFileRepository(StorageRepository):
    """Key-value repository storing each record in its own file."""

    storage_type = StorageType.KEYVALUE
    source_name = "KeyValue"

    def __init__(self, data_dir: Optional[Path] = None, prefix: str = STORAGE_PREFIX):
        super().__init__()
        self.data_dir = Path(data_dir) if data_dir is not None else STORAGE_DIR / "keyvalue"
        self.prefix = prefix
        self.index_file = self.data_dir / f"{prefix}index.json"
        self.metadata_file = self.data_dir / f"{prefix}metadata.json"
        self._index: Dict[str, Any] = _empty_index()
        self._lock = Lock()

    # File helpers (blocking, run in the executor)
    def _record_path(self, key: str) -> Path:
        return self.data_dir / f"{self.prefix}{quote(key, safe='')}{RECORD_SUFFIX}"

    def _key_from_path(self, path: Path) -> Optional[str]:
        name = path.name
        if not name.startswith(self.prefix) or not name.endswith(RECORD_SUFFIX):
            return None
        return unquote(name[len(self.prefix):-len(RECORD_SUFFIX)])

    def _read_json(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_json(self, path: Path, data: Any) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp_path, path)

    def _record_files(self) -> List[Path]:
        return sorted(self.data_dir.glob(f"{self.prefix}*{RECORD_SUFFIX}"))

    async def _run(self, func: Callable[..., T], *args) -> T:
        def _locked():
            with self._lock:
                return func(*args)

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, _locked)
        except OSError as e:
            raise StorageError(f"Key-value storage I/O failed: {e}", details=e) from e

    # Index maintenance
    def _add_to_index(self, record: StoredRecord) -> None:
        if record.key not in self._index["keys"]:
            self._index["keys"].append(record.key)
        for bucket, name in (("categories", record.category), ("services", record.service_id)):
            keys = self._index[bucket].setdefault(name, [])
            if record.key not in keys:
                keys.append(record.key)
        self._index["last_updated"] = datetime.now().isoformat()

    def _remove_from_index(self, key: str) -> None:
        if key in self._index["keys"]:
            self._index["keys"].remove(key)
        for bucket in ("categories", "services"):
            for name in list(self._index[bucket]):
                keys = self._index[bucket][name]
                if key in keys:
                    keys.remove(key)
                if not keys:
                    del self._index[bucket][name]
        self._index["last_updated"] = datetime.now().isoformat()

    def _rebuild_index(self) -> Dict[str, Any]:
        """Scan every record file and build a fresh index."""
        self._index = _empty_index()
        for path in self._record_files():
            try:
                record = StoredRecord.model_validate(self._read_json(path))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Skipping unreadable record file {path.name}: {e}")
                continue
            self._add_to_index(record)
        return self._index

    # Lifecycle
    async def initialize(self) -> None:
        if self._initialized:
            return

        def _load():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            try:
                index = self._read_json(self.index_file)
            except json.JSONDecodeError:
                index = None
            if not isinstance(index, dict) or not isinstance(index.get("keys"), list):
                logger.warning("Key-value index missing or unreadable, rebuilding from record files")
                index = self._rebuild_index()
                self._write_json(self.index_file, index)
            return index

        self._index = await self._run(_load)
        self._initialized = True
        logger.info(f"KeyValueFileRepository initialized with {len(self._index['keys'])} keys in {self.data_dir}")

    async def shutdown(self) -> None:
        if self._initialized:
            await self._run(self._write_json, self.index_file, self._index)
        self._initialized = False

    async def is_healthy(self) -> bool:
        if not self._initialized:
            return False

        def _probe():
            probe = self.data_dir / f"{self.prefix}health_check"
            probe.write_text("ok", encoding="utf-8")
            probe.unlink()
            return True

        try:
            return await self._run(_probe)
        except StorageError:
            return False

    # CRUD
    def _load_record(self, key: str) -> Optional[StoredRecord]:
        try:
            raw = self._read_json(self._record_path(key))
            return StoredRecord.model_validate(raw) if raw is not None else None
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Unreadable record {key}: {e}")
            return None

    async def store(self, key: str, value: Any, options: Optional[StoreOptions] = None) -> StoredRecord:
        self._require_initialized()

        def _store():
            existing = self._load_record(key)
            record = build_record(key, value, options, existing)
            self._write_json(self._record_path(key), record.model_dump(mode="json"))
            if existing is not None:
                self._remove_from_index(key)
            self._add_to_index(record)
            self._write_json(self.index_file, self._index)
            return record

        return await self._run(_store)

    async def retrieve(self, key: str) -> Optional[StoredRecord]:
        self._require_initialized()
        record = await self._run(self._load_record, key)
        if record is not None:
            record.accessed = datetime.now()
        return record

    async def remove(self, key: str) -> None:
        self._require_initialized()

        def _remove():
            path = self._record_path(key)
            if path.exists():
                path.unlink()
            if key in self._index["keys"]:
                self._remove_from_index(key)
                self._write_json(self.index_file, self._index)

        await self._run(_remove)

    async def exists(self, key: str) -> bool:
        self._require_initialized()
        return await self._run(lambda: self._record_path(key).exists())

    async def retrieve_all(self) -> List[StoredRecord]:
        self._require_initialized()

        def _all():
            records = []
            for key in list(self._index["keys"]):
                record = self._load_record(key)
                if record is not None:
                    records.append(record)
            return records

        return await self._run(_all)

    async def retrieve_by_category(self, category: str) -> List[StoredRecord]:
        self._require_initialized()
        keys = list(self._index["categories"].get(category, []))
        records = await self._run(lambda: [self._load_record(key) for key in keys])
        return [record for record in records if record is not None]

    async def _replace_all(self, records: List[StoredRecord]) -> None:
        def _replace():
            for path in self._record_files():
                path.unlink()
            self._index = _empty_index()
            for record in records:
                self._write_json(self._record_path(record.key), record.model_dump(mode="json"))
                self._add_to_index(record)
            self._write_json(self.index_file, self._index)

        await self._run(_replace)

    # Maintenance
    async def cleanup(self) -> None:
        """Remove record files that are not referenced by the index."""
        self._require_initialized()

        def _cleanup():
            indexed = set(self._index["keys"])
            orphaned = [path for path in self._record_files() if self._key_from_path(path) not in indexed]
            for path in orphaned:
                path.unlink()
            self._last_cleanup = datetime.now()
            self._write_json(self.metadata_file, {
                "last_cleanup": self._last_cleanup.isoformat(),
                "orphaned_removed": len(orphaned),
            })
            return len(orphaned)

        removed = await self._run(_cleanup)
        logger.info(f"Key-value storage cleanup completed: removed {removed} orphaned entries")

    async def get_stats(self) -> StorageStats:
        self._require_initialized()

        def _stats():
            total_size = sum(path.stat().st_size for path in self._record_files())
            if self.index_file.exists():
                total_size += self.index_file.stat().st_size
            metadata = self._read_json(self.metadata_file) or {}
            return total_size, metadata.get("last_cleanup")

        total_size, last_cleanup = await self._run(_stats)
        return StorageStats(
            total_size=total_size,
            item_count=len(self._index["keys"]),
            cache_hit_rate=0.0,
            last_cleanup=last_cleanup or self._last_cleanup,
            quota_used=0.0,
            average_access_time_ms=0.0,
        )

    async def validate_integrity(self) -> IntegrityResult:
        """Compare the index against the record files on disk."""
        self._require_initialized()

        def _validate():
            errors: List[str] = []
            corrupted_keys: List[str] = []
            missing_keys: List[str] = []

            for key in self._index["keys"]:
                path = self._record_path(key)
                if not path.exists():
                    missing_keys.append(key)
                    errors.append(f"Record {key} exists in index but not in storage")
                    continue
                try:
                    raw = self._read_json(path)
                except json.JSONDecodeError as e:
                    corrupted_keys.append(key)
                    errors.append(f"Record {key} has invalid JSON: {e}")
                    continue
                try:
                    record = StoredRecord.model_validate(raw)
                except ValidationError:
                    corrupted_keys.append(key)
                    errors.append(f"Record {key} has missing fields or unparseable timestamps")
                    continue
                if not record.key or not record.category or not record.service_id:
                    corrupted_keys.append(key)
                    errors.append(f"Record {key} has missing required fields")

            indexed = set(self._index["keys"])
            for path in self._record_files():
                key = self._key_from_path(path)
                if key not in indexed:
                    missing_keys.append(key)
                    errors.append(f"Record {key} exists in storage but not in index")

            return IntegrityResult(
                valid=not errors,
                corrupted_keys=corrupted_keys,
                missing_keys=missing_keys,
                errors=errors,
            )

        return await self._run(_validate)
