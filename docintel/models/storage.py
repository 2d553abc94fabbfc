"""
Storage record and maintenance models shared by every repository backend.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum


class StorageType(str, Enum):
    INDEXED = "indexed"
    KEYVALUE = "keyvalue"
    MEMORY = "memory"


class StoredRecord(BaseModel):
    """Envelope around every stored value. The value itself is opaque."""
    key: str
    value: Any = None
    category: str = "general"
    service_id: str = "system"
    created: datetime = Field(default_factory=datetime.now)
    last_modified: datetime = Field(default_factory=datetime.now)
    accessed: datetime = Field(default_factory=datetime.now)
    is_default: bool = False
    is_encrypted: bool = False
    version: int = 1
    tags: Optional[List[str]] = None
    notes: Optional[str] = None


class StoreOptions(BaseModel):
    category: str = "general"
    service_id: str = "system"
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    is_default: bool = False


class StorageItem(BaseModel):
    """One entry of a batch write."""
    key: str
    value: Any = None
    options: Optional[StoreOptions] = None


class StorageQuery(BaseModel):
    categories: Optional[List[str]] = None
    services: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    text: Optional[str] = None
    modified_after: Optional[datetime] = None
    modified_before: Optional[datetime] = None
    limit: Optional[int] = None
    offset: int = 0


class BackupMetadata(BaseModel):
    source: str
    total_items: int
    categories: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)


class BackupSnapshot(BaseModel):
    version: str = "1.0"
    timestamp: datetime = Field(default_factory=datetime.now)
    configurations: List[StoredRecord] = Field(default_factory=list)
    schemas: List[Any] = Field(default_factory=list)
    metadata: BackupMetadata


class IntegrityResult(BaseModel):
    valid: bool
    corrupted_keys: List[str] = Field(default_factory=list)
    missing_keys: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class StorageStats(BaseModel):
    total_size: int = 0
    item_count: int = 0
    cache_hit_rate: float = 0.0
    last_cleanup: Optional[datetime] = None
    quota_used: float = 0.0
    average_access_time_ms: float = 0.0


class StorageCapabilities(BaseModel):
    persistent: bool
    native_indexing: bool
    max_size_bytes: Optional[int] = None
    supports_transactions: bool = False
