"""
Storage Router - Storage statistics, integrity checks and backups.
"""
from typing import Any, Dict

from fastapi import APIRouter

from ..models.storage import BackupSnapshot, IntegrityResult, StorageStats
from .dependencies import get_document_service

router = APIRouter()


@router.get("/storage/stats", response_model=StorageStats)
async def storage_stats():
    return await get_document_service().get_storage_stats()


@router.get("/storage/integrity", response_model=IntegrityResult)
async def storage_integrity():
    """Validate records and indexes of the primary storage backend."""
    return await get_document_service().validate_integrity()


@router.get("/storage/backup", response_model=BackupSnapshot)
async def storage_backup():
    return await get_document_service().storage.backup()


@router.post("/storage/restore")
async def storage_restore(snapshot: Dict[str, Any]):
    """
    Replace all stored records with the contents of a backup snapshot.

    Status Codes:
        200: Restored
        503: Snapshot malformed or no backend accepted it
    """
    service = get_document_service()
    await service.storage.restore(snapshot)
    service.search_engine.clear_cache()
    return {"message": "Backup restored", "records": len(snapshot.get("configurations", []))}


@router.post("/storage/cleanup")
async def storage_cleanup():
    await get_document_service().storage.cleanup()
    return {"message": "Storage cleanup complete"}
