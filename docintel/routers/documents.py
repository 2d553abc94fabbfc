"""
Documents Router - Handles document ingestion and CRUD operations.

Architecture:
- Router handles HTTP request/response only
- Business logic delegated to DocumentService
- Business exceptions are converted to HTTP responses by the app's
  exception handler

Example Usage:
    POST /documents - Upload a file for processing
    GET /documents - List all documents
    GET /documents/{doc_id} - Get specific document
    DELETE /documents/{doc_id} - Delete document
    POST /documents/{doc_id}/retry - Re-run processing
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, File, Form, Query, UploadFile, status
from pydantic import BaseModel, Field

from ..core.logging_config import get_logger
from ..models.document import ProcessedDocument
from ..models.search import SimilarDocument
from .dependencies import get_document_service, get_processor

logger = get_logger(__name__)

router = APIRouter()


class TagsUpdate(BaseModel):
    tags: List[str] = Field(default_factory=list)


class NotesUpdate(BaseModel):
    notes: Optional[str] = None


@router.post("/documents", response_model=ProcessedDocument, status_code=status.HTTP_202_ACCEPTED)
async def upload_document(
    file: UploadFile = File(...),
    last_modified: Optional[datetime] = Form(None)
):
    """
    Upload a file and queue it for processing.

    The response is the new record in status 'uploading'; processing
    continues in the background.

    Status Codes:
        202: Accepted for processing
        400: Unsupported type, empty file or unsafe file name
        413: File too large
    """
    service = get_document_service()
    file_bytes = await file.read()
    logger.debug(f"Upload received: {file.filename} ({len(file_bytes)} bytes)")
    return await service.ingest(
        file_bytes,
        file.filename or "",
        file.content_type or "application/octet-stream",
        last_modified,
    )


@router.get("/documents", response_model=List[ProcessedDocument])
async def list_documents():
    """List all documents, newest upload first."""
    return await get_document_service().list()


@router.get("/documents/queue/stats")
async def queue_stats():
    """Processing queue counters and the most recent lifecycle events."""
    processor = get_processor()
    return {
        **processor.get_stats(),
        "recent_events": [
            {"type": event.type.value, "document_id": event.document_id, "emitted_at": event.emitted_at}
            for event in processor.get_recent_events()
        ],
    }


@router.get("/documents/{doc_id}", response_model=ProcessedDocument)
async def get_document(doc_id: str):
    """
    Get a single document by its id.

    Raises:
        HTTPException: 404 if document not found
    """
    return await get_document_service().get(doc_id)


@router.delete("/documents/{doc_id}")
async def delete_document(doc_id: str):
    await get_document_service().delete(doc_id)
    return {"message": "Document deleted successfully", "id": doc_id}


@router.post("/documents/{doc_id}/retry", response_model=ProcessedDocument, status_code=status.HTTP_202_ACCEPTED)
async def retry_document(doc_id: str):
    """
    Re-run extraction and analysis from the retained original file.

    Status Codes:
        202: Re-queued
        404: Unknown document
        409: Document is still being processed or its file is gone
    """
    return await get_document_service().retry(doc_id)


@router.put("/documents/{doc_id}/tags", response_model=ProcessedDocument)
async def update_tags(doc_id: str, body: TagsUpdate):
    return await get_document_service().update_tags(doc_id, body.tags)


@router.put("/documents/{doc_id}/notes", response_model=ProcessedDocument)
async def update_notes(doc_id: str, body: NotesUpdate):
    return await get_document_service().update_notes(doc_id, body.notes)


@router.get("/documents/{doc_id}/similar", response_model=List[SimilarDocument])
async def similar_documents(doc_id: str, limit: int = Query(5, ge=1, le=50)):
    """Documents whose content resembles the given one, most similar first."""
    return await get_document_service().find_similar(doc_id, limit=limit)
