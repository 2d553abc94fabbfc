"""
Document Service - Business logic for document operations.

Coordinates validation, persistence, blob retention, the processing queue
and search. Routers talk to this service only.
"""
from datetime import datetime
from typing import List, Optional

from ..api.exceptions import DocumentNotFoundError
from ..core.logging_config import get_logger
from ..models.document import ProcessedDocument
from ..models.events import DocumentEvent, TERMINAL_EVENTS
from ..models.search import CacheStats, SearchFilters, SearchOptions, SearchResults, SimilarDocument
from ..models.storage import IntegrityResult, StorageStats
from ..utils.document_utils import create_empty_document, generate_document_id
from ..utils.validators import validate_upload
from .blob_store import BlobStore
from .processing_queue import DocumentProcessor
from .search_service import DocumentSearchEngine
from .storage.base import StorageRepository
from .storage.document_store import DocumentStore

logger = get_logger(__name__)

MAX_TAG_LENGTH = 50


def normalize_tags(tags: List[str]) -> List[str]:
    """Trim tags, drop empty ones and remove case-insensitive duplicates (first wins)."""
    seen = set()
    result: List[str] = []
    for tag in tags:
        cleaned = (tag or "").strip()[:MAX_TAG_LENGTH]
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            result.append(cleaned)
    return result


class DocumentService:
    """
    Service for document business logic.

    Args:
        storage: Storage abstraction holding the document records
        blob_store: Retained raw files
        processor: Processing queue
        search_engine: Search engine (its cache is cleared whenever documents change)
    """

    def __init__(
        self,
        storage: StorageRepository,
        blob_store: BlobStore,
        processor: DocumentProcessor,
        search_engine: Optional[DocumentSearchEngine] = None
    ):
        self.storage = storage
        self.documents = processor.document_store
        self.blob_store = blob_store
        self.processor = processor
        self.search_engine = search_engine or DocumentSearchEngine()
        self._unsubscribe = processor.subscribe(self._on_event)

    def _on_event(self, event: DocumentEvent) -> None:
        if event.type in TERMINAL_EVENTS:
            self.search_engine.clear_cache()

    def close(self) -> None:
        self._unsubscribe()

    # Ingestion
    async def ingest(
        self,
        file_bytes: bytes,
        filename: str,
        mime_type: str,
        last_modified: Optional[datetime] = None
    ) -> ProcessedDocument:
        """
        Accept a file and queue it for processing.

        Args:
            file_bytes: Raw file content
            filename: Original filename
            mime_type: MIME type reported by the uploader
            last_modified: Optional last-modified timestamp of the source file

        Returns:
            The new document record (status 'uploading')

        Raises:
            FileValidationError: If the file fails validation
            StorageError: If the record or the file cannot be stored
        """
        validate_upload(filename, len(file_bytes), mime_type)

        document = create_empty_document(
            generate_document_id(), filename, mime_type, len(file_bytes), last_modified
        )
        await self.documents.save(document)
        await self.blob_store.save(document.id, file_bytes)
        self.processor.enqueue(document.id, file_bytes, filename, document.original_file.mime_type)
        self.search_engine.clear_cache()

        logger.info(f"Ingested {filename} as {document.id} ({len(file_bytes)} bytes)")
        return document

    # Queries
    async def get(self, document_id: str) -> ProcessedDocument:
        """
        Raises:
            DocumentNotFoundError: Unknown document id
        """
        document = await self.documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    async def list(self) -> List[ProcessedDocument]:
        return await self.documents.list_all()

    # Mutations
    async def delete(self, document_id: str) -> None:
        """Abort any pending processing, then remove the record and the retained file."""
        await self.get(document_id)
        await self.processor.abort(document_id)
        await self.documents.delete(document_id)
        await self.blob_store.delete(document_id)
        self.search_engine.clear_cache()
        logger.info(f"Deleted document {document_id}")

    async def update_tags(self, document_id: str, tags: List[str]) -> ProcessedDocument:
        document = await self.get(document_id)
        document = document.model_copy(update={"tags": normalize_tags(tags)})
        await self.documents.save(document)
        self.search_engine.clear_cache()
        return document

    async def update_notes(self, document_id: str, notes: Optional[str]) -> ProcessedDocument:
        document = await self.get(document_id)
        cleaned = notes.strip() if notes else None
        document = document.model_copy(update={"notes": cleaned or None})
        await self.documents.save(document)
        self.search_engine.clear_cache()
        return document

    async def retry(self, document_id: str) -> ProcessedDocument:
        document = await self.processor.retry(document_id)
        self.search_engine.clear_cache()
        return document

    # Search
    async def search(
        self,
        query: str,
        filters: Optional[SearchFilters] = None,
        options: Optional[SearchOptions] = None
    ) -> SearchResults:
        documents = await self.documents.list_all()
        return self.search_engine.search(documents, query, filters, options)

    async def find_similar(self, document_id: str, limit: int = 5) -> List[SimilarDocument]:
        target = await self.get(document_id)
        documents = await self.documents.list_all()
        return self.search_engine.find_similar_documents(target, documents, limit=limit)

    async def suggestions(self, partial_query: str = "") -> List[str]:
        documents = await self.documents.list_all()
        return self.search_engine.generate_suggestions(documents, partial_query)

    def get_search_cache_stats(self) -> CacheStats:
        return self.search_engine.get_cache_stats()

    # Storage maintenance
    async def get_storage_stats(self) -> StorageStats:
        return await self.storage.get_stats()

    async def validate_integrity(self) -> IntegrityResult:
        return await self.storage.validate_integrity()

    async def is_healthy(self) -> bool:
        return await self.storage.is_healthy()
