"""
Document persistence on top of the storage abstraction.

Each ProcessedDocument is stored as the value of a StoredRecord keyed by the
document id, in the 'documents' category of the document-intelligence service.
"""
from typing import List, Optional

from pydantic import ValidationError

from ...core.config import DOCUMENT_CATEGORY, DOCUMENT_SERVICE_ID
from ...core.logging_config import get_logger
from ...models.document import ProcessedDocument
from ...models.storage import StoredRecord, StoreOptions
from .base import StorageRepository

logger = get_logger(__name__)


class DocumentStore:
    """Typed document repository used by the processing queue and the service layer."""

    def __init__(self, storage: StorageRepository):
        self.storage = storage

    @staticmethod
    def _to_document(record: Optional[StoredRecord]) -> Optional[ProcessedDocument]:
        if record is None:
            return None
        try:
            return ProcessedDocument.model_validate(record.value)
        except ValidationError as e:
            logger.warning(f"Stored document {record.key} is not a valid document: {e.error_count()} error(s)")
            return None

    async def save(self, document: ProcessedDocument) -> ProcessedDocument:
        """
        Persist a document.

        Raises:
            StorageError: If neither storage backend accepts the write
        """
        await self.storage.store(
            document.id,
            document.model_dump(mode="json"),
            StoreOptions(
                category=DOCUMENT_CATEGORY,
                service_id=DOCUMENT_SERVICE_ID,
                tags=list(document.tags) or None,
                notes=document.notes,
            ),
        )
        return document

    async def get(self, document_id: str) -> Optional[ProcessedDocument]:
        return self._to_document(await self.storage.retrieve(document_id))

    async def list_all(self) -> List[ProcessedDocument]:
        """All stored documents, newest upload first."""
        records = await self.storage.retrieve_by_category(DOCUMENT_CATEGORY)
        documents = [doc for doc in (self._to_document(record) for record in records) if doc is not None]
        documents.sort(key=lambda doc: doc.uploaded_at, reverse=True)
        return documents

    async def delete(self, document_id: str) -> None:
        await self.storage.remove(document_id)
