"""
Document Processing Queue.

Drives each ingested document through extraction, normalization and
analysis. Documents are processed strictly one at a time by a single
worker task in FIFO order; enqueueing only appends. Every state change is
persisted before the queue advances, and lifecycle events are pushed to
subscribers synchronously in emission order.
"""
import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

from ..api.exceptions import (
    AnalysisFailedError,
    DocumentError,
    DocumentNotFoundError,
    ProcessingAbortedError,
    ProcessingFailedError,
)
from ..core.config import EVENT_HISTORY_LIMIT, OCR_ONLY_TYPES
from ..core.logging_config import get_logger
from ..models.document import DocumentErrorInfo, DocumentStatus, ProcessedDocument
from ..models.events import DocumentEvent, EventType
from ..utils.async_utils import check_abort, run_abortable
from ..utils.document_utils import get_file_extension
from ..utils.extraction_details import build_extraction_details
from ..utils.text_processing import prepare_text_payload
from .ai_analyzer import AIAnalyzer
from .blob_store import BlobStore
from .fallback_analysis import AnalysisRequest
from .providers.base import AIProvider
from .storage.document_store import DocumentStore
from .text_extractors.factory import TextExtractorFactory

logger = get_logger(__name__)

DocumentListener = Callable[[DocumentEvent], None]


@dataclass
class QueueItem:
    """Represents a single document waiting for (or undergoing) processing."""
    document_id: str
    file_bytes: bytes
    filename: str
    mime_type: str
    abort_signal: asyncio.Event = field(default_factory=asyncio.Event)
    removed: bool = False
    enqueued_at: datetime = field(default_factory=datetime.now)


class DocumentProcessor:
    """
    Serial processing queue with lifecycle events.

    Args:
        document_store: Persistence for document records
        blob_store: Retained raw files (needed for retry)
        extractors: Extension-keyed extractor registry
        analyzer: AI analyzer (never raises)
        upload_provider: Provider used for the auxiliary file upload, or None to skip it
        history_limit: Number of recent events kept for inspection
    """

    def __init__(
        self,
        document_store: DocumentStore,
        blob_store: BlobStore,
        extractors: TextExtractorFactory,
        analyzer: AIAnalyzer,
        upload_provider: Optional[AIProvider] = None,
        history_limit: int = EVENT_HISTORY_LIMIT
    ):
        self.document_store = document_store
        self.blob_store = blob_store
        self.extractors = extractors
        self.analyzer = analyzer
        self.upload_provider = upload_provider

        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._pending: Dict[str, QueueItem] = {}
        self._current: Optional[QueueItem] = None
        self._listeners: List[DocumentListener] = []
        self._history: Deque[DocumentEvent] = deque(maxlen=history_limit)

        # Statistics
        self.stats = {
            "total_enqueued": 0,
            "completed": 0,
            "failed": 0,
            "aborted": 0,
            "retries": 0,
        }

    # Events
    def subscribe(self, listener: DocumentListener) -> Callable[[], None]:
        """
        Register a listener for every emitted event.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event_type: EventType, payload: Dict[str, Any]) -> None:
        event = DocumentEvent(type=event_type, payload=payload)
        self._history.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener failed on {event_type.value}: {e}", exc_info=True)

    def get_recent_events(self) -> List[DocumentEvent]:
        return list(self._history)

    # Lifecycle
    def _get_queue(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        return self._queue

    def start(self) -> None:
        """Start the worker if it is not running. Safe to call repeatedly."""
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run_worker())
            logger.debug("Processing worker started")

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def wait_until_idle(self) -> None:
        """Wait until every enqueued item has been processed."""
        await self._get_queue().join()

    async def shutdown(self) -> None:
        """Cancel the worker. Items still queued are left unprocessed."""
        if self._current is not None:
            self._current.abort_signal.set()
        if self._worker is not None:
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
            self._worker = None
        logger.info(f"Processing queue stopped ({len(self._pending)} items left in queue)")

    # Queue operations
    def enqueue(self, document_id: str, file_bytes: bytes, filename: str, mime_type: str) -> QueueItem:
        """
        Append a document to the queue and make sure the worker runs.

        Must be called from within the event loop.
        """
        item = QueueItem(
            document_id=document_id,
            file_bytes=file_bytes,
            filename=filename,
            mime_type=mime_type,
        )
        self._pending[document_id] = item
        self._get_queue().put_nowait(item)
        self.stats["total_enqueued"] += 1
        logger.debug(f"Enqueued {document_id}: {filename} (queue size: {self._get_queue().qsize()})")
        self.start()
        return item

    async def retry(self, document_id: str) -> ProcessedDocument:
        """
        Re-run the full pipeline for a failed (or ready) document.

        Raises:
            DocumentNotFoundError: Unknown document id
            ProcessingFailedError: Wrong status or the original file is gone
        """
        document = await self.document_store.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        if not document.can_transition(DocumentStatus.PROCESSING):
            raise ProcessingFailedError(
                f"Document {document_id} cannot be retried while {document.status.value}"
            )

        file_bytes = await self.blob_store.get(document_id)
        if file_bytes is None:
            raise ProcessingFailedError(f"Original file for {document_id} is no longer available for retry")

        document = document.model_copy(update={
            "status": DocumentStatus.PROCESSING,
            "error": None,
            "summary": None,
            "analysis": None,
            "retry_count": document.retry_count + 1,
        })
        await self.document_store.save(document)
        self.stats["retries"] += 1
        logger.info(f"Retrying {document_id} (attempt {document.retry_count + 1})")

        self.enqueue(document_id, file_bytes, document.original_file.name, document.original_file.mime_type)
        return document

    async def abort(self, document_id: str) -> bool:
        """
        Abort a document.

        An in-flight document gets its abort signal set and ends in the error
        state with kind ABORTED. A queued document is removed before the
        worker reaches it and recorded as aborted.

        Returns:
            True if the document was in flight or queued
        """
        if self._current is not None and self._current.document_id == document_id:
            logger.info(f"Aborting in-flight document {document_id}")
            self._current.abort_signal.set()
            return True

        item = self._pending.pop(document_id, None)
        if item is None:
            return False

        item.removed = True
        item.abort_signal.set()
        self.stats["aborted"] += 1
        logger.info(f"Removed queued document {document_id}")
        await self._persist_error(document_id, ProcessingAbortedError("Processing aborted before it started"))
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Get current statistics."""
        return {
            **self.stats,
            "queue_size": len(self._pending),
            "processing": self._current.document_id if self._current else None,
            "worker_running": self.is_running,
        }

    # Worker
    async def _run_worker(self) -> None:
        queue = self._get_queue()
        while True:
            item: QueueItem = await queue.get()
            try:
                if item.removed:
                    continue
                self._pending.pop(item.document_id, None)
                self._current = item
                await self._process_single(item)
            except Exception as e:
                logger.error(f"Document processing failed for {item.document_id}: {e}", exc_info=True)
            finally:
                self._current = None
                queue.task_done()

    async def _update(self, document_id: str, **changes) -> ProcessedDocument:
        """Load, apply changes, check the status transition and persist."""
        document = await self.document_store.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} was removed during processing")

        target = changes.get("status")
        if target is not None and target != document.status and not document.can_transition(target):
            raise ProcessingFailedError(
                f"Invalid status transition {document.status.value} -> {target.value} for {document_id}"
            )

        document = document.model_copy(update=changes)
        await self.document_store.save(document)
        return document

    async def _persist_error(self, document_id: str, error: DocumentError) -> Optional[DocumentErrorInfo]:
        info = error.to_info()
        document = await self.document_store.get(document_id)
        if document is None:
            logger.warning(f"Cannot record error for missing document {document_id}: {error.message}")
            return info
        document = document.model_copy(update={
            "status": DocumentStatus.ERROR,
            "error": info,
            "summary": None,
            "analysis": None,
        })
        await self.document_store.save(document)
        return info

    async def _upload_reference(self, item: QueueItem, warnings: List[str]) -> None:
        """Auxiliary upload for later Q&A. Failure only adds a warning."""
        try:
            reference = await run_abortable(
                self.upload_provider.upload_file(item.file_bytes, item.filename, item.mime_type),
                item.abort_signal,
                "Upload aborted",
            )
        except ProcessingAbortedError:
            raise
        except Exception as e:
            message = e.message if isinstance(e, DocumentError) else str(e)
            logger.warning(f"Remote upload failed for {item.document_id}, continuing locally: {message}")
            warnings.append(f"Remote upload failed: {message} - Q&A features may be limited")
            return

        await self._update(item.document_id, remote_file_ref=reference)
        logger.info(f"File uploaded for {item.document_id}: {reference.get('name', 'unknown')}")

    async def _process_single(self, item: QueueItem) -> None:
        document_id = item.document_id
        start = time.perf_counter()
        self._emit(EventType.PROCESSING_STARTED, {"document_id": document_id})

        try:
            await self._update(document_id, status=DocumentStatus.PROCESSING)

            extension = get_file_extension(item.filename)
            warnings: List[str] = []
            if self.upload_provider is not None and extension not in OCR_ONLY_TYPES:
                await self._upload_reference(item, warnings)

            extractor = self.extractors.get_extractor_by_extension(extension)
            result = await extractor.extract(item.file_bytes, item.mime_type, item.abort_signal)
            check_abort(item.abort_signal, "Processing aborted")

            payload = prepare_text_payload(result.text)
            details = build_extraction_details(payload.cleaned_text, result.method, {
                "page_count": result.page_count,
                "warnings": warnings + result.warnings,
                "ocr_model": result.ocr_model,
                "duration_ms": (time.perf_counter() - start) * 1000,
            })

            document = await self._update(
                document_id,
                status=DocumentStatus.ANALYZING,
                processed_at=datetime.now(),
                preview_text=payload.preview,
                extracted_text=payload.cleaned_text,
                content_chunks=payload.chunks,
                extraction_details=details,
            )
        except DocumentError as e:
            await self._fail(document_id, e, EventType.PROCESSING_ERROR)
            return
        except Exception as e:
            await self._fail(
                document_id,
                ProcessingFailedError(str(e) or "Unknown processing error", details=e),
                EventType.PROCESSING_ERROR,
            )
            return

        self._emit(EventType.ANALYSIS_STARTED, {"document_id": document_id})

        try:
            analysis = await run_abortable(
                self.analyzer.analyze(AnalysisRequest(
                    document_id=document_id,
                    document_name=document.original_file.name,
                    text=payload.cleaned_text,
                    preview=payload.preview,
                    chunks=payload.chunks,
                    word_count=payload.word_count,
                    page_count=result.page_count,
                    extraction_method=result.method.value,
                    language=details.language,
                )),
                item.abort_signal,
                "Analysis aborted",
            )
            document = await self._update(
                document_id,
                status=DocumentStatus.READY,
                summary=analysis.summary,
                analysis=analysis,
                processed_at=datetime.now(),
            )
        except Exception as e:
            error = e if isinstance(e, DocumentError) else AnalysisFailedError(
                str(e) or "Document analysis failed", details=e
            )
            await self._fail(document_id, error, EventType.ANALYSIS_ERROR)
            return

        self.stats["completed"] += 1
        logger.info(
            f"Processed {document_id} in {(time.perf_counter() - start) * 1000:.0f}ms "
            f"({analysis.model_used})"
        )
        self._emit(EventType.ANALYSIS_COMPLETE, {"document_id": document_id, "analysis": analysis})
        self._emit(EventType.PROCESSING_COMPLETE, {"document_id": document_id, "document": document})

    async def _fail(self, document_id: str, error: DocumentError, event_type: EventType) -> None:
        if isinstance(error, ProcessingAbortedError):
            self.stats["aborted"] += 1
        else:
            self.stats["failed"] += 1
        logger.warning(f"{event_type.value} for {document_id}: [{error.kind.value}] {error.message}")
        info = await self._persist_error(document_id, error)
        self._emit(event_type, {"document_id": document_id, "error": info})
