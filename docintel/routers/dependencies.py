"""
Shared dependencies for routers.
Builds the storage, processing and search services once per application
and hands them to the request handlers.
"""
from typing import Optional

from ..core.config import AI_PROVIDER, GEMINI_API_KEY
from ..core.logging_config import get_logger
from ..services.ai_analyzer import AIAnalyzer
from ..services.blob_store import BlobStore
from ..services.document_service import DocumentService
from ..services.processing_queue import DocumentProcessor
from ..services.providers import AIProviderFactory, GeminiProvider
from ..services.providers.base import AIProvider
from ..services.search_service import DocumentSearchEngine
from ..services.storage import DocumentStore, StorageAbstraction
from ..services.text_extractors import TextExtractorFactory

logger = get_logger(__name__)

# Global services (initialized on startup, shared across request handlers)
storage: Optional[StorageAbstraction] = None
blob_store: Optional[BlobStore] = None
processor: Optional[DocumentProcessor] = None
document_service: Optional[DocumentService] = None
_providers: list = []


async def initialize_services() -> None:
    """
    Initialize all services.

    Storage picks its primary and fallback backends from the configured
    providers. OCR and the auxiliary file upload need a Gemini key; the
    analyzer uses whichever provider AI_PROVIDER selects, or the local
    fallback when none is configured.
    """
    global storage, blob_store, processor, document_service, _providers

    logger.info("Initializing services...")

    storage = StorageAbstraction()
    await storage.initialize()
    logger.info(
        f"  → Storage: primary={storage.primary_type.value}, "
        f"fallback={storage.fallback_type.value if storage.fallback_type else 'none'}"
    )

    blob_store = BlobStore()
    await blob_store.initialize()

    gemini: Optional[GeminiProvider] = GeminiProvider() if GEMINI_API_KEY else None
    analysis_provider: Optional[AIProvider] = AIProviderFactory.get_provider()
    _providers = [p for p in (gemini, analysis_provider) if p is not None]
    logger.info(f"  → AI Provider: {analysis_provider.name if analysis_provider else 'local fallback'} ({AI_PROVIDER})")
    if gemini is None:
        logger.warning("  → GEMINI_API_KEY not set: image OCR and remote file upload are unavailable")

    processor = DocumentProcessor(
        document_store=DocumentStore(storage),
        blob_store=blob_store,
        extractors=TextExtractorFactory(ocr_provider=gemini),
        analyzer=AIAnalyzer(provider=analysis_provider),
        upload_provider=gemini,
    )
    processor.start()

    document_service = DocumentService(storage, blob_store, processor, DocumentSearchEngine())
    logger.info("✅ All services initialized")


async def shutdown_services() -> None:
    """Stop the worker, close provider clients and release storage."""
    global storage, blob_store, processor, document_service, _providers

    if document_service is not None:
        document_service.close()
    if processor is not None:
        await processor.shutdown()
    for provider in _providers:
        try:
            await provider.aclose()
        except Exception as e:
            logger.warning(f"Error closing {provider.name} provider: {e}")
    if storage is not None:
        await storage.shutdown()

    storage = blob_store = processor = document_service = None
    _providers = []
    logger.info("Services stopped")


def get_document_service() -> DocumentService:
    """Get document service (dependency injection)."""
    if document_service is None:
        raise RuntimeError("Document service not initialized")
    return document_service


def get_processor() -> DocumentProcessor:
    """Get processing queue (dependency injection)."""
    if processor is None:
        raise RuntimeError("Processing queue not initialized")
    return processor
