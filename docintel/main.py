"""
DocIntel API application.

Run with:
    uvicorn docintel.main:app --reload
"""
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.exceptions import DocumentError, handle_business_exception
from .core.config import DATA_DIR
from .core.logging_config import get_logger, setup_logging
from .routers import dependencies, documents, search, storage

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info("Starting DocIntel...")
    logger.info(f"  → Python Version: {sys.version.split()[0]}")
    logger.info(f"  → Environment: {os.getenv('ENVIRONMENT', 'development')}")
    logger.info(f"  → Data directory: {DATA_DIR}")
    logger.info("=" * 60)

    await dependencies.initialize_services()
    try:
        yield
    finally:
        logger.info("Shutting down DocIntel...")
        await dependencies.shutdown_services()


app = FastAPI(
    title="DocIntel API",
    description="Document intelligence pipeline: extraction, AI analysis, search and storage",
    version=__version__,
    lifespan=lifespan,
)

cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DocumentError)
async def document_error_handler(request: Request, exc: DocumentError):
    http_exception = handle_business_exception(exc)
    logger.warning(
        f"Business exception for {request.method} {request.url.path}: "
        f"[{exc.kind.value}] {http_exception.detail}"
    )
    return JSONResponse(
        status_code=http_exception.status_code,
        content={
            "error": http_exception.detail,
            "kind": exc.kind.value,
            "status_code": http_exception.status_code,
            "path": request.url.path,
        },
    )


app.include_router(documents.router, tags=["Documents"])
app.include_router(search.router, tags=["Search"])
app.include_router(storage.router, tags=["Storage"])


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns 200 if storage is reachable, 503 otherwise.
    """
    try:
        service = dependencies.get_document_service()
    except RuntimeError:
        return JSONResponse(status_code=503, content={"status": "unhealthy", "reason": "Services not initialized"})

    if not await service.is_healthy():
        return JSONResponse(status_code=503, content={"status": "unhealthy", "reason": "Storage unavailable"})

    return {
        "status": "healthy",
        "version": __version__,
        "storage": {
            "primary": service.storage.primary_type.value if service.storage.primary_type else None,
            "fallback": service.storage.fallback_type.value if service.storage.fallback_type else None,
            "capabilities": service.storage.get_capabilities(),
        },
        "queue": dependencies.get_processor().get_stats(),
    }
