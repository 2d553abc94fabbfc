"""
Search Router - Handles document search and query suggestions.

Example Usage:
    POST /search {"query": "budget report", "filters": {...}, "options": {...}}
    GET /search/suggestions?q=bud
    GET /search/cache/stats
    DELETE /search/cache
"""
from typing import List

from fastapi import APIRouter, Query

from ..core.logging_config import get_logger
from ..models.search import CacheStats, SearchRequest, SearchResults
from .dependencies import get_document_service

logger = get_logger(__name__)

router = APIRouter()


@router.post("/search", response_model=SearchResults)
async def search_documents(request: SearchRequest):
    """
    Search documents.

    Search types:
    - fulltext: term and phrase matching over name, title, text, topics, tags and notes
    - metadata: name, document type, tags, extension and notes
    - semantic: word-overlap similarity against title, summary and content
    - hybrid (default): fulltext and metadata merged, semantic when few hits

    A query that matches nothing still returns 200 with suggestions.
    """
    service = get_document_service()
    results = await service.search(request.query, request.filters, request.options)
    logger.debug(f"Search '{request.query}' returned {results.total_results} results")
    return results


@router.get("/search/suggestions", response_model=List[str])
async def search_suggestions(q: str = Query("", description="Partial query")):
    return await get_document_service().suggestions(q)


@router.get("/search/cache/stats", response_model=CacheStats)
async def search_cache_stats():
    return get_document_service().get_search_cache_stats()


@router.delete("/search/cache")
async def clear_search_cache():
    get_document_service().search_engine.clear_cache()
    return {"message": "Search cache cleared"}
