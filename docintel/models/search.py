from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from ..core.config import SEARCH_MAX_RESULTS
from .document import DocumentStatus, DocumentType, ProcessedDocument


class SearchType(str, Enum):
    FULL_TEXT = "fulltext"
    METADATA = "metadata"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class SortBy(str, Enum):
    RELEVANCE = "relevance"
    DATE = "date"
    SIZE = "size"
    NAME = "name"
    CONFIDENCE = "confidence"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class MatchReason(str, Enum):
    CONTENT = "content"
    TITLE = "title"
    METADATA = "metadata"
    SEMANTIC = "semantic"


class DateRange(BaseModel):
    start: datetime
    end: datetime


class NumericRange(BaseModel):
    min: float
    max: float


class SearchFilters(BaseModel):
    document_types: Optional[List[DocumentType]] = None
    date_range: Optional[DateRange] = None
    size_range: Optional[NumericRange] = None
    confidence_range: Optional[NumericRange] = None
    tags: Optional[List[str]] = None
    has_analysis: Optional[bool] = None
    status: Optional[List[DocumentStatus]] = None


class SearchOptions(BaseModel):
    search_type: SearchType = SearchType.HYBRID
    sort_by: SortBy = SortBy.RELEVANCE
    sort_order: SortOrder = SortOrder.DESC
    max_results: int = Field(default=SEARCH_MAX_RESULTS, ge=1)
    include_snippets: bool = True
    highlight_matches: bool = False
    similarity_threshold: Optional[float] = None


class SearchSnippet(BaseModel):
    text: str
    start_index: int = 0
    end_index: int = 0
    score: float = 0.0
    context: str = ""
    highlighted_text: Optional[str] = None


class SearchResult(BaseModel):
    document: ProcessedDocument
    relevance_score: float
    match_reason: MatchReason
    snippets: List[SearchSnippet] = Field(default_factory=list)
    semantic_similarity: Optional[float] = None
    highlighted_content: Optional[str] = None


class SearchResults(BaseModel):
    results: List[SearchResult] = Field(default_factory=list)
    total_results: int = 0
    search_time_ms: float = 0.0
    query: str = ""
    search_type: SearchType = SearchType.HYBRID
    suggestions: List[str] = Field(default_factory=list)
    filters: Optional[SearchFilters] = None


class SimilarDocument(BaseModel):
    document: ProcessedDocument
    similarity: float


class SearchRequest(BaseModel):
    """Body of the search endpoint."""
    query: str
    filters: SearchFilters = Field(default_factory=SearchFilters)
    options: SearchOptions = Field(default_factory=SearchOptions)


class CacheStats(BaseModel):
    entries: int
    suggestion_entries: int
    oldest_entry: Optional[datetime] = None
