"""
Search utility functions for filtering, sorting and snippet extraction.
Kept apart from the search engine so the scoring code stays readable.
"""
import re
from datetime import datetime
from typing import Iterable, List, Optional

from ..core.config import SEARCH_CONTEXT_LENGTH, SEARCH_SNIPPET_LENGTH
from ..models.document import ProcessedDocument
from ..models.search import SearchFilters, SearchResult, SearchSnippet, SortBy, SortOrder

MAX_SNIPPETS = 3
SNIPPET_LEAD = 50


def _naive(value: datetime) -> datetime:
    """Convert aware datetimes to naive local time so they compare with stored timestamps."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def document_date(doc: ProcessedDocument) -> datetime:
    return _naive(doc.processed_at or doc.uploaded_at)


def passes_filters(doc: ProcessedDocument, filters: SearchFilters) -> bool:
    """
    Check a document against every set filter.

    Args:
        doc: Document to test
        filters: Filter criteria; unset fields are ignored

    Returns:
        True if the document passes all filters, False otherwise
    """
    if filters.document_types:
        if doc.summary is None or doc.summary.document_type not in filters.document_types:
            return False

    if filters.date_range is not None:
        doc_date = document_date(doc)
        if doc_date < _naive(filters.date_range.start) or doc_date > _naive(filters.date_range.end):
            return False

    if filters.size_range is not None:
        size = doc.original_file.size
        if size < filters.size_range.min or size > filters.size_range.max:
            return False

    # Documents without a summary have no confidence to compare
    if filters.confidence_range is not None and doc.summary is not None:
        confidence = doc.summary.confidence
        if confidence < filters.confidence_range.min or confidence > filters.confidence_range.max:
            return False

    if filters.tags:
        doc_tags = [tag.lower() for tag in doc.tags]
        if not any(filter_tag.lower() in doc_tag for filter_tag in filters.tags for doc_tag in doc_tags):
            return False

    if filters.has_analysis is not None:
        has_analysis = doc.analysis is not None or doc.summary is not None
        if filters.has_analysis != has_analysis:
            return False

    if filters.status and doc.status not in filters.status:
        return False

    return True


def apply_filters(documents: Iterable[ProcessedDocument], filters: Optional[SearchFilters]) -> List[ProcessedDocument]:
    """Documents passing every filter, in their original order."""
    if filters is None:
        return list(documents)
    return [doc for doc in documents if passes_filters(doc, filters)]


def _sort_key(sort_by: SortBy):
    if sort_by == SortBy.DATE:
        return lambda result: document_date(result.document)
    if sort_by == SortBy.SIZE:
        return lambda result: result.document.original_file.size
    if sort_by == SortBy.NAME:
        return lambda result: result.document.original_file.name.lower()
    if sort_by == SortBy.CONFIDENCE:
        return lambda result: result.document.summary.confidence if result.document.summary else 0.0
    return lambda result: result.relevance_score


def sort_results(
    results: List[SearchResult],
    sort_by: SortBy = SortBy.RELEVANCE,
    sort_order: SortOrder = SortOrder.DESC
) -> List[SearchResult]:
    """Sort results by the given field. Ties keep their incoming order."""
    return sorted(results, key=_sort_key(sort_by), reverse=sort_order == SortOrder.DESC)


def extract_context(text: str, match_start: int, match_end: int, context_length: int = SEARCH_CONTEXT_LENGTH) -> str:
    """Text around a match, with '...' marking each truncated side."""
    start = max(0, match_start - context_length)
    end = min(len(text), match_end + context_length)
    context = text[start:end]
    if start > 0:
        context = "..." + context
    if end < len(text):
        context = context + "..."
    return context


def term_pattern(term: str, flags: int = re.IGNORECASE) -> re.Pattern:
    return re.compile(rf"\b{re.escape(term)}\b", flags)


def highlight_terms(text: str, query: str) -> str:
    """Wrap every whole-word occurrence of a query term in <mark> tags."""
    highlighted = text
    for term in dict.fromkeys(re.findall(r"\b\w+\b", query.lower())):
        highlighted = term_pattern(term).sub(lambda m: f"<mark>{m.group(0)}</mark>", highlighted)
    return highlighted


def extract_snippets(
    text: str,
    terms: List[str],
    score: float = 0.0,
    query: Optional[str] = None,
    max_snippets: int = MAX_SNIPPETS,
    snippet_length: int = SEARCH_SNIPPET_LENGTH
) -> List[SearchSnippet]:
    """
    Build up to max_snippets non-overlapping snippets around term matches.

    Terms are visited in order and each term's matches left to right. A
    match only opens a new snippet once it lies past the end of the previous
    snippet plus snippet_length.

    Args:
        text: Source text
        terms: Lower-cased query terms
        score: Score attached to each snippet
        query: When given, snippets carry a highlighted copy of their text
        max_snippets: Maximum number of snippets
        snippet_length: Characters after the match start covered by a snippet
    """
    snippets: List[SearchSnippet] = []
    last_end: Optional[int] = None

    for term in terms:
        for match in term_pattern(term).finditer(text):
            if len(snippets) >= max_snippets:
                return snippets
            if last_end is not None and match.start() <= last_end + snippet_length:
                continue
            start = max(0, match.start() - SNIPPET_LEAD)
            end = min(len(text), match.start() + snippet_length)
            snippet_text = text[start:end]
            snippets.append(SearchSnippet(
                text=snippet_text,
                start_index=start,
                end_index=end,
                score=score,
                context=extract_context(text, match.start(), match.start() + len(term)),
                highlighted_text=highlight_terms(snippet_text, query) if query else None,
            ))
            last_end = end

    return snippets
