"""
Search Service - full-text, metadata, semantic and hybrid document search.

The engine works on an in-memory list of documents handed in by the caller.
Results and suggestions are cached for a few minutes; callers clear the
cache when the document set changes.
"""
import json
import re
import time
from typing import Dict, List, Optional

from ..core.config import (
    SEARCH_MAX_SUGGESTIONS,
    SEARCH_MIN_QUERY_LENGTH,
    SEARCH_SIMILARITY_STRATEGY,
    SEARCH_SIMILARITY_THRESHOLD,
)
from ..core.logging_config import get_logger
from ..models.document import ProcessedDocument
from ..models.search import (
    CacheStats,
    MatchReason,
    SearchFilters,
    SearchOptions,
    SearchResult,
    SearchResults,
    SearchSnippet,
    SearchType,
    SimilarDocument,
)
from ..utils.search_utils import apply_filters, extract_snippets, highlight_terms, sort_results
from .search_cache import SearchCache
from .similarity import SimilarityStrategy, get_similarity_strategy

logger = get_logger(__name__)

# Scoring weights
PHRASE_SCORE = 30
TERM_SCORE = 10
TITLE_SCORE = 40
TYPE_IN_QUERY_SCORE = 20
NAME_SCORE = 50
TYPE_SCORE = 40
TAG_SCORE = 30
EXTENSION_SCORE = 20
NOTES_SCORE = 25
MAX_SCORE = 100

SEMANTIC_WEIGHTS = {"title": 0.4, "summary": 0.3, "content": 0.3}
SEMANTIC_MIN_SCORE = 0.2
SEMANTIC_SENTENCE_MIN = 0.3
SEMANTIC_CONTENT_CHARS = 1500
SEMANTIC_BOOST = 10
HYBRID_SEMANTIC_MAX_HITS = 3
SIMILAR_TEXT_WEIGHT = 0.7
SIMILAR_SUMMARY_WEIGHT = 0.3
SIMILAR_MIN_SCORE = 0.1
HIGHLIGHT_PREVIEW_CHARS = 1000

FILTER_SUGGESTIONS = ["Try removing some filters", "Check your filter criteria"]
ERROR_SUGGESTIONS = ["Try a different search term", "Check your spelling"]
COMMON_PATTERNS = [
    "policy documents",
    "research reports",
    "curriculum guidelines",
    "assessment methods",
    "technical documentation",
]

_TERMS = re.compile(r"\b\w+\b")
_SUGGESTION_TERMS = re.compile(r"\b\w{3,}\b")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


class DocumentSearchEngine:
    """
    Searches processed documents.

    Args:
        similarity: Strategy used by semantic search (defaults to the configured one)
        cache: Result cache (defaults to a fresh SearchCache)
    """

    def __init__(self, similarity: Optional[SimilarityStrategy] = None, cache: Optional[SearchCache] = None):
        self.similarity = similarity or get_similarity_strategy(SEARCH_SIMILARITY_STRATEGY)
        self.cache = cache or SearchCache()

    # Public API
    def search(
        self,
        documents: List[ProcessedDocument],
        query: str,
        filters: Optional[SearchFilters] = None,
        options: Optional[SearchOptions] = None
    ) -> SearchResults:
        """
        Search documents. Never raises.

        Args:
            documents: Candidate documents
            query: Free-text query
            filters: Restrictions applied before scoring
            options: Search type, sorting, result cap and snippet options

        Returns:
            SearchResults; suggestions are filled when nothing matched
        """
        started = time.perf_counter()
        filters = filters or SearchFilters()
        options = options or SearchOptions()
        query = query or ""

        def _elapsed() -> float:
            return round((time.perf_counter() - started) * 1000, 3)

        def _empty(suggestions: List[str]) -> SearchResults:
            return SearchResults(
                query=query,
                search_type=options.search_type,
                filters=filters,
                suggestions=suggestions,
                search_time_ms=_elapsed(),
            )

        try:
            cache_key = self._cache_key(query, filters, options)
            cached = self.cache.get_results(cache_key)
            if cached is not None:
                return cached

            normalized = query.strip().lower()
            if len(normalized) < SEARCH_MIN_QUERY_LENGTH:
                return _empty(self.generate_suggestions(documents, normalized))

            filtered = apply_filters(documents, filters)
            if not filtered:
                return _empty(list(FILTER_SUGGESTIONS))

            if options.search_type == SearchType.FULL_TEXT:
                hits = self._full_text(filtered, normalized, options)
            elif options.search_type == SearchType.METADATA:
                hits = self._metadata(filtered, normalized)
            elif options.search_type == SearchType.SEMANTIC:
                threshold = options.similarity_threshold
                hits = self._semantic(
                    filtered, normalized, options,
                    SEMANTIC_MIN_SCORE if threshold is None else threshold,
                )
            else:
                hits = self._hybrid(filtered, normalized, options)

            if not options.include_snippets:
                for hit in hits:
                    hit.snippets = []

            ordered = sort_results(hits, options.sort_by, options.sort_order)
            limited = ordered[:options.max_results]

            results = SearchResults(
                results=limited,
                total_results=len(ordered),
                query=query,
                search_type=options.search_type,
                filters=filters,
                suggestions=[] if limited else self.generate_suggestions(documents, normalized),
                search_time_ms=_elapsed(),
            )
            self.cache.set_results(cache_key, results)
            return results

        except Exception as e:
            logger.error(f"Search failed for '{query}': {e}", exc_info=True)
            return _empty(list(ERROR_SUGGESTIONS))

    def find_similar_documents(
        self,
        target: ProcessedDocument,
        documents: List[ProcessedDocument],
        limit: int = 5,
        threshold: float = SIMILAR_MIN_SCORE
    ) -> List[SimilarDocument]:
        """
        Documents whose text and summary resemble the target's, most similar first.

        Args:
            target: Reference document
            documents: Candidates (the target itself is skipped)
            limit: Maximum number of results
            threshold: Minimum combined similarity

        Returns:
            Similar documents; empty when the target has no extracted text
        """
        if not target.extracted_text:
            return []

        target_summary = self._main_points(target, " ")
        similar: List[SimilarDocument] = []
        for doc in documents:
            if doc.id == target.id or not doc.extracted_text:
                continue
            text_similarity = self.similarity.score(target.extracted_text, doc.extracted_text)
            summary_similarity = self.similarity.score(target_summary, self._main_points(doc, " "))
            score = text_similarity * SIMILAR_TEXT_WEIGHT + summary_similarity * SIMILAR_SUMMARY_WEIGHT
            if score > threshold:
                similar.append(SimilarDocument(document=doc, similarity=round(score, 4)))

        similar.sort(key=lambda item: item.similarity, reverse=True)
        return similar[:limit]

    def generate_suggestions(self, documents: List[ProcessedDocument], partial_query: str = "") -> List[str]:
        """
        Query suggestions drawn from the documents' vocabulary.

        Document types and common phrases come first, then the most frequent
        terms of file names, titles, main points, topics and tags. Only
        entries containing the partial query are kept; when none do, the
        document types and common phrases are returned unfiltered.
        """
        partial = (partial_query or "").strip().lower()
        cache_key = f"suggestions-{partial}"
        cached = self.cache.get_suggestions(cache_key)
        if cached is not None:
            return cached

        try:
            term_counts: Dict[str, int] = {}
            for doc in documents:
                summary = doc.summary
                text = " ".join([
                    doc.original_file.name,
                    summary.title if summary else "",
                    " ".join(summary.main_points) if summary else "",
                    " ".join(summary.key_topics) if summary else "",
                    " ".join(doc.tags),
                ]).lower()
                for word in _SUGGESTION_TERMS.findall(text):
                    term_counts[word] = term_counts.get(word, 0) + 1

            terms = [
                term for term, _ in sorted(term_counts.items(), key=lambda item: item[1], reverse=True)
                if not partial or partial in term
            ]

            document_types = [doc.summary.document_type.value for doc in documents if doc.summary is not None]
            leading = [doc_type for doc_type in document_types if not partial or partial in doc_type]
            leading.extend(pattern for pattern in COMMON_PATTERNS if not partial or partial in pattern)

            suggestions = list(dict.fromkeys(leading + terms))[:SEARCH_MAX_SUGGESTIONS]
            if not suggestions:
                # Nothing contains the partial query: offer the general vocabulary
                suggestions = list(dict.fromkeys(document_types + COMMON_PATTERNS))[:SEARCH_MAX_SUGGESTIONS]
        except Exception as e:
            logger.error(f"Failed to generate suggestions: {e}", exc_info=True)
            return []

        self.cache.set_suggestions(cache_key, suggestions)
        return suggestions

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    # Search strategies
    @staticmethod
    def _cache_key(query: str, filters: SearchFilters, options: SearchOptions) -> str:
        serialized = json.dumps(
            {
                "filters": filters.model_dump(mode="json", exclude_none=True),
                "options": options.model_dump(mode="json", exclude_none=True),
            },
            sort_keys=True,
        )
        return f"{query.strip().lower()}-{serialized}"

    @staticmethod
    def _main_points(doc: ProcessedDocument, separator: str) -> str:
        return separator.join(doc.summary.main_points) if doc.summary else ""

    def _full_text(self, documents: List[ProcessedDocument], query: str, options: SearchOptions) -> List[SearchResult]:
        terms = _TERMS.findall(query)
        if not terms:
            return []

        results: List[SearchResult] = []
        for doc in documents:
            summary = doc.summary
            searchable = " ".join([
                doc.original_file.name,
                summary.title if summary else "",
                doc.extracted_text or "",
                self._main_points(doc, " "),
                " ".join(summary.key_topics) if summary else "",
                " ".join(doc.tags),
                doc.notes or "",
            ]).lower()

            score = 0
            match_count = 0
            if query in searchable:
                score += PHRASE_SCORE
                match_count += 1
            for term in terms:
                occurrences = len(re.findall(rf"\b{re.escape(term)}\b", searchable))
                if occurrences:
                    score += occurrences * TERM_SCORE
                    match_count += 1

            title_hit = bool(summary and query in summary.title.lower())
            if title_hit:
                score += TITLE_SCORE
            if summary and summary.document_type.value in query:
                score += TYPE_IN_QUERY_SCORE

            if score <= 0:
                continue

            snippets: List[SearchSnippet] = []
            if doc.extracted_text and match_count > 0:
                snippets = extract_snippets(
                    doc.extracted_text,
                    terms,
                    score=score / 100,
                    query=query if options.highlight_matches else None,
                )

            if snippets:
                reason = MatchReason.CONTENT
            elif title_hit:
                reason = MatchReason.TITLE
            else:
                reason = MatchReason.METADATA

            results.append(SearchResult(
                document=doc,
                relevance_score=min(MAX_SCORE, score),
                match_reason=reason,
                snippets=snippets,
                highlighted_content=self._highlighted(doc, query, options),
            ))
        return results

    def _metadata(self, documents: List[ProcessedDocument], query: str) -> List[SearchResult]:
        results: List[SearchResult] = []
        for doc in documents:
            score = 0
            if query in doc.original_file.name.lower():
                score += NAME_SCORE
            if doc.summary and query in doc.summary.document_type.value:
                score += TYPE_SCORE
            if any(query in tag.lower() for tag in doc.tags):
                score += TAG_SCORE
            if doc.original_file.extension.lower() == query:
                score += EXTENSION_SCORE
            if doc.notes and query in doc.notes.lower():
                score += NOTES_SCORE

            if score > 0:
                results.append(SearchResult(
                    document=doc,
                    relevance_score=min(MAX_SCORE, score),
                    match_reason=MatchReason.METADATA,
                ))
        return results

    def _semantic(
        self,
        documents: List[ProcessedDocument],
        query: str,
        options: SearchOptions,
        threshold: float
    ) -> List[SearchResult]:
        results: List[SearchResult] = []
        for doc in documents:
            if doc.summary is None or not doc.extracted_text:
                continue

            content = doc.extracted_text[:SEMANTIC_CONTENT_CHARS]
            score = (
                self.similarity.score(query, doc.summary.title.lower()) * SEMANTIC_WEIGHTS["title"]
                + self.similarity.score(query, self._main_points(doc, ". ").lower()) * SEMANTIC_WEIGHTS["summary"]
                + self.similarity.score(query, content.lower()) * SEMANTIC_WEIGHTS["content"]
            )
            if score <= threshold:
                continue

            snippets: List[SearchSnippet] = []
            for sentence in _SENTENCE_SPLIT.split(content):
                sentence_score = self.similarity.score(query, sentence.lower())
                if sentence_score > SEMANTIC_SENTENCE_MIN:
                    start = content.find(sentence)
                    snippets.append(SearchSnippet(
                        text=sentence.strip(),
                        start_index=start,
                        end_index=start + len(sentence),
                        score=sentence_score,
                        context=f"Semantic match in {doc.summary.document_type.value}",
                        highlighted_text=highlight_terms(sentence, query) if options.highlight_matches else None,
                    ))

            results.append(SearchResult(
                document=doc,
                relevance_score=round(score * 100),
                match_reason=MatchReason.SEMANTIC,
                snippets=snippets,
                semantic_similarity=score,
                highlighted_content=self._highlighted(doc, query, options),
            ))
        return results

    def _hybrid(self, documents: List[ProcessedDocument], query: str, options: SearchOptions) -> List[SearchResult]:
        merged: Dict[str, SearchResult] = {}
        for result in self._full_text(documents, query, options):
            merged[result.document.id] = result

        for result in self._metadata(documents, query):
            existing = merged.get(result.document.id)
            if existing is None:
                merged[result.document.id] = result
                continue
            existing.relevance_score = max(existing.relevance_score, result.relevance_score)
            if existing.match_reason == MatchReason.CONTENT or result.match_reason == MatchReason.TITLE:
                existing.match_reason = result.match_reason

        if len(merged) < HYBRID_SEMANTIC_MAX_HITS and len(documents) > HYBRID_SEMANTIC_MAX_HITS:
            threshold = options.similarity_threshold
            if threshold is None:
                threshold = SEARCH_SIMILARITY_THRESHOLD
            try:
                for result in self._semantic(documents, query, options, SEMANTIC_MIN_SCORE):
                    existing = merged.get(result.document.id)
                    if existing is not None:
                        existing.relevance_score = min(
                            MAX_SCORE, max(existing.relevance_score, result.relevance_score + SEMANTIC_BOOST)
                        )
                        existing.semantic_similarity = result.semantic_similarity
                    elif result.semantic_similarity > threshold:
                        merged[result.document.id] = result
            except Exception as e:
                logger.warning(f"Semantic search enhancement failed: {e}")

        return list(merged.values())

    @staticmethod
    def _highlighted(doc: ProcessedDocument, query: str, options: SearchOptions) -> Optional[str]:
        if not options.highlight_matches or not doc.extracted_text:
            return None
        return highlight_terms(doc.extracted_text[:HIGHLIGHT_PREVIEW_CHARS], query)
