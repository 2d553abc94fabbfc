"""
Local fallback analysis.

Deterministic, offline analysis used whenever the remote model is
unavailable or returns something unusable. Produces the same
DocumentAnalysis shape as the remote path; only confidence and the
`model_used` provenance differ.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..core.logging_config import get_logger
from ..models.document import DocumentAnalysis, DocumentSummary, DocumentType
from ..utils.document_utils import strip_extension
from ..utils.keywords import extract_keywords

logger = get_logger(__name__)

FALLBACK_MODEL_NAME = "local-fallback"
FALLBACK_SUMMARY_CONFIDENCE = 0.75

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_MIN_SENTENCE_LENGTH = 10


@dataclass
class AnalysisRequest:
    """Everything the analyzer needs to know about one extracted document."""
    document_id: str
    document_name: str
    text: str
    preview: str
    chunks: List[str]
    word_count: int
    page_count: Optional[int] = None
    extraction_method: str = "unknown"
    language: Optional[str] = None


def split_sentences(text: str) -> List[str]:
    """Sentences longer than ten characters, trimmed."""
    return [s.strip() for s in _SENTENCE_SPLIT.split(text or "") if len(s.strip()) > _MIN_SENTENCE_LENGTH]


def classify_document(text: str, word_count: int, sentence_count: int) -> Tuple[DocumentType, float]:
    """
    Keyword-based document type classification.

    Rules are checked in order and the first match wins.

    Returns:
        (document type, confidence of the classification)
    """
    text_lower = (text or "").lower()

    def has_any(*words: str) -> bool:
        return any(word in text_lower for word in words)

    if has_any("curriculum", "syllabus", "course", "semester"):
        return DocumentType.POLICY, 0.95 if has_any("nep", "education policy") else 0.85
    if (
        ("abstract" in text_lower and "conclusion" in text_lower)
        or ("methodology" in text_lower and "results" in text_lower)
        or has_any("literature review", "references")
    ):
        return DocumentType.RESEARCH, 0.90
    if has_any("report", "analysis", "findings"):
        return DocumentType.REPORT, 0.90 if has_any("executive summary", "recommendations") else 0.80
    if has_any("dear", "sincerely", "regards"):
        return DocumentType.LETTER, 0.85
    if has_any("slide", "presentation", "outline"):
        return DocumentType.PRESENTATION, 0.75
    if has_any("manual", "guide", "instructions", "step-by-step", "how to"):
        return DocumentType.MANUAL, 0.85
    if word_count > 500 and sentence_count > 10:
        return DocumentType.ARTICLE, 0.70
    return DocumentType.UNKNOWN, 0.5


def create_fallback_analysis(request: AnalysisRequest, processing_time_ms: float = 0.0) -> DocumentAnalysis:
    """
    Build an analysis from the document's own content.

    Never raises for any text input, including the empty string.
    """
    text = request.text or ""
    sentences = split_sentences(text)
    lead = ". ".join(sentences[:3])
    topics = extract_keywords(text)
    document_type, type_confidence = classify_document(text, request.word_count, len(sentences))
    pages = request.page_count or 1

    main_points = [lead or "Document content successfully processed"]
    if request.word_count > 1000:
        main_points.append(f"Comprehensive document with {request.word_count} words across {pages} page(s)")
    main_points.append(f"Content extracted using {request.extraction_method} method")

    full_analysis = f'This appears to be a {document_type.value} document titled "{request.document_name}".'
    if lead:
        full_analysis += f" {lead}."

    summary = DocumentSummary(
        title=strip_extension(request.document_name) or request.document_name,
        main_points=main_points,
        key_topics=topics,
        document_type=document_type,
        entities=[],
        word_count=request.word_count,
        page_count=request.page_count,
        language=request.language or "en",
        confidence=FALLBACK_SUMMARY_CONFIDENCE,
    )

    logger.debug(
        f"Fallback analysis for {request.document_id}: {document_type.value} "
        f"({type_confidence:.2f}), {len(topics)} topics"
    )

    return DocumentAnalysis(
        summary=summary,
        full_analysis=full_analysis,
        key_insights=[
            "Document processed successfully with enhanced local analysis",
            f"File contains {request.word_count} words across {pages} page(s)",
            f"Key topics identified: {', '.join(topics[:3])}",
            f"Document type detected: {document_type.value} ({round(type_confidence * 100)}% confidence)",
        ],
        recommendations=[
            "Document is ready for Q&A and further analysis",
            "Use chat interface to ask specific questions about the content",
        ],
        confidence=min(1.0, max(FALLBACK_SUMMARY_CONFIDENCE, type_confidence)),
        processing_time_ms=processing_time_ms,
        model_used=FALLBACK_MODEL_NAME,
    )
