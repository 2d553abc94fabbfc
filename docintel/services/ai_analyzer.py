"""
AI Analyzer.

Builds a structured prompt, asks the configured provider for a strict JSON
report and maps it onto DocumentAnalysis. Any failure of the remote path
(missing provider, transport error, non-2xx, timeout, empty or malformed
output) falls back to the deterministic local analysis, so analyze() always
returns a well-formed result.
"""
import asyncio
import json
import math
import time
from typing import Any, Dict, List, Optional

from ..api.exceptions import AIServiceError, AnalysisFailedError
from ..core.config import AI_REQUEST_TIMEOUT, ANALYSIS_CHAR_BUDGET
from ..core.logging_config import get_logger
from ..models.document import (
    DocumentAnalysis,
    DocumentSummary,
    DocumentType,
    EntityType,
    ExtractedEntity,
)
from .fallback_analysis import AnalysisRequest, create_fallback_analysis
from .providers.base import AIProvider

logger = get_logger(__name__)

TRUNCATION_MARKER = "\n\n[Content truncated for analysis]"
DEFAULT_REMOTE_CONFIDENCE = 0.6
MAX_KEY_TOPICS = 10
ENTITY_CONFIDENCE = 0.7


def build_prompt(request: AnalysisRequest) -> str:
    """Instruction part of the analysis prompt. The document content is sent as a separate part."""
    pages = request.page_count if request.page_count is not None else "unknown"
    language = request.language or "unknown"
    return "\n".join([
        "You are an expert document analyst. Analyze the document content that follows "
        "and produce a concise JSON report.",
        "The JSON object MUST follow this schema exactly:",
        "{",
        '  "title": string,',
        '  "summaryParagraphs": string[2..3],',
        '  "keyTopics": string[],',
        '  "keyInsights": string[],',
        '  "documentType": string,',
        '  "entities": Array<{ name: string, type: string, description: string }>,',
        '  "recommendations": string[],',
        '  "confidence": number between 0 and 1',
        "}",
        "",
        "Guidelines:",
        "- Base all insights strictly on the provided content.",
        "- Prefer short bullet style points (max ~120 characters each).",
        "- Choose documentType from: report, letter, presentation, spreadsheet, policy, invoice, article, image, unknown.",
        "- Only include recommendations if they logically follow from the document.",
        "",
        f'Document metadata: name="{request.document_name}", words={request.word_count}, '
        f"pages={pages}, extraction={request.extraction_method}, language={language}.",
        "Preview snippet:",
        request.preview,
        "",
        "Full document content:",
    ])


def truncate_content(text: str, max_chars: int = ANALYSIS_CHAR_BUDGET) -> str:
    """Cut text to max_chars, preferring the last '. ' boundary, and mark the cut."""
    if len(text) <= max_chars:
        return text
    truncated = text[:max_chars]
    last_sentence = truncated.rfind(". ")
    if last_sentence > 0:
        truncated = truncated[:last_sentence + 1]
    return f"{truncated}{TRUNCATION_MARKER}"


def extract_json_candidate(raw: str) -> Dict[str, Any]:
    """
    Parse the JSON object between the first '{' and the last '}'.

    Raises:
        AnalysisFailedError: If no object can be parsed
    """
    first_brace = raw.find("{")
    last_brace = raw.rfind("}")
    if first_brace == -1 or last_brace < first_brace:
        raise AnalysisFailedError("Analysis response did not contain JSON.")
    try:
        parsed = json.loads(raw[first_brace:last_brace + 1])
    except json.JSONDecodeError as e:
        raise AnalysisFailedError("Analysis response contained invalid JSON.", details=e) from e
    if not isinstance(parsed, dict):
        raise AnalysisFailedError("Analysis response JSON is not an object.")
    return parsed


def _clean_strings(value: Any) -> Optional[List[str]]:
    """Trimmed non-empty strings of a list, or None if value is not a list."""
    if not isinstance(value, list):
        return None
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _clamp_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return DEFAULT_REMOTE_CONFIDENCE
    return min(1.0, max(0.0, float(value)))


def map_to_summary(result: Dict[str, Any], request: AnalysisRequest) -> DocumentSummary:
    """Map the model's JSON onto a DocumentSummary, defaulting missing fields."""
    title = result.get("title")
    main_points = _clean_strings(result.get("summaryParagraphs"))
    topics = _clean_strings(result.get("keyTopics")) or []

    entities = []
    raw_entities = result.get("entities")
    if isinstance(raw_entities, list):
        for entity in raw_entities:
            if not isinstance(entity, dict):
                continue
            name = entity.get("name")
            if not isinstance(name, str) or not name.strip():
                continue
            description = entity.get("description")
            entities.append(ExtractedEntity(
                text=name.strip(),
                type=EntityType.coerce(entity.get("type")),
                description=description.strip() if isinstance(description, str) else None,
                confidence=ENTITY_CONFIDENCE,
            ))

    return DocumentSummary(
        title=title.strip() if isinstance(title, str) and title.strip() else request.document_name,
        main_points=main_points if main_points is not None else [request.preview],
        key_topics=topics[:MAX_KEY_TOPICS],
        document_type=DocumentType.coerce(result.get("documentType")),
        entities=entities,
        word_count=request.word_count,
        page_count=request.page_count,
        language=request.language,
        confidence=_clamp_confidence(result.get("confidence")),
    )


class AIAnalyzer:
    """
    Document analyzer with a remote provider and a local fallback.

    Args:
        provider: Remote AI provider, or None for local-only analysis
        timeout: Upper bound in seconds for the remote call
    """

    def __init__(self, provider: Optional[AIProvider] = None, timeout: float = AI_REQUEST_TIMEOUT):
        self.provider = provider
        self.timeout = timeout

    async def _analyze_remote(self, request: AnalysisRequest, started: float) -> DocumentAnalysis:
        prompt = build_prompt(request)
        content = truncate_content(request.text or "")

        raw = await asyncio.wait_for(
            self.provider.generate_text([prompt, content], temperature=0.3, max_output_tokens=1024),
            timeout=self.timeout,
        )
        if not raw or not raw.strip():
            raise AnalysisFailedError("Empty response from analysis model.")

        parsed = extract_json_candidate(raw)
        summary = map_to_summary(parsed, request)
        recommendations = _clean_strings(parsed.get("recommendations"))

        return DocumentAnalysis(
            summary=summary,
            full_analysis="\n\n".join(summary.main_points),
            key_insights=_clean_strings(parsed.get("keyInsights")) or [],
            recommendations=recommendations,
            confidence=summary.confidence,
            processing_time_ms=(time.perf_counter() - started) * 1000,
            model_used=self.provider.model,
        )

    async def analyze(self, request: AnalysisRequest) -> DocumentAnalysis:
        """
        Analyze a document.

        Never raises; remote failures are logged and answered with the
        local fallback analysis.

        Args:
            request: Extracted document content and metadata

        Returns:
            DocumentAnalysis (model_used tells remote and fallback apart)
        """
        started = time.perf_counter()

        if self.provider is None:
            logger.info(f"No AI provider configured, using local analysis for {request.document_id}")
            return create_fallback_analysis(request, (time.perf_counter() - started) * 1000)

        try:
            analysis = await self._analyze_remote(request, started)
            logger.info(
                f"Remote analysis completed for {request.document_id} "
                f"({analysis.summary.document_type.value}, confidence {analysis.confidence:.2f})"
            )
            return analysis
        except asyncio.TimeoutError:
            logger.warning(f"Analysis timed out after {self.timeout}s for {request.document_id}, using fallback")
        except AIServiceError as e:
            logger.warning(f"AI service error for {request.document_id}: {e.message}, using fallback")
        except AnalysisFailedError as e:
            logger.warning(f"Unusable analysis response for {request.document_id}: {e.message}, using fallback")
        except Exception as e:
            logger.error(f"Unexpected analysis failure for {request.document_id}: {e}", exc_info=True)

        return create_fallback_analysis(request, (time.perf_counter() - started) * 1000)
