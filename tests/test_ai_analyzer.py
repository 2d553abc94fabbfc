import asyncio
import json

import httpx
import pytest

from docintel.api.exceptions import AIServiceError, AnalysisFailedError
from docintel.models.document import DocumentType, EntityType
from docintel.services.ai_analyzer import (
    TRUNCATION_MARKER,
    AIAnalyzer,
    extract_json_candidate,
    map_to_summary,
    truncate_content,
)
from docintel.services.fallback_analysis import (
    FALLBACK_MODEL_NAME,
    AnalysisRequest,
    classify_document,
    create_fallback_analysis,
)
from docintel.services.providers import GeminiProvider
from docintel.services.providers.base import AIProvider


class ScriptedProvider(AIProvider):
    """Provider that returns a fixed reply, raises, or hangs."""

    name = "scripted"

    def __init__(self, reply=None, error=None, delay=0.0):
        super().__init__("scripted-model")
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    async def generate_text(self, parts, temperature=0.3, max_output_tokens=1024):
        self.calls.append(parts)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply

    async def upload_file(self, file_bytes, filename, mime_type):
        raise AIServiceError("uploads not supported")


def make_request(text="The quarterly report covers revenue. Costs fell sharply this year. Margins improved overall.",
                 name="report.pdf", word_count=None):
    return AnalysisRequest(
        document_id="doc_1",
        document_name=name,
        text=text,
        preview=text[:50],
        chunks=[text] if text else [],
        word_count=len(text.split()) if word_count is None else word_count,
        page_count=1,
        extraction_method="pdf",
        language="en",
    )


REMOTE_REPLY = json.dumps({
    "title": "Quarterly Report",
    "summaryParagraphs": ["Revenue grew.", "  ", "Costs fell."],
    "keyTopics": [f"topic{i}" for i in range(15)],
    "keyInsights": ["Margins improved"],
    "documentType": "Report",
    "entities": [
        {"name": "Acme Corp", "type": "organization", "description": "Issuer"},
        {"name": "Mars", "type": "planet"},
        {"type": "person"},
    ],
    "recommendations": ["Keep cutting costs"],
    "confidence": 1.7,
})


# Helpers

def test_truncate_content_prefers_sentence_boundary():
    text = "First sentence. Second sentence. Third sentence that is long."
    truncated = truncate_content(text, max_chars=40)
    assert truncated == "First sentence. Second sentence." + TRUNCATION_MARKER


def test_truncate_content_leaves_short_text_alone():
    assert truncate_content("short", max_chars=40) == "short"


def test_extract_json_candidate_ignores_surrounding_prose():
    assert extract_json_candidate('Sure! Here it is: {"title": "X"} Hope that helps.') == {"title": "X"}


@pytest.mark.parametrize("raw", ["no json here", "{not valid json}", "[1, 2] }"])
def test_extract_json_candidate_rejects_bad_output(raw):
    with pytest.raises(AnalysisFailedError):
        extract_json_candidate(raw)


def test_map_to_summary_normalizes_fields():
    summary = map_to_summary(json.loads(REMOTE_REPLY), make_request())
    assert summary.title == "Quarterly Report"
    assert summary.main_points == ["Revenue grew.", "Costs fell."]
    assert len(summary.key_topics) == 10
    assert summary.document_type == DocumentType.REPORT
    assert [e.text for e in summary.entities] == ["Acme Corp", "Mars"]
    assert summary.entities[1].type == EntityType.OTHER
    assert all(e.confidence == 0.7 for e in summary.entities)
    assert summary.confidence == 1.0


def test_map_to_summary_defaults_missing_fields():
    request = make_request()
    summary = map_to_summary({"confidence": "high"}, request)
    assert summary.title == request.document_name
    assert summary.main_points == [request.preview]
    assert summary.document_type == DocumentType.UNKNOWN
    assert summary.confidence == 0.6


# Fallback

def test_fallback_handles_empty_text():
    analysis = create_fallback_analysis(make_request(text="", word_count=0))
    assert analysis.model_used == FALLBACK_MODEL_NAME
    assert analysis.summary.main_points[0] == "Document content successfully processed"
    assert analysis.summary.title == "report"


def test_fallback_summary_shape():
    analysis = create_fallback_analysis(make_request())
    assert analysis.summary.document_type == DocumentType.REPORT
    assert analysis.summary.main_points[-1] == "Content extracted using pdf method"
    assert analysis.full_analysis.startswith('This appears to be a report document titled "report.pdf".')
    assert analysis.summary.confidence == 0.75
    assert 0.75 <= analysis.confidence <= 1.0


def test_fallback_mentions_size_of_long_documents():
    analysis = create_fallback_analysis(make_request(word_count=1500))
    assert "Comprehensive document with 1500 words across 1 page(s)" in analysis.summary.main_points


@pytest.mark.parametrize("text, expected", [
    ("Course syllabus for the semester", DocumentType.POLICY),
    ("Abstract ... conclusion", DocumentType.RESEARCH),
    ("Dear team, kind regards", DocumentType.LETTER),
    ("Slide one of the deck", DocumentType.PRESENTATION),
    ("Step-by-step instructions", DocumentType.MANUAL),
    ("nothing in particular", DocumentType.UNKNOWN),
])
def test_classify_document(text, expected):
    assert classify_document(text, len(text.split()), 1)[0] == expected


# Analyzer

@pytest.mark.asyncio
async def test_analyzer_without_provider_uses_fallback():
    analysis = await AIAnalyzer(provider=None).analyze(make_request())
    assert analysis.model_used == FALLBACK_MODEL_NAME


@pytest.mark.asyncio
async def test_analyzer_maps_remote_reply():
    provider = ScriptedProvider(reply=f"```json\n{REMOTE_REPLY}\n```")
    analysis = await AIAnalyzer(provider=provider).analyze(make_request())

    assert analysis.model_used == "scripted-model"
    assert analysis.summary.title == "Quarterly Report"
    assert analysis.key_insights == ["Margins improved"]
    assert analysis.recommendations == ["Keep cutting costs"]
    assert analysis.full_analysis == "Revenue grew.\n\nCosts fell."
    # Instructions and content are sent as separate parts
    assert len(provider.calls[0]) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("provider", [
    ScriptedProvider(error=AIServiceError("boom", status_code=500)),
    ScriptedProvider(reply="not json at all"),
    ScriptedProvider(reply="   "),
    ScriptedProvider(error=RuntimeError("unexpected")),
])
async def test_analyzer_falls_back_on_remote_failure(provider):
    analysis = await AIAnalyzer(provider=provider).analyze(make_request())
    assert analysis.model_used == FALLBACK_MODEL_NAME


@pytest.mark.asyncio
async def test_analyzer_times_out_to_fallback():
    provider = ScriptedProvider(reply=REMOTE_REPLY, delay=1.0)
    analysis = await AIAnalyzer(provider=provider, timeout=0.05).analyze(make_request())
    assert analysis.model_used == FALLBACK_MODEL_NAME


@pytest.mark.asyncio
async def test_analyzer_with_gemini_transport_error_falls_back():
    provider = GeminiProvider(
        api_key="test-key",
        transport=httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable")),
    )
    analysis = await AIAnalyzer(provider=provider).analyze(make_request())
    assert analysis.model_used == FALLBACK_MODEL_NAME
    await provider.aclose()


@pytest.mark.asyncio
async def test_gemini_generate_text_sends_parts_and_reads_candidate():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": REMOTE_REPLY}]}}]})

    provider = GeminiProvider(api_key="k", model="gemini-x", transport=httpx.MockTransport(handler))
    analysis = await AIAnalyzer(provider=provider).analyze(make_request())

    assert analysis.model_used == "gemini-x"
    assert ":generateContent" in seen["url"]
    assert "key=k" in seen["url"]
    assert [list(part) for part in seen["body"]["contents"][0]["parts"]] == [["text"], ["text"]]
    await provider.aclose()
