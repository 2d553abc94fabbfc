import asyncio
import base64
import json

import httpx
import pytest

from docintel.api.exceptions import (
    AIServiceError,
    ErrorKind,
    ExtractionFailedError,
    OCRFailedError,
    ProcessingAbortedError,
    UnsupportedTypeError,
)
from docintel.models.document import ExtractionMethod
from docintel.services.providers import GeminiProvider
from docintel.services.text_extractors import (
    DOCXExtractor,
    OCRExtractor,
    PDFExtractor,
    TextExtractor,
    TextExtractorFactory,
)


def gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def ocr_provider(handler):
    return GeminiProvider(api_key="test-key", model="gemini-test", transport=httpx.MockTransport(handler))


# Local formats

@pytest.mark.asyncio
async def test_pdf_extraction_reads_every_page(pdf_factory):
    result = await PDFExtractor().extract(pdf_factory(["Quarterly report", "Revenue grew"]))
    assert result.method == ExtractionMethod.PDF
    assert result.page_count == 2
    assert "Quarterly report" in result.text
    assert "Revenue grew" in result.text
    assert result.warnings == []


@pytest.mark.asyncio
async def test_pdf_empty_page_is_a_warning_not_a_failure(pdf_factory):
    result = await PDFExtractor().extract(pdf_factory(["Only page with text", ""]))
    assert result.page_count == 2
    assert result.warnings == ["Page 2 appears to be empty or image-based."]


@pytest.mark.asyncio
async def test_malformed_pdf_raises_extraction_failed():
    with pytest.raises(ExtractionFailedError) as exc_info:
        await PDFExtractor().extract(b"this is not a pdf")
    assert exc_info.value.kind == ErrorKind.EXTRACTION_FAILED


@pytest.mark.asyncio
async def test_docx_extraction_joins_paragraphs(docx_factory):
    result = await DOCXExtractor().extract(docx_factory(["First paragraph", "", "Second paragraph"]))
    assert result.method == ExtractionMethod.DOCX
    assert result.text == "First paragraph\nSecond paragraph"


@pytest.mark.asyncio
async def test_txt_extraction_replaces_invalid_utf8():
    result = await TextExtractor().extract(b"caf\xe9 menu")
    assert result.method == ExtractionMethod.TXT
    assert "menu" in result.text
    assert result.warnings == ["File is not valid UTF-8; undecodable bytes were replaced."]


@pytest.mark.asyncio
async def test_extraction_with_preset_abort_signal():
    signal = asyncio.Event()
    signal.set()
    with pytest.raises(ProcessingAbortedError):
        await TextExtractor().extract(b"hello", abort_signal=signal)


# Factory

def test_factory_resolves_supported_extensions():
    factory = TextExtractorFactory(ocr_provider=ocr_provider(lambda request: httpx.Response(200)))
    assert isinstance(factory.get_extractor_by_extension("PDF"), PDFExtractor)
    assert isinstance(factory.get_extractor_by_extension(".docx"), DOCXExtractor)
    assert isinstance(factory.get_extractor_by_extension("jpeg"), OCRExtractor)
    assert set(factory.get_supported_extensions()) >= {"pdf", "docx", "txt", "jpg", "jpeg", "png", "webp"}


def test_factory_rejects_unknown_extension():
    factory = TextExtractorFactory(ocr_provider=ocr_provider(lambda request: httpx.Response(200)))
    assert not factory.is_extension_supported("xlsx")
    with pytest.raises(UnsupportedTypeError) as exc_info:
        factory.get_extractor_by_extension("xlsx")
    assert exc_info.value.kind == ErrorKind.UNSUPPORTED_TYPE


# OCR

@pytest.mark.asyncio
async def test_ocr_sends_prompt_then_inline_image():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=gemini_reply("Invoice #42"))

    extractor = OCRExtractor("png", provider=ocr_provider(handler))
    result = await extractor.extract(b"\x89PNG fake", "image/png")

    assert result.text == "Invoice #42"
    assert result.method == ExtractionMethod.IMAGE_OCR
    assert result.ocr_model == "gemini-test"
    assert result.warnings == []

    parts = seen[0]["contents"][0]["parts"]
    assert "text" in parts[0]
    assert parts[1]["inline_data"]["mime_type"] == "image/png"
    assert parts[1]["inline_data"]["data"] == base64.b64encode(b"\x89PNG fake").decode("ascii")
    assert seen[0]["generationConfig"]["temperature"] == 0.1


@pytest.mark.asyncio
async def test_ocr_retries_once_with_image_first_after_400():
    calls = []

    def handler(request):
        parts = json.loads(request.content)["contents"][0]["parts"]
        calls.append(parts)
        if len(calls) == 1:
            return httpx.Response(400, json={"error": {"message": "bad request"}})
        return httpx.Response(200, json=gemini_reply("Recovered text"))

    result = await OCRExtractor("jpg", provider=ocr_provider(handler)).extract(b"jpeg bytes", "image/jpeg")

    assert len(calls) == 2
    assert "inline_data" in calls[1][0]
    assert result.text == "Recovered text"
    assert result.warnings == ["Used retry"]


@pytest.mark.asyncio
async def test_ocr_second_400_is_reported_as_malformed_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, text="bad")

    with pytest.raises(AIServiceError) as exc_info:
        await OCRExtractor("png", provider=ocr_provider(handler)).extract(b"img", "image/png")
    assert len(calls) == 2
    assert exc_info.value.status_code == 400
    assert "malformed" in exc_info.value.message


@pytest.mark.asyncio
async def test_ocr_401_maps_to_api_key_message_without_retry():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, text="unauthorized")

    with pytest.raises(AIServiceError) as exc_info:
        await OCRExtractor("png", provider=ocr_provider(handler)).extract(b"img", "image/png")
    assert len(calls) == 1
    assert exc_info.value.kind == ErrorKind.GEMINI_API_ERROR
    assert "API key" in exc_info.value.message


@pytest.mark.asyncio
async def test_ocr_empty_response_is_ocr_failure():
    handler = lambda request: httpx.Response(200, json={"candidates": []})  # noqa: E731
    with pytest.raises(OCRFailedError):
        await OCRExtractor("webp", provider=ocr_provider(handler)).extract(b"img", "image/webp")


@pytest.mark.asyncio
async def test_ocr_without_api_key_fails_fast():
    provider = GeminiProvider(api_key="", transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with pytest.raises(AIServiceError) as exc_info:
        await OCRExtractor("png", provider=provider).extract(b"img", "image/png")
    assert "GEMINI_API_KEY" in exc_info.value.message


@pytest.mark.asyncio
async def test_ocr_abort_mid_request():
    release = asyncio.Event()

    async def handler(request):
        await release.wait()
        return httpx.Response(200, json=gemini_reply("too late"))

    signal = asyncio.Event()
    extractor = OCRExtractor("png", provider=ocr_provider(handler))
    task = asyncio.ensure_future(extractor.extract(b"img", "image/png", signal))
    await asyncio.sleep(0.05)
    signal.set()

    with pytest.raises(ProcessingAbortedError):
        await task
    release.set()
