"""
Image OCR Extractor.

Sends images inline (base64) to Gemini and returns the recognized text.
A 400 response gets exactly one retry with the request parts swapped,
which absorbs the model's occasional sensitivity to part ordering.
"""
import asyncio
import base64
from typing import Any, Dict, List, Optional

from ...api.exceptions import AIServiceError, OCRFailedError
from ...core.logging_config import get_logger
from ...models.document import ExtractionMethod
from ...utils.async_utils import run_abortable
from ..providers.gemini_provider import GeminiProvider
from .base import BaseTextExtractor, ExtractionResult

logger = get_logger(__name__)

OCR_PROMPT = "Extract all readable text from this image. Return only the text content."
OCR_GENERATION_CONFIG = {
    "temperature": 0.1,
    "topK": 1,
    "topP": 1,
    "maxOutputTokens": 8192,
}

_STATUS_MESSAGES = {
    400: "Gemini OCR request was malformed (400). This may be due to invalid image format or API changes.",
    401: "Gemini OCR rejected the request. Double-check that your API key is valid.",
    404: "Gemini OCR endpoint returned 404. Confirm the Generative Language API is enabled and the model is available.",
}

_DEFAULT_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


class OCRExtractor(BaseTextExtractor):
    """Extractor for images via Gemini OCR."""

    def __init__(self, file_extension: str, provider: Optional[GeminiProvider] = None):
        super().__init__(file_extension, f"{file_extension.upper()} image", ExtractionMethod.IMAGE_OCR)
        self.provider = provider if provider is not None else GeminiProvider()

    def _build_parts(self, encoded: str, mime_type: str, image_first: bool) -> List[Dict[str, Any]]:
        image_part = {"inline_data": {"mime_type": mime_type, "data": encoded}}
        text_part = {"text": OCR_PROMPT}
        return [image_part, text_part] if image_first else [text_part, image_part]

    async def _request(self, parts: List[Dict[str, Any]], abort_signal: Optional[asyncio.Event]) -> str:
        return await run_abortable(
            self.provider.generate_content(parts, OCR_GENERATION_CONFIG),
            abort_signal,
            "OCR request aborted",
        )

    async def extract(
        self,
        file_bytes: bytes,
        mime_type: Optional[str] = None,
        abort_signal: Optional[asyncio.Event] = None
    ) -> ExtractionResult:
        """
        Run OCR on an image.

        Raises:
            AIServiceError: Missing key, transport failure or non-2xx status
            OCRFailedError: The model returned no text
            ProcessingAbortedError: The abort signal fired mid-request
        """
        if not self.provider.api_key:
            raise AIServiceError("Gemini API key is not configured. Set GEMINI_API_KEY to enable OCR.")

        mime_type = mime_type or _DEFAULT_MIME_TYPES.get(self.file_extension, "image/png")
        encoded = base64.b64encode(file_bytes).decode("ascii")
        warnings: List[str] = []

        try:
            text = await self._request(self._build_parts(encoded, mime_type, image_first=False), abort_signal)
        except AIServiceError as e:
            message = _STATUS_MESSAGES.get(e.status_code, f"Gemini OCR failed: {e.message}")
            if e.status_code != 400:
                raise AIServiceError(message, details=e.details, status_code=e.status_code) from e

            logger.info("Retrying OCR with alternate part ordering")
            try:
                text = await self._request(self._build_parts(encoded, mime_type, image_first=True), abort_signal)
            except AIServiceError as retry_error:
                logger.warning(f"OCR retry failed: {retry_error.message}")
                raise AIServiceError(message, details=e.details, status_code=400) from retry_error
            warnings.append("Used retry")

        if not text:
            raise OCRFailedError("Gemini OCR returned an empty response.")

        logger.info(f"OCR extraction completed: {len(text)} characters extracted")
        return ExtractionResult(
            text=text,
            method=self.method,
            warnings=warnings,
            ocr_model=self.provider.model,
        )
