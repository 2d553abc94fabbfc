"""
Gemini AI Provider.

Talks to the Generative Language REST API with httpx: generateContent for
analysis and OCR, and the files upload endpoint for document Q&A references.
"""
import json
import time
from typing import Any, Dict, List, Optional

import httpx

from ...api.exceptions import AIServiceError
from ...core.config import AI_REQUEST_TIMEOUT, GEMINI_API_KEY, GEMINI_BASE_URL, GEMINI_MODEL
from ...core.logging_config import get_logger
from .base import AIProvider

logger = get_logger(__name__)


def extract_candidate_text(data: Dict[str, Any]) -> str:
    """Join the text parts of the first candidate of a generateContent response."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "\n".join(part.get("text", "") for part in parts if isinstance(part, dict)).strip()


class GeminiProvider(AIProvider):
    """
    AI Provider using the Gemini REST API.

    The httpx client is created lazily and reused. Tests inject a
    transport (httpx.MockTransport) instead of patching the network.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = AI_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(model or GEMINI_MODEL)
        self.api_key = api_key if api_key is not None else GEMINI_API_KEY
        self.base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    def _require_key(self) -> str:
        if not self.api_key:
            raise AIServiceError("Gemini API key is not configured. Set GEMINI_API_KEY to enable remote analysis.")
        return self.api_key

    @property
    def generate_url(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/upload/v1beta/files"

    async def generate_content(
        self,
        parts: List[Dict[str, Any]],
        generation_config: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Call generateContent with raw request parts.

        Args:
            parts: Gemini request parts ({"text": ...} or {"inline_data": ...})
            generation_config: Optional generationConfig block

        Returns:
            Joined candidate text (empty string if the model returned none)

        Raises:
            AIServiceError: On transport failure or non-2xx status (status_code set)
        """
        api_key = self._require_key()
        body: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if generation_config:
            body["generationConfig"] = generation_config

        try:
            response = await self._get_client().post(
                self.generate_url,
                params={"key": api_key},
                headers={"Content-Type": "application/json"},
                json=body,
            )
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: {e}")
            raise AIServiceError(f"Gemini request failed: {e}", details=e) from e

        if response.status_code >= 400:
            detail = response.text
            logger.error(f"Gemini API error: {response.status_code} {detail[:300]}")
            raise AIServiceError(
                f"Gemini API error: {response.status_code}",
                details=detail,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise AIServiceError("Gemini returned a non-JSON response", details=response.text) from e
        return extract_candidate_text(data)

    async def generate_text(
        self,
        parts: List[str],
        temperature: float = 0.3,
        max_output_tokens: int = 1024
    ) -> str:
        return await self.generate_content(
            [{"text": part} for part in parts],
            {
                "temperature": temperature,
                "topP": 0.8,
                "topK": 40,
                "maxOutputTokens": max_output_tokens,
                "responseMimeType": "text/plain",
            },
        )

    async def upload_file(self, file_bytes: bytes, filename: str, mime_type: str) -> Dict[str, Any]:
        """
        Upload a file, trying the raw protocol first and multipart/related second.
        """
        api_key = self._require_key()
        content_type = mime_type or "application/octet-stream"
        client = self._get_client()

        try:
            response = await client.post(
                self.upload_url,
                params={"key": api_key},
                headers={
                    "X-Goog-Upload-Protocol": "raw",
                    "X-Goog-Upload-File-Name": filename,
                    "Content-Type": content_type,
                },
                content=file_bytes,
            )
            if response.status_code < 400:
                return self._parse_upload_response(response)
            logger.warning(f"Raw upload failed ({response.status_code}), falling back to multipart/related")
        except httpx.HTTPError as e:
            logger.warning(f"Raw upload error, trying multipart/related next: {e}")

        boundary = f"docintel-{int(time.time() * 1000)}"
        metadata = json.dumps({"file": {"display_name": filename}})
        body = b"".join([
            f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n".encode(),
            metadata.encode(),
            f"\r\n--{boundary}\r\nContent-Type: {content_type}\r\n\r\n".encode(),
            file_bytes,
            f"\r\n--{boundary}--\r\n".encode(),
        ])

        try:
            response = await client.post(
                self.upload_url,
                params={"key": api_key},
                headers={"Content-Type": f"multipart/related; boundary={boundary}"},
                content=body,
            )
        except httpx.HTTPError as e:
            raise AIServiceError(f"File upload failed: {e}", details=e) from e

        if response.status_code >= 400:
            raise AIServiceError(
                f"File upload failed: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )
        return self._parse_upload_response(response)

    @staticmethod
    def _parse_upload_response(response: httpx.Response) -> Dict[str, Any]:
        try:
            result = response.json()
        except json.JSONDecodeError as e:
            raise AIServiceError("File upload returned a non-JSON response") from e
        if not isinstance(result, dict) or not isinstance(result.get("file"), dict):
            raise AIServiceError("File upload returned invalid response structure - missing file object")
        return result["file"]

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
