"""
OpenRouter AI Provider.

Provides analysis completions through the OpenRouter API using the OpenAI
SDK. OpenRouter has no file store, so auxiliary uploads are rejected.
"""
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from ...api.exceptions import AIServiceError
from ...core.config import AI_REQUEST_TIMEOUT, OPENROUTER_API_KEY, OPENROUTER_BASE_URL, OPENROUTER_MODEL
from ...core.logging_config import get_logger
from .base import AIProvider

logger = get_logger(__name__)


class OpenRouterProvider(AIProvider):
    """AI Provider using the OpenRouter chat completions API."""

    name = "openrouter"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = AI_REQUEST_TIMEOUT,
        client: Optional[AsyncOpenAI] = None
    ):
        super().__init__(model or OPENROUTER_MODEL)
        self.api_key = api_key if api_key is not None else OPENROUTER_API_KEY
        if client is not None:
            self.client = client
        elif self.api_key:
            self.client = AsyncOpenAI(
                base_url=OPENROUTER_BASE_URL,
                api_key=self.api_key,
                timeout=timeout,
                max_retries=0,
            )
        else:
            self.client = None

    async def generate_text(
        self,
        parts: List[str],
        temperature: float = 0.3,
        max_output_tokens: int = 1024
    ) -> str:
        if not self.client:
            raise AIServiceError("OpenRouter API key not configured")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "\n\n".join(parts)}],
                temperature=temperature,
                max_tokens=max_output_tokens,
            )
        except OpenAIError as e:
            logger.error(f"OpenRouter API Error (Analysis): {e}")
            raise AIServiceError(
                f"OpenRouter API error: {e}",
                details=e,
                status_code=getattr(e, "status_code", None),
            ) from e

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def upload_file(self, file_bytes: bytes, filename: str, mime_type: str) -> Dict[str, Any]:
        raise AIServiceError("OpenRouter does not support file uploads")

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()
