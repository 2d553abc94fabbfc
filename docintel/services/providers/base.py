"""
Base AI Provider Interface.

All AI providers must inherit from this base class and implement
all abstract methods.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List


class AIProvider(ABC):
    """
    Abstract base class for remote generative-AI providers.

    Providers only move prompts and files over the wire. Prompt building,
    response parsing and the local fallback live in the analyzer.
    """

    name: str = "provider"

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def generate_text(
        self,
        parts: List[str],
        temperature: float = 0.3,
        max_output_tokens: int = 1024
    ) -> str:
        """
        Send prompt parts to the model and return the text completion.

        Args:
            parts: Ordered prompt parts (instructions first, content after)
            temperature: Sampling temperature
            max_output_tokens: Completion length limit

        Returns:
            Completion text (may be empty)

        Raises:
            AIServiceError: On transport, auth or non-2xx failures
        """
        pass

    @abstractmethod
    async def upload_file(self, file_bytes: bytes, filename: str, mime_type: str) -> Dict[str, Any]:
        """
        Upload a raw file to the provider's file store.

        Returns:
            File reference returned by the provider

        Raises:
            AIServiceError: If the upload fails or is not supported
        """
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None
