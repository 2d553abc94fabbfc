"""
Remote model providers used for analysis, OCR and file references.

A new provider subclasses AIProvider, implements generate_text() and
upload_file(), and is registered in AIProviderFactory.get_provider().
"""
from .base import AIProvider
from .factory import AIProviderFactory
from .gemini_provider import GeminiProvider, extract_candidate_text
from .openrouter_provider import OpenRouterProvider

__all__ = [
    "AIProvider",
    "AIProviderFactory",
    "GeminiProvider",
    "OpenRouterProvider",
    "extract_candidate_text",
]
