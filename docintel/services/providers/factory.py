"""
AI Provider Factory.

Manages provider selection and initialization based on configuration.
Uses the Factory pattern to provide plug-and-play AI provider support.
"""
from typing import Optional

from ...core.config import AI_PROVIDER, GEMINI_API_KEY, OPENROUTER_API_KEY
from ...core.logging_config import get_logger
from .base import AIProvider
from .gemini_provider import GeminiProvider
from .openrouter_provider import OpenRouterProvider

logger = get_logger(__name__)


class AIProviderFactory:
    """
    Factory for creating AI provider instances.

    Selects the provider based on:
    1. AI_PROVIDER configuration
    2. Available API keys
    3. None when no key is available, which sends analysis straight
       to the local fallback
    """

    @staticmethod
    def get_provider(provider_type: Optional[str] = None) -> Optional[AIProvider]:
        """
        Get the appropriate AI provider based on configuration.

        Args:
            provider_type: 'gemini', 'openrouter' or 'local' (defaults to AI_PROVIDER)

        Returns:
            AIProvider instance, or None for local-only analysis
        """
        provider_type = (provider_type or AI_PROVIDER).lower()

        if provider_type == "local":
            logger.info("Using local analysis only (configured)")
            return None

        if provider_type == "gemini":
            if GEMINI_API_KEY:
                logger.info("Using Gemini provider")
                return GeminiProvider()
            logger.warning("Gemini API key not configured, checking for OpenRouter...")
            if OPENROUTER_API_KEY:
                logger.info("Using OpenRouter provider as fallback")
                return OpenRouterProvider()
        elif provider_type == "openrouter":
            if OPENROUTER_API_KEY:
                logger.info("Using OpenRouter provider")
                return OpenRouterProvider()
            logger.warning("OpenRouter API key not configured, checking for Gemini...")
            if GEMINI_API_KEY:
                logger.info("Using Gemini provider as fallback")
                return GeminiProvider()
        else:
            logger.warning(f"Unknown provider '{provider_type}', checking available API keys...")
            if GEMINI_API_KEY:
                return GeminiProvider()
            if OPENROUTER_API_KEY:
                return OpenRouterProvider()

        logger.warning("No API keys configured, analysis will use the local fallback")
        return None
