"""
Resolve the configured AI provider once per process.
"""

import threading
from typing import Optional

from .ai_provider import AIProvider, AIProviderError
from .config import AppConfig
from .logging_config import get_logger

logger = get_logger(__name__)

SUPPORTED_PROVIDERS = ('openrouter', 'gemini', 'bedrock')

_instance: Optional[AIProvider] = None
_lock = threading.Lock()


def create_provider(app_config: AppConfig) -> AIProvider:
    """Build a new provider for app_config.ai_provider.

    Args:
        app_config: Application configuration

    Returns:
        AIProvider instance

    Raises:
        AIProviderError: If the provider name is unknown or its credentials are missing
    """
    provider = app_config.ai_provider
    if provider == 'gemini':
        from .gemini_llm import GeminiLLM
        logger.info('Using Google Gemini provider')
        return GeminiLLM(app_config.gemini)
    if provider == 'bedrock':
        from .bedrock_llm import BedrockLLM
        logger.info('Using Amazon Bedrock provider')
        return BedrockLLM(app_config.bedrock_llm)
    if provider == 'openrouter':
        from .openrouter_llm import OpenRouterLLM
        logger.info('Using OpenRouter provider')
        return OpenRouterLLM(app_config.openrouter)

    raise AIProviderError(f'Unknown AI_PROVIDER {provider!r}, expected one of {", ".join(SUPPORTED_PROVIDERS)}')


def get_provider(app_config: Optional[AppConfig] = None) -> AIProvider:
    """Return the process-wide provider, creating it on first use."""
    global _instance
    with _lock:
        if _instance is None:
            if app_config is None:
                from .config import config as default_config
                app_config = default_config
            _instance = create_provider(app_config)
        return _instance
