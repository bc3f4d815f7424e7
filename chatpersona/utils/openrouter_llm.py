"""
OpenRouter backend using the OpenAI-compatible chat completions API.
"""

from typing import Any, List, Optional

import openai
from openai import OpenAI

from ..models.core import ChatTurn, GenerationResult
from .ai_provider import NO_USER_MESSAGE, AIProvider, AIProviderError
from .config import OpenRouterConfig
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 500

APP_HEADERS = {
    'HTTP-Referer': 'https://github.com/chatpersona/chatpersona',
    'X-Title': 'ChatPersona',
}


class OpenRouterLLM(AIProvider):
    """OpenRouter backend; canonical roles are sent unchanged."""

    name = 'OpenRouter'

    def __init__(self, config: OpenRouterConfig, client: Optional[Any] = None):
        """
        Initialize OpenRouter client.

        Args:
            config: OpenRouterConfig with API key, model and base URL
            client: Pre-built OpenAI client (optional)

        Raises:
            AIProviderError: If no API key is configured
        """
        super().__init__(retry_attempts=config.retry_attempts, retry_delay=config.retry_delay)
        if client is None and not config.api_key:
            raise AIProviderError('Missing OPENROUTER_API_KEY environment variable')

        self.config = config
        self.model_id = config.model_id
        # max_retries=0: rate limits are retried by _call_with_retry
        self.client = client or OpenAI(api_key=config.api_key,
                                       base_url=config.base_url,
                                       default_headers=APP_HEADERS,
                                       max_retries=0)
        logger.info(f'Initialized OpenRouter client with model: {self.model_id}')

    def generate(self,
                 messages: List[ChatTurn],
                 temperature: Optional[float] = None,
                 max_tokens: Optional[int] = None) -> GenerationResult:
        _, dialogue = self._split_system(messages)
        if not self._has_user_turn(dialogue):
            return GenerationResult(success=False, error=NO_USER_MESSAGE)

        payload = [m.to_dict() for m in messages]

        def complete():
            return self.client.chat.completions.create(model=self.model_id,
                                                       messages=payload,
                                                       temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
                                                       max_tokens=DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens)

        try:
            completion = self._call_with_retry(complete)
        except Exception as e:
            return self._failure(e)

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            logger.error('Empty response content from OpenRouter')
            return GenerationResult(success=False, error='No response from AI')

        return GenerationResult(success=True, text=content.strip())

    def test_connection(self) -> bool:
        result = self.generate([ChatTurn(role='user', content='Hello, reply with just "OK" if you can read this.')],
                               max_tokens=10)
        if not result.success:
            logger.error(f'OpenRouter connection test failed: {result.error}')
        return result.success

    def _is_rate_limited(self, error: Exception) -> bool:
        return isinstance(error, openai.APIStatusError) and error.status_code == 429
