"""
Google Gemini backend built on the google-genai SDK.
"""

from typing import Any, List, Optional

from google import genai
from google.genai import errors, types

from ..models.core import ChatTurn, GenerationResult
from .ai_provider import NO_USER_MESSAGE, AIProvider, AIProviderError
from .config import GeminiConfig
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000

# Persona replies are casual chat; the default filters block too much of it
SAFETY_SETTINGS = [
    types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_NONE) for category in (
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]


class GeminiLLM(AIProvider):
    """Gemini chat backend.

    Gemini names the assistant role 'model' and takes the system prompt as a
    separate instruction, so turns are translated before sending. All turns
    but the last become chat history; the last is sent as the live prompt.
    """

    name = 'Gemini'

    def __init__(self, config: GeminiConfig, client: Optional[Any] = None):
        """
        Initialize Gemini client.

        Args:
            config: GeminiConfig with API key and model
            client: Pre-built genai.Client (optional)

        Raises:
            AIProviderError: If no API key is configured
        """
        super().__init__(retry_attempts=config.retry_attempts, retry_delay=config.retry_delay)
        if client is None and not config.api_key:
            raise AIProviderError('Missing GEMINI_API_KEY environment variable')

        self.config = config
        self.model_id = config.model_id
        self.client = client or genai.Client(api_key=config.api_key)
        logger.info(f'Initialized Gemini client with model: {self.model_id}')

    def generate(self,
                 messages: List[ChatTurn],
                 temperature: Optional[float] = None,
                 max_tokens: Optional[int] = None) -> GenerationResult:
        system_instruction, dialogue = self._split_system(messages)
        if not self._has_user_turn(dialogue):
            return GenerationResult(success=False, error=NO_USER_MESSAGE)

        history = [self._to_content(turn) for turn in dialogue[:-1]]
        prompt = dialogue[-1].content

        generation_config = types.GenerateContentConfig(
            system_instruction=system_instruction or None,
            temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
            max_output_tokens=DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens,
            safety_settings=SAFETY_SETTINGS,
        )

        def send() -> str:
            # A fresh chat per attempt so a failed send leaves no partial history behind
            chat = self.client.chats.create(model=self.model_id, config=generation_config, history=history)
            response = chat.send_message(prompt)
            return response.text or ''

        try:
            text = self._call_with_retry(send)
        except Exception as e:
            return self._failure(e)

        if not text.strip():
            logger.error('Empty response content from Gemini')
            return GenerationResult(success=False, error='No response from AI')

        return GenerationResult(success=True, text=text.strip())

    def test_connection(self) -> bool:

        def ping() -> str:
            response = self.client.models.generate_content(model=self.model_id, contents='Hello, reply with just "OK"')
            return response.text or ''

        try:
            return len(self._call_with_retry(ping)) > 0
        except Exception as e:
            logger.error(f'Gemini connection test failed: {e}')
            return False

    def _is_rate_limited(self, error: Exception) -> bool:
        if isinstance(error, errors.APIError):
            return error.code == 429 or error.status == 'RESOURCE_EXHAUSTED'
        return False

    @staticmethod
    def _to_content(turn: ChatTurn) -> types.Content:
        role = 'model' if turn.role == 'assistant' else 'user'
        return types.Content(role=role, parts=[types.Part(text=turn.content)])
