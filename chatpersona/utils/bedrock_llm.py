"""
Amazon Bedrock LLM backend with retry logic and error handling.
"""

from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from ..models.core import ChatTurn, GenerationResult
from .ai_provider import NO_USER_MESSAGE, AIProvider
from .config import BedrockLLMConfig
from .logging_config import get_logger

logger = get_logger(__name__)

# Compared case-insensitively: errors raised mid-stream use camelCase codes such as throttlingException
THROTTLING_ERROR_CODES = {'throttlingexception', 'toomanyrequestsexception', 'servicequotaexceededexception'}


class BedrockLLM(AIProvider):
    """Amazon Bedrock Converse API backend."""

    name = 'Bedrock'

    def __init__(self, config: BedrockLLMConfig, client: Optional[Any] = None):
        """
        Initialize Bedrock LLM client.

        Args:
            config: BedrockLLMConfig instance with connection parameters
            client: Pre-built bedrock-runtime client (optional)
        """
        super().__init__(retry_attempts=config.retry_attempts, retry_delay=config.retry_delay)
        self.config = config
        self.model_id = config.model_id

        self.bedrock_runtime = client or boto3.client(
            'bedrock-runtime',
            region_name=config.region,
            config=BotoConfig(
                connect_timeout=60,
                read_timeout=120,
                retries={'max_attempts': 0}  # We handle retries manually
            ))

        logger.info(f'Initialized Bedrock LLM client with model: {self.model_id}')

    def generate(self,
                 messages: List[ChatTurn],
                 temperature: Optional[float] = None,
                 max_tokens: Optional[int] = None) -> GenerationResult:
        """
        Generate a reply using the Bedrock Converse stream API.

        Args:
            messages: Canonical chat turns; system turns go to the system slot
            max_tokens: Maximum tokens to generate (uses config default if None)
            temperature: Temperature for generation (uses config default if None)

        Returns:
            GenerationResult
        """
        system_prompt, dialogue = self._split_system(messages)
        if not self._has_user_turn(dialogue):
            return GenerationResult(success=False, error=NO_USER_MESSAGE)

        inf_params = {
            'maxTokens': self.config.max_tokens if max_tokens is None else max_tokens,
            'temperature': self.config.temperature if temperature is None else temperature,
        }
        request = {
            'modelId': self.model_id,
            'messages': self._to_bedrock_messages(dialogue),
            'inferenceConfig': inf_params,
        }
        if system_prompt:
            request['system'] = [{'text': system_prompt}]

        try:
            text = self._call_with_retry(lambda: self._converse(request))
        except Exception as e:
            return self._failure(e)

        if not text.strip():
            logger.error('Empty response content from Bedrock')
            return GenerationResult(success=False, error='No response from AI')

        logger.debug(f'Bedrock LLM response generated successfully (length: {len(text)})')
        return GenerationResult(success=True, text=text.strip())

    def test_connection(self) -> bool:
        """
        Perform a health check on the Bedrock LLM service.

        Returns:
            True if service is healthy, False otherwise
        """
        test_messages = [
            ChatTurn(role='system', content="You are a helpful assistant. Respond with just 'OK'."),
            ChatTurn(role='user', content='Hi'),
        ]
        result = self.generate(test_messages, max_tokens=10, temperature=0.0)
        if not result.success:
            logger.error(f'Bedrock LLM health check failed: {result.error}')
        return result.success

    def _converse(self, request: Dict[str, Any]) -> str:
        stream = self.bedrock_runtime.converse_stream(**request).get('stream')

        msg = ''
        if stream:
            for event in stream:
                if 'contentBlockDelta' in event:
                    msg += event['contentBlockDelta']['delta'].get('text', '')
        return msg

    def _is_rate_limited(self, error: Exception) -> bool:
        if isinstance(error, ClientError):
            return (error.response.get('Error', {}).get('Code') or '').lower() in THROTTLING_ERROR_CODES
        return False

    @staticmethod
    def _to_bedrock_messages(dialogue: List[ChatTurn]) -> List[Dict[str, Any]]:
        """Convert turns to Converse messages.

        Converse requires the first message to come from the user and roles to
        alternate, so leading assistant turns are dropped and consecutive
        same-role turns are merged into one message.
        """
        bedrock_messages: List[Dict[str, Any]] = []
        for turn in dialogue:
            if not bedrock_messages and turn.role != 'user':
                continue
            if bedrock_messages and bedrock_messages[-1]['role'] == turn.role:
                bedrock_messages[-1]['content'].append({'text': turn.content})
            else:
                bedrock_messages.append({'role': turn.role, 'content': [{'text': turn.content}]})
        return bedrock_messages

