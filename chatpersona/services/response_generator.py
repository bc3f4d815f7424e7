"""
Response generation service: retrieval, prompt building, generation and cleanup.
"""

import random
import time
from typing import List, Optional

from ..models.core import ChatTurn, ResponseResult
from ..utils.ai_provider import AIProvider
from ..utils.config import BotConfig
from ..utils.logging_config import get_logger
from ..utils.response_utils import clean_model_response
from .prompt_builder import PromptBuilder
from .retriever import KnowledgeRetriever

logger = get_logger(__name__)

TEMPERATURE = 0.7
MAX_TOKENS = 1000
CONTEXT_LIMIT = 5


class ResponseGenerator:
    """Orchestrate a single reply.

    Conversation memory is left to the caller: history is passed in and the
    new turns are recorded by whoever owns the memory.
    """

    def __init__(self,
                 retriever: KnowledgeRetriever,
                 prompt_builder: PromptBuilder,
                 provider: AIProvider,
                 bot_config: BotConfig,
                 context_limit: int = CONTEXT_LIMIT):
        self.retriever = retriever
        self.prompt_builder = prompt_builder
        self.provider = provider
        self.bot_config = bot_config
        self.context_limit = context_limit
        logger.info(f'Initialized ResponseGenerator with provider: {provider.name}')

    def generate(self, message: str, use_context: bool = True, history: Optional[List[ChatTurn]] = None) -> ResponseResult:
        """Generate a reply to message.

        Args:
            message: Incoming user message
            use_context: Whether to retrieve knowledge for the prompt
            history: Prior turns of the conversation, excluding message itself

        Returns:
            ResponseResult; on failure text is empty and error is set
        """
        try:
            context = ''
            context_used = False

            if use_context:
                retrieval = self.retriever.retrieve(message, self.context_limit)
                if retrieval.success and retrieval.sources:
                    context = retrieval.context
                    context_used = True
                    logger.info(f'Found {len(retrieval.sources)} relevant context entries')

            messages = self.prompt_builder.build(message, context=context, history=history)

            logger.debug('Generating AI response')
            result = self.provider.generate(messages, temperature=TEMPERATURE, max_tokens=MAX_TOKENS)

            if not result.success:
                return ResponseResult(success=False, error=result.error, context_used=context_used)

            return ResponseResult(success=True, text=clean_model_response(result.text), context_used=context_used)

        except Exception as e:
            logger.error(f'Unexpected error generating response: {e}')
            return ResponseResult(success=False, error=str(e) or type(e).__name__)

    def generate_with_delay(self,
                            message: str,
                            use_context: bool = True,
                            history: Optional[List[ChatTurn]] = None) -> ResponseResult:
        """Wait a random, human-looking delay, then generate."""
        low = self.bot_config.reply_delay_min_ms
        high = max(low, self.bot_config.reply_delay_max_ms)
        delay_ms = random.uniform(low, high)
        logger.debug(f'Delaying reply by {delay_ms:.0f}ms')
        time.sleep(delay_ms / 1000)

        return self.generate(message, use_context=use_context, history=history)
