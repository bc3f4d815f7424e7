"""
Chat bot service that answers inbound channel messages.
"""

from typing import Any, Dict, Optional

from ..models.core import InboundMessage
from ..utils.ai_provider import AIProvider
from ..utils.config import AppConfig, BotConfig, config
from ..utils.knowledge_store import KnowledgeStore
from ..utils.logging_config import get_logger
from ..utils.provider_factory import get_provider
from .conversation_memory import ConversationMemory
from .prompt_builder import PromptBuilder, load_persona
from .response_generator import ResponseGenerator
from .retriever import KnowledgeRetriever

logger = get_logger(__name__)

FAILURE_REPLY = 'Maaf, ada masalah saat memproses pesanmu. Coba lagi nanti ya! 🙏'
ERROR_REPLY = 'Maaf, ada error yang tidak terduga. 😅'


class ChatBot:
    """Turn inbound messages into replies while keeping conversation memory.

    Only direct, non-empty messages from other people are answered; when an
    allow-list is configured the sender must be on it.
    """

    def __init__(self, generator: ResponseGenerator, memory: ConversationMemory, store: KnowledgeStore,
                 bot_config: BotConfig):
        self.generator = generator
        self.memory = memory
        self.store = store
        self.bot_config = bot_config

    def should_handle(self, inbound: InboundMessage) -> bool:
        if not self.bot_config.enabled:
            return False
        if inbound.from_me or inbound.is_group:
            return False
        if not inbound.text or not inbound.text.strip():
            return False
        if self.bot_config.allowed_senders and inbound.sender_id not in self.bot_config.allowed_senders:
            logger.debug(f'Ignoring message from {inbound.sender_id}: not on allow-list')
            return False
        return True

    def handle_message(self, inbound: InboundMessage) -> Optional[str]:
        """Produce the reply for an inbound message.

        History is read before the message is recorded so the live message
        does not also appear inside its own history. The assistant turn is
        only recorded when generation succeeded.

        Args:
            inbound: Message delivered by the channel

        Returns:
            Reply text, a fixed apology on failure, or None if the message is ignored
        """
        if not self.should_handle(inbound):
            return None

        user_message = inbound.text.strip()
        conversation_id = inbound.conversation_id
        logger.info(f'New message from {conversation_id}')

        try:
            history = self.memory.get_history(conversation_id)
            result = self.generator.generate_with_delay(user_message, use_context=True, history=history)

            self.memory.add_turn(conversation_id, 'user', user_message)

            if not result.success:
                logger.error(f'Failed to generate response: {result.error}')
                return FAILURE_REPLY

            self.memory.add_turn(conversation_id, 'assistant', result.text)
            logger.info(f"Replying to {conversation_id} (context used: {'yes' if result.context_used else 'no'})")
            return result.text

        except Exception as e:
            logger.exception(f'Error handling message from {conversation_id}: {e}')
            return ERROR_REPLY

    def get_stats(self) -> Dict[str, Any]:
        return {
            'knowledge_count': self.store.count(),
            'active_conversations': len(self.memory.conversation_ids()),
            'enabled': self.bot_config.enabled,
        }


def create_chat_bot(app_config: Optional[AppConfig] = None, provider: Optional[AIProvider] = None) -> ChatBot:
    """Wire a ChatBot from configuration.

    Args:
        app_config: AppConfig, uses the global configuration if None
        provider: AIProvider to use instead of the configured singleton

    Returns:
        Ready ChatBot
    """
    app_config = app_config or config
    store = KnowledgeStore(app_config.knowledge)
    generator = ResponseGenerator(retriever=KnowledgeRetriever(store),
                                  prompt_builder=PromptBuilder(load_persona(app_config.bot.persona_file)),
                                  provider=provider or get_provider(app_config),
                                  bot_config=app_config.bot,
                                  context_limit=app_config.knowledge.search_limit)
    memory = ConversationMemory(max_turns=app_config.memory.max_history)
    return ChatBot(generator, memory, store, app_config.bot)
