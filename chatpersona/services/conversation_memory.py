"""
Short-term conversation memory keyed by conversation id.
"""

import threading
from collections import deque
from typing import Deque, Dict, List

from ..models.core import ChatTurn
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_TURNS = 20


class ConversationMemory:
    """Bounded, per-conversation turn buffers; the oldest turns are evicted first.

    One lock guards both the registry and the buffers, so a turn can never be
    appended to a buffer that clear() has already discarded.
    """

    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS):
        if max_turns < 1:
            raise ValueError('max_turns must be at least 1')
        self.max_turns = max_turns
        self._buffers: Dict[str, Deque[ChatTurn]] = {}
        self._lock = threading.Lock()

    def add_turn(self, conversation_id: str, role: str, content: str) -> None:
        """Append a turn, dropping the oldest ones beyond max_turns.

        Args:
            conversation_id: Conversation the turn belongs to
            role: 'user', 'assistant' or 'system'
            content: Turn text

        Raises:
            ValueError: If role is not a chat role
        """
        turn = ChatTurn(role=role, content=content)
        with self._lock:
            buffer = self._buffers.get(conversation_id)
            if buffer is None:
                buffer = self._buffers[conversation_id] = deque(maxlen=self.max_turns)
            buffer.append(turn)

    def get_history(self, conversation_id: str) -> List[ChatTurn]:
        with self._lock:
            return list(self._buffers.get(conversation_id, ()))

    def clear(self, conversation_id: str) -> None:
        with self._lock:
            self._buffers.pop(conversation_id, None)
        logger.debug(f'Cleared history for conversation {conversation_id}')

    def conversation_ids(self) -> List[str]:
        with self._lock:
            return list(self._buffers)
