"""
Common contract and rate-limit retry logic for language model backends.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple, TypeVar

from ..models.core import ChatTurn, GenerationResult
from .logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

NO_USER_MESSAGE = 'No user message found'


class AIProviderError(Exception):
    """Custom exception for AI provider errors."""
    pass


class AIProvider(ABC):
    """A chat model backend.

    Subclasses translate canonical ChatTurns into their own wire format and
    decide which errors count as rate limiting; only those are retried.
    """

    name = 'provider'

    def __init__(self, retry_attempts: int = 3, retry_delay: float = 2.0):
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    @abstractmethod
    def generate(self,
                 messages: List[ChatTurn],
                 temperature: Optional[float] = None,
                 max_tokens: Optional[int] = None) -> GenerationResult:
        """Generate a reply to the final user turn of messages."""

    @abstractmethod
    def test_connection(self) -> bool:
        """Return True if the backend answers a trivial prompt."""

    @abstractmethod
    def _is_rate_limited(self, error: Exception) -> bool:
        """Return True if error signals rate limiting."""

    def _call_with_retry(self, fn: Callable[[], T]) -> T:
        """
        Call fn, retrying rate-limit failures with exponential backoff.

        Waits retry_delay, then twice that, and so on between attempts. Other
        errors propagate immediately.

        Args:
            fn: Zero-argument callable performing one request

        Returns:
            Whatever fn returns

        Raises:
            AIProviderError: If every attempt was rate limited
        """
        for attempt in range(self.retry_attempts):
            try:
                return fn()
            except Exception as e:
                if not self._is_rate_limited(e):
                    raise

                if attempt < self.retry_attempts - 1:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(f'{self.name} rate limit hit, retrying in {delay:.0f}s '
                                   f'({attempt + 1}/{self.retry_attempts})')
                    time.sleep(delay)
                else:
                    raise AIProviderError(f'{self.name} rate limited after {self.retry_attempts} attempts: {e}')

        raise AIProviderError(f'{self.name} failed after {self.retry_attempts} attempts')

    @staticmethod
    def _split_system(messages: List[ChatTurn]) -> Tuple[str, List[ChatTurn]]:
        """Separate system turns from the dialogue.

        Returns:
            Tuple of (system instruction joined by blank lines, remaining turns)
        """
        system_parts = [m.content for m in messages if m.role == 'system']
        dialogue = [m for m in messages if m.role != 'system']
        return '\n\n'.join(system_parts), dialogue

    @staticmethod
    def _has_user_turn(dialogue: List[ChatTurn]) -> bool:
        """True when the final non-system turn is a non-empty user turn."""
        return bool(dialogue) and dialogue[-1].role == 'user' and bool(dialogue[-1].content.strip())

    def _failure(self, error: Exception) -> GenerationResult:
        logger.error(f'{self.name} API error: {error}')
        return GenerationResult(success=False, error=str(error) or type(error).__name__)
