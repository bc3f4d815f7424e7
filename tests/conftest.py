"""
Shared fixtures for the ChatPersona test suite.
"""

from typing import List, Optional

import pytest

from chatpersona.models.core import ChatTurn, GenerationResult
from chatpersona.utils.ai_provider import AIProvider
from chatpersona.utils.config import BotConfig, KnowledgeStoreConfig
from chatpersona.utils.knowledge_store import KnowledgeStore


class FakeProvider(AIProvider):
    """In-memory provider that replays scripted results and records requests."""

    name = 'Fake'

    def __init__(self, results: Optional[List[GenerationResult]] = None):
        super().__init__(retry_attempts=3, retry_delay=2.0)
        self.results = list(results or [GenerationResult(success=True, text='Halo juga!')])
        self.calls: List[dict] = []

    def generate(self, messages: List[ChatTurn], temperature=None, max_tokens=None) -> GenerationResult:
        self.calls.append({'messages': list(messages), 'temperature': temperature, 'max_tokens': max_tokens})
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]

    def test_connection(self) -> bool:
        return True

    def _is_rate_limited(self, error: Exception) -> bool:
        return False


@pytest.fixture
def store(tmp_path):
    """A fresh knowledge store in a temporary directory."""
    return KnowledgeStore(KnowledgeStoreConfig(db_path=str(tmp_path / 'data' / 'knowledge.db')))


@pytest.fixture
def bot_config():
    """Bot settings with no reply delay."""
    return BotConfig(name='Test Bot', reply_delay_min_ms=0, reply_delay_max_ms=0)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def provider_factory():
    """Build a FakeProvider that replays the given results."""
    return FakeProvider
