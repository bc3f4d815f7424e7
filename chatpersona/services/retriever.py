"""
Keyword retriever that turns a chat message into ranked, attributed knowledge context.
"""

import re
from typing import List

from ..models.core import KnowledgeEntry, RetrievalResult, SearchResult
from ..utils.knowledge_store import KnowledgeStore, KnowledgeStoreError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

UNKNOWN_SENDER = 'Unknown'

# Indonesian and English function words that carry no retrieval signal
STOP_WORDS = frozenset([
    'yang', 'dan', 'di', 'dari', 'untuk', 'ke', 'ini', 'itu', 'dengan', 'pada',
    'adalah', 'atau', 'juga', 'akan', 'sudah', 'tidak', 'ada', 'bisa', 'saya',
    'kamu', 'aku', 'dia', 'mereka', 'kami', 'kita', 'apa',
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for',
    'is', 'was', 'are', 'were', 'be', 'been', 'have', 'has', 'had',
    'do', 'does', 'did', 'will', 'would', 'could', 'should',
])

_PUNCTUATION = re.compile(r'[^\w\s]')
_NUMERIC = re.compile(r'\d+')
_SENDER_IN_CONTEXT = re.compile(r'From chat with (.+?) at')


class KnowledgeRetriever:
    """Retrieve relevant knowledge entries for a message."""

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def retrieve(self, query: str, limit: int = 5) -> RetrievalResult:
        """Retrieve and format knowledge relevant to query.

        Store failures are logged and reported as success=False with empty
        context; they are never raised.

        Args:
            query: Incoming chat message
            limit: Maximum number of entries to include

        Returns:
            RetrievalResult with the formatted context block and its sources
        """
        keywords = self.extract_keywords(query)
        if not keywords:
            return RetrievalResult(success=True)

        try:
            results = self.store.search(self.build_query(keywords), limit)
        except KnowledgeStoreError as e:
            logger.error(f'Error retrieving context: {e}')
            return RetrievalResult(success=False)

        logger.debug(f'Retrieved {len(results)} entries for keywords: {keywords}')
        return RetrievalResult(success=True, context=self.format_context(results), sources=results)

    def get_similar_messages(self, message: str, limit: int = 3) -> List[SearchResult]:
        keywords = self.extract_keywords(message)
        if not keywords:
            return []

        try:
            return self.store.search(self.build_query(keywords), limit)
        except KnowledgeStoreError as e:
            logger.error(f'Error finding similar messages: {e}')
            return []

    def get_random_examples(self, count: int = 3) -> List[KnowledgeEntry]:
        """Sample entries at random, e.g. to show the persona's writing style."""
        try:
            return self.store.sample(count)
        except KnowledgeStoreError as e:
            logger.error(f'Error sampling knowledge entries: {e}')
            return []

    @staticmethod
    def extract_keywords(text: str) -> List[str]:
        """Extract distinct salient lowercase tokens, first occurrence order."""
        words = _PUNCTUATION.sub(' ', text.lower()).split()

        keywords = []
        seen = set()
        for word in words:
            if len(word) <= 1 or word in STOP_WORDS or _NUMERIC.fullmatch(word):
                continue
            if word not in seen:
                seen.add(word)
                keywords.append(word)
        return keywords

    @staticmethod
    def build_query(keywords: List[str]) -> str:
        """Join keywords into a disjunctive FTS5 expression; each is quoted as a literal term."""
        return ' OR '.join(f'"{keyword}"' for keyword in keywords)

    @staticmethod
    def format_context(results: List[SearchResult]) -> str:
        parts = []
        for index, result in enumerate(results, start=1):
            parts.append(f'[{index}] ({KnowledgeRetriever.sender_of(result.entry)}): {result.entry.content}')
        return '\n\n'.join(parts)

    @staticmethod
    def sender_of(entry: KnowledgeEntry) -> str:
        if entry.sender:
            return entry.sender
        if entry.context:
            match = _SENDER_IN_CONTEXT.search(entry.context)
            if match:
                return match.group(1)
        return UNKNOWN_SENDER
