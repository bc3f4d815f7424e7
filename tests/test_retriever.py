"""
Unit tests for keyword extraction and context retrieval.
"""

from unittest.mock import MagicMock

import pytest

from chatpersona.models.core import KnowledgeEntry
from chatpersona.services.retriever import UNKNOWN_SENDER, KnowledgeRetriever
from chatpersona.utils.knowledge_store import KnowledgeStoreError


@pytest.fixture
def retriever(store):
    return KnowledgeRetriever(store)


class TestExtractKeywords:
    """Tests for keyword extraction."""

    def test_removes_stop_words(self):
        assert set(KnowledgeRetriever.extract_keywords('film apa yang bagus')) == {'film', 'bagus'}

    def test_lowercases_and_strips_punctuation(self):
        assert KnowledgeRetriever.extract_keywords('Halo, FILM-nya SERU!!') == ['halo', 'film', 'nya', 'seru']

    def test_drops_short_and_numeric_tokens(self):
        assert KnowledgeRetriever.extract_keywords('x 2024 jam 7 ok') == ['jam', 'ok']

    def test_deduplicates(self):
        assert KnowledgeRetriever.extract_keywords('kopi Kopi KOPI susu') == ['kopi', 'susu']

    def test_is_idempotent(self):
        text = 'Besok kita nonton film di bioskop, film yang baru!'
        keywords = KnowledgeRetriever.extract_keywords(text)

        again = KnowledgeRetriever.extract_keywords(' '.join(keywords))

        assert set(again) == set(keywords)

    def test_only_stop_words_yields_nothing(self):
        assert KnowledgeRetriever.extract_keywords('yang dan, di?! the a') == []


class TestRetrieve:
    """Tests for retrieval and context formatting."""

    def test_scenario_formats_attributed_context(self, retriever, store):
        store.insert(KnowledgeEntry(content='nonton film bagus banget', context='From chat with Adit at 01/01/24, 10:00'))

        result = retriever.retrieve('film apa yang bagus')

        assert result.success is True
        assert result.context == '[1] (Adit): nonton film bagus banget'
        assert len(result.sources) == 1

    def test_stop_word_query_is_successful_and_empty(self, retriever, store):
        store.insert(KnowledgeEntry(content='sesuatu'))

        result = retriever.retrieve('yang dan di ...')

        assert result.success is True
        assert result.context == ''
        assert result.sources == []

    def test_no_hits_is_successful_and_empty(self, retriever, store):
        store.insert(KnowledgeEntry(content='sesuatu'))

        result = retriever.retrieve('pesawat terbang')

        assert result.success is True
        assert result.context == ''
        assert result.sources == []

    def test_multiple_results_are_numbered_and_separated(self, retriever, store):
        store.insert(KnowledgeEntry(content='kopi susu', sender='Budi'))
        store.insert(KnowledgeEntry(content='kopi hitam kopi pahit kopi', sender='Adit'))

        result = retriever.retrieve('kopi')

        blocks = result.context.split('\n\n')
        assert len(blocks) == 2
        assert blocks[0].startswith('[1] (')
        assert blocks[1].startswith('[2] (')

    def test_sender_column_takes_precedence(self, retriever, store):
        store.insert(KnowledgeEntry(content='main game', sender='Sari', context='From chat with Other at 01/01/24, 10:00'))

        assert retriever.retrieve('game').context == '[1] (Sari): main game'

    def test_unknown_sender_when_context_has_no_pattern(self, retriever, store):
        store.insert(KnowledgeEntry(content='catatan manual', context='ditambahkan sendiri'))

        assert retriever.retrieve('catatan').context == f'[1] ({UNKNOWN_SENDER}): catatan manual'

    def test_respects_limit(self, retriever, store):
        store.insert_batch([KnowledgeEntry(content=f'nasi goreng {i}') for i in range(6)])

        assert len(retriever.retrieve('nasi goreng', limit=2).sources) == 2

    def test_store_failure_degrades_to_empty_context(self):
        failing_store = MagicMock()
        failing_store.search.side_effect = KnowledgeStoreError('database is locked')

        result = KnowledgeRetriever(failing_store).retrieve('film bagus')

        assert result.success is False
        assert result.context == ''
        assert result.sources == []

    def test_query_with_fts_operators_is_safe(self, retriever, store):
        store.insert(KnowledgeEntry(content='near the sea'))

        result = retriever.retrieve('NEAR sea NOT "quoted" (group)')

        assert result.success is True
        assert len(result.sources) == 1


class TestHelpers:
    """Tests for similar-message and random-example lookups."""

    def test_build_query_quotes_terms(self):
        assert KnowledgeRetriever.build_query(['film', 'bagus']) == '"film" OR "bagus"'

    def test_get_similar_messages(self, retriever, store):
        entry_id = store.insert(KnowledgeEntry(content='hujan deras banget'))

        results = retriever.get_similar_messages('hujan lagi')

        assert [r.entry.id for r in results] == [entry_id]

    def test_get_similar_messages_without_keywords(self, retriever):
        assert retriever.get_similar_messages('yang di') == []

    def test_get_random_examples(self, retriever, store):
        store.insert_batch([KnowledgeEntry(content=f'gaya {i}') for i in range(4)])

        examples = retriever.get_random_examples(2)

        assert len(examples) == 2

    def test_get_random_examples_degrades_on_error(self):
        failing_store = MagicMock()
        failing_store.sample.side_effect = KnowledgeStoreError('no such table')

        assert KnowledgeRetriever(failing_store).get_random_examples() == []
