"""
Unit tests for the SQLite knowledge store.
Tests schema setup, index consistency, atomic batches and ranked search.
"""

import sqlite3

import pytest

from chatpersona.models.core import KnowledgeEntry
from chatpersona.utils.config import KnowledgeStoreConfig
from chatpersona.utils.knowledge_store import KnowledgeStore, KnowledgeStoreError


class TestInitialization:
    """Tests for idempotent schema creation."""

    def test_creates_missing_data_directory(self, tmp_path):
        db_path = tmp_path / 'nested' / 'dir' / 'knowledge.db'

        KnowledgeStore(KnowledgeStoreConfig(db_path=str(db_path)))

        assert db_path.exists()

    def test_reopening_does_not_duplicate_schema(self, tmp_path):
        config = KnowledgeStoreConfig(db_path=str(tmp_path / 'knowledge.db'))
        first = KnowledgeStore(config)
        first.insert(KnowledgeEntry(content='tetap ada'))

        second = KnowledgeStore(config)

        assert second.count() == 1
        with second.get_connection() as conn:
            triggers = conn.execute("SELECT name FROM sqlite_master WHERE type = 'trigger'").fetchall()
        assert sorted(row['name'] for row in triggers) == ['knowledge_ad', 'knowledge_ai', 'knowledge_au']
        assert len(second.search('"tetap"')) == 1

    def test_migrates_table_without_sender_column(self, tmp_path):
        db_path = tmp_path / 'legacy.db'
        conn = sqlite3.connect(db_path)
        conn.execute("""
            CREATE TABLE knowledge (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content TEXT NOT NULL,
                context TEXT,
                category TEXT DEFAULT 'general',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.execute("INSERT INTO knowledge (content) VALUES ('lama')")
        conn.commit()
        conn.close()

        store = KnowledgeStore(KnowledgeStoreConfig(db_path=str(db_path)))
        store.insert(KnowledgeEntry(content='baru', sender='Adit'))

        entries = store.get_all()
        assert {(e.content, e.sender) for e in entries} == {('lama', None), ('baru', 'Adit')}
        assert [r.entry.content for r in store.search('"lama"')] == ['lama']

    def test_replaces_triggers_that_corrupt_the_index(self, tmp_path):
        db_path = tmp_path / 'legacy.db'
        conn = sqlite3.connect(db_path)
        conn.executescript("""
            CREATE TABLE knowledge (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content TEXT NOT NULL,
                context TEXT,
                category TEXT DEFAULT 'general',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            CREATE INDEX idx_knowledge_content ON knowledge(content);
            CREATE VIRTUAL TABLE knowledge_fts
            USING fts5(content, context, category, content=knowledge, content_rowid=id);
            CREATE TRIGGER knowledge_ai AFTER INSERT ON knowledge BEGIN
                INSERT INTO knowledge_fts(rowid, content, context, category)
                VALUES (new.id, new.content, new.context, new.category);
            END;
            CREATE TRIGGER knowledge_ad AFTER DELETE ON knowledge BEGIN
                DELETE FROM knowledge_fts WHERE rowid = old.id;
            END;
            CREATE TRIGGER knowledge_au AFTER UPDATE ON knowledge BEGIN
                UPDATE knowledge_fts
                SET content = new.content, context = new.context, category = new.category
                WHERE rowid = new.id;
            END;
            INSERT INTO knowledge (content, context) VALUES ('lama sekali', 'From chat with Adit at 01/01/24, 10:00');
        """)
        conn.commit()
        conn.close()

        store = KnowledgeStore(KnowledgeStoreConfig(db_path=str(db_path)))
        old_id = store.get_all()[0].id
        store.insert(KnowledgeEntry(content='baru masuk', sender='Adit'))
        assert store.delete(old_id) is True
        store.insert(KnowledgeEntry(content='baru lagi'))

        with store.get_connection() as conn:
            with conn:
                conn.execute("INSERT INTO knowledge_fts(knowledge_fts) VALUES ('integrity-check')")
            delete_trigger = conn.execute("SELECT sql FROM sqlite_master WHERE name = 'knowledge_ad'").fetchone()['sql']
        assert "'delete'" in delete_trigger
        assert store.search('"lama"') == []
        assert sorted(r.entry.content for r in store.search('"baru"')) == ['baru lagi', 'baru masuk']


class TestInsertAndSearch:
    """Tests for insert, search and delete round trips."""

    def test_insert_is_immediately_searchable(self, store):
        entry_id = store.insert(KnowledgeEntry(content='nonton film bagus banget', context='From chat with Adit at 01/01/24, 10:00'))

        results = store.search('"film"')

        assert [r.entry.id for r in results] == [entry_id]
        assert results[0].entry.content == 'nonton film bagus banget'

    def test_every_word_finds_the_entry(self, store):
        entry_id = store.insert(KnowledgeEntry(content='besok main badminton di gor'))

        for word in ['besok', 'main', 'badminton', 'gor']:
            assert entry_id in [r.entry.id for r in store.search(f'"{word}"')]

    def test_delete_removes_from_index(self, store):
        entry_id = store.insert(KnowledgeEntry(content='rahasia kecil'))

        assert store.delete(entry_id) is True
        assert store.search('"rahasia"') == []
        assert store.get(entry_id) is None

    def test_delete_unknown_id_returns_false(self, store):
        assert store.delete(9999) is False

    def test_update_keeps_index_in_sync(self, store):
        entry_id = store.insert(KnowledgeEntry(content='kucing oren'))
        with store.get_connection() as conn:
            with conn:
                conn.execute("UPDATE knowledge SET content = 'anjing hitam' WHERE id = ?", (entry_id, ))

        assert store.search('"kucing"') == []
        assert [r.entry.id for r in store.search('"anjing"')] == [entry_id]

    def test_results_are_ranked_best_first(self, store):
        store.insert(KnowledgeEntry(content='kopi pagi ini enak, lalu ke kantor naik ojek lewat jalan raya yang macet'))
        best = store.insert(KnowledgeEntry(content='kopi kopi kopi'))

        results = store.search('"kopi"')

        assert results[0].entry.id == best
        assert results[0].relevance <= results[1].relevance

    def test_search_respects_limit(self, store):
        store.insert_batch([KnowledgeEntry(content=f'teh manis {i}') for i in range(10)])

        assert len(store.search('"teh"', limit=3)) == 3

    def test_malformed_query_raises_and_store_survives(self, store):
        store.insert(KnowledgeEntry(content='masih aman'))

        with pytest.raises(KnowledgeStoreError):
            store.search('"unterminated OR (')

        assert store.count() == 1
        assert len(store.search('"aman"')) == 1

    def test_empty_content_is_rejected(self, store):
        with pytest.raises(KnowledgeStoreError):
            store.insert(KnowledgeEntry(content='   '))

        assert store.count() == 0

    def test_category_defaults_to_general(self, store):
        entry_id = store.insert(KnowledgeEntry(content='catatan'))

        assert store.get(entry_id).category == 'general'


class TestBatchInsert:
    """Tests for all-or-nothing batch insertion."""

    def test_batch_inserts_all_entries(self, store):
        count = store.insert_batch([KnowledgeEntry(content='satu'), KnowledgeEntry(content='dua')])

        assert count == 2
        assert store.count() == 2

    def test_invalid_entry_rolls_back_whole_batch(self, store):
        store.insert(KnowledgeEntry(content='sudah ada'))
        batch = [KnowledgeEntry(content='valid pertama'), KnowledgeEntry(content=''), KnowledgeEntry(content='valid kedua')]

        with pytest.raises(KnowledgeStoreError):
            store.insert_batch(batch)

        assert store.count() == 1
        assert store.search('"valid"') == []

    def test_replace_swaps_contents_atomically(self, store):
        store.insert(KnowledgeEntry(content='lama'))

        store.insert_batch([KnowledgeEntry(content='baru')], replace=True)

        assert [e.content for e in store.get_all()] == ['baru']
        assert store.search('"lama"') == []

    def test_failed_replace_keeps_old_contents(self, store):
        store.insert(KnowledgeEntry(content='lama'))

        with pytest.raises(KnowledgeStoreError):
            store.insert_batch([KnowledgeEntry(content='')], replace=True)

        assert [e.content for e in store.get_all()] == ['lama']

    def test_empty_batch_is_noop(self, store):
        assert store.insert_batch([]) == 0


class TestListing:
    """Tests for listing, counting, sampling and clearing."""

    def test_get_all_returns_newest_first(self, store):
        store.insert(KnowledgeEntry(content='pertama'))
        store.insert(KnowledgeEntry(content='kedua'))
        store.insert(KnowledgeEntry(content='ketiga'))

        assert [e.content for e in store.get_all()] == ['ketiga', 'kedua', 'pertama']

    def test_get_all_populates_created_at(self, store):
        store.insert(KnowledgeEntry(content='waktu'))

        assert store.get_all()[0].created_at is not None

    def test_sample_returns_distinct_entries(self, store):
        store.insert_batch([KnowledgeEntry(content=f'contoh {i}') for i in range(5)])

        sample = store.sample(3)

        assert len(sample) == 3
        assert len({e.id for e in sample}) == 3

    def test_sample_is_capped_by_store_size(self, store):
        store.insert(KnowledgeEntry(content='sendiri'))

        assert len(store.sample(5)) == 1
        assert store.sample(0) == []

    def test_clear_empties_table_and_index(self, store):
        store.insert_batch([KnowledgeEntry(content='hapus aku'), KnowledgeEntry(content='hapus juga')])

        store.clear()

        assert store.count() == 0
        assert store.search('"hapus"') == []
