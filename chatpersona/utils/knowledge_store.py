"""
SQLite knowledge store with an FTS5 full-text index kept in sync by triggers.
"""

import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, List, Optional

from ..models.core import KnowledgeEntry, SearchResult
from .config import KnowledgeStoreConfig
from .logging_config import get_logger
from .timestamp_utils import from_iso_str, to_iso_str

logger = get_logger(__name__)

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS knowledge (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        content TEXT NOT NULL CHECK (length(trim(content)) > 0),
        context TEXT,
        category TEXT NOT NULL DEFAULT 'general',
        sender TEXT,
        created_at TEXT NOT NULL
    )
    """,
    'CREATE INDEX IF NOT EXISTS idx_knowledge_created_at ON knowledge(created_at)',
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS knowledge_fts
    USING fts5(content, context, category, content='knowledge', content_rowid='id')
    """,
    """
    CREATE TRIGGER IF NOT EXISTS knowledge_ai AFTER INSERT ON knowledge BEGIN
        INSERT INTO knowledge_fts(rowid, content, context, category)
        VALUES (new.id, new.content, new.context, new.category);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS knowledge_ad AFTER DELETE ON knowledge BEGIN
        INSERT INTO knowledge_fts(knowledge_fts, rowid, content, context, category)
        VALUES ('delete', old.id, old.content, old.context, old.category);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS knowledge_au AFTER UPDATE ON knowledge BEGIN
        INSERT INTO knowledge_fts(knowledge_fts, rowid, content, context, category)
        VALUES ('delete', old.id, old.content, old.context, old.category);
        INSERT INTO knowledge_fts(rowid, content, context, category)
        VALUES (new.id, new.content, new.context, new.category);
    END
    """,
]

TRIGGER_NAMES = ('knowledge_ai', 'knowledge_ad', 'knowledge_au')

INSERT_SQL = 'INSERT INTO knowledge (content, context, category, sender, created_at) VALUES (?, ?, ?, ?, ?)'

ENTRY_COLUMNS = 'k.id, k.content, k.context, k.category, k.sender, k.created_at'


class KnowledgeStoreError(Exception):
    """Custom exception for knowledge store errors."""
    pass


class KnowledgeStore:
    """Persistent knowledge repository with ranked full-text search."""

    def __init__(self, config: KnowledgeStoreConfig):
        """
        Initialize the store, creating schema and index if missing.

        Args:
            config: KnowledgeStoreConfig with the database path
        """
        self.config = config
        self.db_path = config.db_path

        data_dir = os.path.dirname(os.path.abspath(self.db_path))
        os.makedirs(data_dir, exist_ok=True)

        self._initialize()
        logger.info(f'Initialized knowledge store at: {self.db_path}')

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        try:
            with self.get_connection() as conn:
                conn.execute('PRAGMA journal_mode=WAL')
                with conn:
                    conn.execute(SCHEMA_STATEMENTS[0])
                    self._migrate(conn)
                    index_existed = self._table_exists(conn, 'knowledge_fts')
                    stale_triggers = self._drop_stale_triggers(conn)
                    for statement in SCHEMA_STATEMENTS[1:]:
                        conn.execute(statement)
                    if not index_existed or stale_triggers:
                        # Reindex rows written before the index existed or by the old triggers
                        conn.execute("INSERT INTO knowledge_fts(knowledge_fts) VALUES ('rebuild')")
        except sqlite3.Error as e:
            logger.error(f'Error initializing knowledge store: {e}')
            raise KnowledgeStoreError(f'Failed to initialize knowledge store: {e}')

    def _migrate(self, conn: sqlite3.Connection) -> None:
        """Add columns introduced after a database was first created."""
        columns = {row['name'] for row in conn.execute('PRAGMA table_info(knowledge)')}
        if 'sender' not in columns:
            logger.info('Adding sender column to knowledge table')
            conn.execute('ALTER TABLE knowledge ADD COLUMN sender TEXT')

    def _drop_stale_triggers(self, conn: sqlite3.Connection) -> bool:
        """Drop sync triggers that write to the index directly instead of via the 'delete' command.

        Such triggers corrupt an external-content index, so all three are
        dropped and recreated together.

        Returns:
            True if triggers were dropped and the index must be rebuilt
        """
        rows = conn.execute("SELECT name, sql FROM sqlite_master WHERE type = 'trigger' AND name IN (?, ?)",
                            ('knowledge_ad', 'knowledge_au')).fetchall()
        if all("'delete'" in (row['sql'] or '') for row in rows):
            return False

        logger.info('Replacing outdated knowledge index triggers')
        for name in TRIGGER_NAMES:
            conn.execute(f'DROP TRIGGER IF EXISTS {name}')
        return True

    @staticmethod
    def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
        row = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (name, )).fetchone()
        return row is not None

    def insert(self, entry: KnowledgeEntry) -> int:
        """
        Insert a single knowledge entry.

        Args:
            entry: KnowledgeEntry to store (id and created_at are ignored)

        Returns:
            Row id of the new entry

        Raises:
            KnowledgeStoreError: If the entry is invalid or the write fails
        """
        try:
            with self.get_connection() as conn:
                with conn:
                    cursor = conn.execute(INSERT_SQL, self._to_row(entry))
                    return cursor.lastrowid
        except sqlite3.Error as e:
            logger.error(f'Error inserting knowledge entry: {e}')
            raise KnowledgeStoreError(f'Failed to insert entry: {e}')

    def insert_batch(self, entries: List[KnowledgeEntry], replace: bool = False) -> int:
        """
        Insert entries in one transaction; either all persist or none do.

        Args:
            entries: KnowledgeEntry list to store
            replace: Delete every existing entry in the same transaction first

        Returns:
            Number of entries inserted

        Raises:
            KnowledgeStoreError: If any entry is invalid or the write fails
        """
        if not entries and not replace:
            return 0

        try:
            with self.get_connection() as conn:
                with conn:
                    if replace:
                        conn.execute('DELETE FROM knowledge')
                    conn.executemany(INSERT_SQL, [self._to_row(entry) for entry in entries])
            logger.debug(f'Inserted batch of {len(entries)} knowledge entries')
            return len(entries)
        except sqlite3.Error as e:
            logger.error(f'Error inserting knowledge batch, rolled back: {e}')
            raise KnowledgeStoreError(f'Failed to insert batch: {e}')

    def search(self, query: str, limit: int = 5) -> List[SearchResult]:
        """
        Run an FTS5 match expression against the knowledge index.

        Args:
            query: FTS5 match expression, e.g. '"film" OR "bagus"'
            limit: Maximum number of results

        Returns:
            SearchResult list, most relevant first

        Raises:
            KnowledgeStoreError: If the expression is malformed or the read fails
        """
        sql = f"""
            SELECT {ENTRY_COLUMNS}, knowledge_fts.rank AS relevance
            FROM knowledge_fts
            JOIN knowledge k ON knowledge_fts.rowid = k.id
            WHERE knowledge_fts MATCH ?
            ORDER BY knowledge_fts.rank
            LIMIT ?
        """
        try:
            with self.get_connection() as conn:
                rows = conn.execute(sql, (query, limit)).fetchall()
        except sqlite3.Error as e:
            logger.warning(f'Knowledge search failed for query {query!r}: {e}')
            raise KnowledgeStoreError(f'Search failed: {e}')

        return [SearchResult(entry=self._to_entry(row), relevance=row['relevance']) for row in rows]

    def get(self, entry_id: int) -> Optional[KnowledgeEntry]:
        row = self._fetch_one(f'SELECT {ENTRY_COLUMNS} FROM knowledge k WHERE k.id = ?', (entry_id, ))
        return self._to_entry(row) if row else None

    def get_all(self) -> List[KnowledgeEntry]:
        """Return every entry, newest first."""
        rows = self._fetch_all(f'SELECT {ENTRY_COLUMNS} FROM knowledge k ORDER BY k.created_at DESC, k.id DESC')
        return [self._to_entry(row) for row in rows]

    def sample(self, count: int) -> List[KnowledgeEntry]:
        """Return up to count entries drawn uniformly at random without replacement."""
        if count <= 0:
            return []
        rows = self._fetch_all(f'SELECT {ENTRY_COLUMNS} FROM knowledge k ORDER BY RANDOM() LIMIT ?', (count, ))
        return [self._to_entry(row) for row in rows]

    def delete(self, entry_id: int) -> bool:
        try:
            with self.get_connection() as conn:
                with conn:
                    cursor = conn.execute('DELETE FROM knowledge WHERE id = ?', (entry_id, ))
                    deleted = cursor.rowcount > 0
            if deleted:
                logger.debug(f'Deleted knowledge entry: {entry_id}')
            return deleted
        except sqlite3.Error as e:
            logger.error(f'Error deleting knowledge entry {entry_id}: {e}')
            raise KnowledgeStoreError(f'Failed to delete entry: {e}')

    def count(self) -> int:
        row = self._fetch_one('SELECT COUNT(*) AS count FROM knowledge')
        return row['count']

    def clear(self) -> None:
        try:
            with self.get_connection() as conn:
                with conn:
                    conn.execute('DELETE FROM knowledge')
            logger.info('All knowledge cleared')
        except sqlite3.Error as e:
            logger.error(f'Error clearing knowledge store: {e}')
            raise KnowledgeStoreError(f'Failed to clear store: {e}')

    def _fetch_one(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        try:
            with self.get_connection() as conn:
                return conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            logger.error(f'Knowledge store read failed: {e}')
            raise KnowledgeStoreError(f'Read failed: {e}')

    def _fetch_all(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        try:
            with self.get_connection() as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f'Knowledge store read failed: {e}')
            raise KnowledgeStoreError(f'Read failed: {e}')

    @staticmethod
    def _to_row(entry: KnowledgeEntry) -> tuple:
        return (entry.content, entry.context, entry.category or 'general', entry.sender, to_iso_str())

    @staticmethod
    def _to_entry(row: sqlite3.Row) -> KnowledgeEntry:
        return KnowledgeEntry(id=row['id'],
                              content=row['content'],
                              context=row['context'],
                              category=row['category'],
                              sender=row['sender'],
                              created_at=from_iso_str(row['created_at']))
