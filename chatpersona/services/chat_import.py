"""
Chat import service that loads chat exports into the knowledge store.
"""

from typing import Optional

from ..models.core import ChatStats, ImportReport
from ..utils.knowledge_store import KnowledgeStore, KnowledgeStoreError
from ..utils.logging_config import get_logger
from .chat_parser import ChatLogParser

logger = get_logger(__name__)


class ChatImportError(Exception):
    """Custom exception for chat import errors."""
    pass


class AmbiguousSenderError(ChatImportError):
    """Raised when an export has several senders and none was chosen."""

    def __init__(self, stats: ChatStats):
        self.stats = stats
        names = ', '.join(f'{name} ({count})' for name, count in stats.senders)
        super().__init__(f'Multiple senders found, choose one to import: {names}')


class ChatImportService:
    """Parse chat exports and store one sender's messages as knowledge."""

    def __init__(self, store: KnowledgeStore, parser: Optional[ChatLogParser] = None):
        self.store = store
        self.parser = parser or ChatLogParser()

    def import_file(self, path: str, sender: Optional[str] = None, clear: bool = False) -> ImportReport:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                text = f.read()
        except OSError as e:
            logger.error(f'Cannot read chat export {path}: {e}')
            raise ChatImportError(f'Cannot read chat export: {e}')

        logger.info(f'Importing chat from: {path}')
        return self.import_text(text, sender=sender, clear=clear)

    def import_text(self, text: str, sender: Optional[str] = None, clear: bool = False) -> ImportReport:
        """
        Import an export's messages.

        Args:
            text: Raw export content
            sender: Sender whose messages become knowledge; required when the
                export has more than one sender
            clear: Empty the store before importing

        Returns:
            ImportReport with parse and insert counts

        Raises:
            AmbiguousSenderError: If several senders exist and sender is None
            ChatImportError: If writing to the store fails
        """
        utterances = self.parser.parse(text)
        stats = self.parser.get_chat_stats(utterances)
        logger.info(f'Found {stats.total_messages} messages from {stats.unique_senders} senders')

        if sender is None and stats.unique_senders > 1:
            raise AmbiguousSenderError(stats)

        if sender and not self.parser.filter_by_user(utterances, sender):
            logger.warning(f'No messages from {sender!r} in this export')

        entries = self.parser.convert_to_knowledge(utterances, sender)

        if clear:
            logger.info('Replacing existing knowledge')

        try:
            imported = self.store.insert_batch(entries, replace=clear)
        except KnowledgeStoreError as e:
            raise ChatImportError(f'Import failed: {e}')

        logger.info(f'Imported {imported} messages, total knowledge: {self.store.count()}')
        return ImportReport(parsed=len(utterances), imported=imported, sender=sender, stats=stats)
