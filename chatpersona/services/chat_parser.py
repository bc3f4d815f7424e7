"""
Chat export parser that turns exported conversation logs into knowledge entries.
"""

import re
from collections import Counter
from typing import List, Optional

from ..models.core import ChatStats, KnowledgeEntry, ParsedUtterance
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import normalize_chat_timestamp, parse_chat_timestamp

logger = get_logger(__name__)

IMPORTED_CHAT_CATEGORY = 'imported_chat'

# Substrings marking service events rather than things someone actually said
SERVICE_MESSAGE_MARKERS = [
    'Messages and calls are end-to-end encrypted',
    'created group',
    'changed the subject',
    'left',
    'joined using',
    '<Media omitted>',
]

# Each pattern yields (date, time, sender, message)
LINE_PATTERNS = [
    # [DD/MM/YYYY, HH:MM:SS] Sender: Message
    re.compile(r'^\[(\d{2}/\d{2}/\d{4}),\s(\d{2}:\d{2}:\d{2})\]\s([^:]+):\s(.*)$'),
    # DD/MM/YYYY, HH:MM - Sender: Message
    re.compile(r'^(\d{2}/\d{2}/\d{4}),\s(\d{2}:\d{2})\s-\s([^:]+):\s(.*)$'),
    # DD/MM/YY, HH:MM - Sender: Message
    re.compile(r'^(\d{2}/\d{2}/\d{2}),\s(\d{2}:\d{2})\s-\s([^:]+):\s(.*)$'),
    # DD/MM/YY HH.MM - Sender: Message
    re.compile(r'^(\d{2}/\d{2}/\d{2})\s(\d{2}\.\d{2})\s-\s([^:]+):\s(.*)$'),
]

# Directional marks some exporters put in front of each line
_INVISIBLE_PREFIX = '\u200e\u200f\ufeff'


class ChatLogParser:
    """Parse exported chat logs into timestamped utterances."""

    def parse(self, text: str) -> List[ParsedUtterance]:
        """Parse an export into utterances.

        Lines that do not start a new message are continuation lines of the
        previous one. Continuation lines before the first message are dropped.

        Args:
            text: Raw export content

        Returns:
            List of ParsedUtterance in file order
        """
        utterances: List[ParsedUtterance] = []
        current: Optional[ParsedUtterance] = None

        for raw_line in text.splitlines():
            line = raw_line.strip().lstrip(_INVISIBLE_PREFIX)
            if not line:
                continue

            parsed = self._parse_line(line)
            if parsed:
                if current:
                    utterances.append(current)
                current = parsed
            elif current:
                current.message += '\n' + line

        if current:
            utterances.append(current)

        logger.debug(f'Parsed {len(utterances)} utterances')
        return utterances

    def parse_file(self, path: str) -> List[ParsedUtterance]:
        with open(path, 'r', encoding='utf-8') as f:
            return self.parse(f.read())

    def _parse_line(self, line: str) -> Optional[ParsedUtterance]:
        for pattern in LINE_PATTERNS:
            match = pattern.match(line)
            if match:
                date_part, time_part, sender, message = match.groups()
                return ParsedUtterance(timestamp=normalize_chat_timestamp(date_part, time_part),
                                       sender=sender.strip(),
                                       message=message)
        return None

    def filter_by_user(self, utterances: List[ParsedUtterance], name: str) -> List[ParsedUtterance]:
        """Keep only utterances whose sender matches name, ignoring case."""
        wanted = name.lower()
        return [u for u in utterances if u.sender.lower() == wanted]

    def convert_to_knowledge(self, utterances: List[ParsedUtterance], name: Optional[str] = None) -> List[KnowledgeEntry]:
        """Convert utterances to knowledge entries.

        Service events are discarded. When name is given only that sender's
        utterances are kept.

        Args:
            utterances: Parsed utterances
            name: Optional sender to restrict to (case-insensitive)

        Returns:
            List of KnowledgeEntry ready for insertion
        """
        entries = []
        for utterance in utterances:
            if self._is_service_message(utterance.message):
                continue
            if name and utterance.sender.lower() != name.lower():
                continue
            entries.append(
                KnowledgeEntry(content=utterance.message,
                               context=f'From chat with {utterance.sender} at {utterance.timestamp}',
                               category=IMPORTED_CHAT_CATEGORY,
                               sender=utterance.sender))
        return entries

    def get_unique_senders(self, utterances: List[ParsedUtterance]) -> List[str]:
        return sorted({u.sender for u in utterances})

    def get_chat_stats(self, utterances: List[ParsedUtterance]) -> ChatStats:
        """Count messages per sender and find the covered time span.

        Args:
            utterances: Parsed utterances

        Returns:
            ChatStats with senders sorted by message count, descending
        """
        counts = Counter(u.sender for u in utterances)
        senders = sorted(counts.items(), key=lambda item: item[1], reverse=True)

        moments = [m for m in (parse_chat_timestamp(u.timestamp) for u in utterances) if m is not None]

        return ChatStats(total_messages=len(utterances),
                         unique_senders=len(counts),
                         senders=senders,
                         first_message_at=min(moments) if moments else None,
                         last_message_at=max(moments) if moments else None)

    @staticmethod
    def _is_service_message(message: str) -> bool:
        return any(marker in message for marker in SERVICE_MESSAGE_MARKERS)
