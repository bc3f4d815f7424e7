"""
Core data models for the retrieval-augmented reply pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

CHAT_ROLES = ('system', 'user', 'assistant')


@dataclass
class KnowledgeEntry:
    """One unit of retrievable historical text with provenance metadata."""
    content: str
    context: Optional[str] = None  # Provenance note, e.g. "From chat with Adit at 01/01/24, 10:00"
    category: str = 'general'
    sender: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class SearchResult:
    """A knowledge entry paired with its FTS5 rank (lower is more relevant)."""
    entry: KnowledgeEntry
    relevance: float


@dataclass
class ParsedUtterance:
    """A single message recovered from a chat export; message may span lines."""
    timestamp: str
    sender: str
    message: str


@dataclass
class ChatStats:
    """Message counts per sender, busiest sender first."""
    total_messages: int
    unique_senders: int
    senders: List[Tuple[str, int]]
    first_message_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None


@dataclass
class ImportReport:
    """Outcome of importing one chat export."""
    parsed: int
    imported: int
    sender: Optional[str]
    stats: ChatStats


@dataclass
class ChatTurn:
    """One role-tagged utterance in a dialogue."""
    role: str
    content: str

    def __post_init__(self):
        if self.role not in CHAT_ROLES:
            raise ValueError(f'Invalid chat role: {self.role!r}')

    def to_dict(self) -> dict:
        return {'role': self.role, 'content': self.content}


@dataclass
class GenerationResult:
    """Provider output; text is empty when success is False."""
    success: bool
    text: str = ''
    error: Optional[str] = None


@dataclass
class RetrievalResult:
    success: bool
    context: str = ''
    sources: List[SearchResult] = field(default_factory=list)


@dataclass
class ResponseResult:
    success: bool
    text: str = ''
    error: Optional[str] = None
    context_used: bool = False


@dataclass
class InboundMessage:
    """A message delivered by the messaging channel."""
    conversation_id: str
    sender_id: str
    text: str
    is_group: bool = False
    from_me: bool = False
