"""
MCP interface layer exposing the reply pipeline and knowledge tools via fastmcp.
"""
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from .models.core import InboundMessage
from .services.chat_bot import create_chat_bot
from .services.chat_import import AmbiguousSenderError, ChatImportError, ChatImportService
from .services.retriever import KnowledgeRetriever
from .utils.config import config
from .utils.health_check import get_health_status
from .utils.logging_config import get_logger

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('ChatPersona')
bot = create_chat_bot(config)
retriever = KnowledgeRetriever(bot.store)
importer = ChatImportService(bot.store)


@mcp.tool()
def reply_to_message(conversation_id: str, sender_id: str, text: str, is_group: bool = False,
                     from_me: bool = False) -> Optional[str]:
    """Answer a chat message in the persona's voice.

    Args:
        conversation_id: Conversation the message belongs to
        sender_id: Sender identifier, checked against the allow-list
        text: Message text
        is_group: Whether the conversation is a group chat (never answered)
        from_me: Whether the message was sent by the bot's own account (never answered)

    Returns:
        Reply text, or None if the message is not answered
    """
    inbound = InboundMessage(conversation_id=conversation_id,
                             sender_id=sender_id,
                             text=text,
                             is_group=is_group,
                             from_me=from_me)
    return bot.handle_message(inbound)


@mcp.tool()
def search_knowledge(query: str, limit: int = 5) -> Dict[str, Any]:
    """Show what the retriever finds for a message.

    Args:
        query: Natural language message
        limit: Maximum number of results to return (default: 5)

    Returns:
        Keywords, formatted context and the matching entries
    """
    result = retriever.retrieve(query, limit)
    return {
        'success': result.success,
        'keywords': retriever.extract_keywords(query),
        'context': result.context,
        'sources': [{
            'id': source.entry.id,
            'sender': retriever.sender_of(source.entry),
            'content': source.entry.content,
            'relevance': source.relevance
        } for source in result.sources]
    }


@mcp.tool()
def import_chat_export(file_path: str, sender: Optional[str] = None, clear: bool = False) -> Dict[str, Any]:
    """Import a chat export file into the knowledge base.

    Args:
        file_path: Path to the exported chat (.txt)
        sender: Whose messages to import; required when the export has several senders
        clear: Replace existing knowledge instead of adding to it

    Returns:
        Import summary, or the sender list when a choice is needed

    Raises:
        Exception: If the file cannot be read or stored
    """
    try:
        report = importer.import_file(file_path, sender=sender, clear=clear)
    except AmbiguousSenderError as e:
        logger.warning(str(e))
        return {'imported': 0, 'error': str(e), 'senders': _sender_counts(e.stats.senders)}
    except ChatImportError as e:
        logger.error(f'Chat import error in MCP import: {e}')
        raise Exception(f'Chat import failed: {e}')

    return {
        'parsed': report.parsed,
        'imported': report.imported,
        'sender': report.sender,
        'senders': _sender_counts(report.stats.senders),
        'total_knowledge': bot.store.count()
    }


@mcp.tool()
def knowledge_stats() -> Dict[str, Any]:
    """Report knowledge and conversation counts."""
    return bot.get_stats()


@mcp.tool()
def clear_conversation(conversation_id: str) -> bool:
    """Forget the short-term history of one conversation."""
    bot.memory.clear(conversation_id)
    return True


@mcp.tool()
def health() -> Dict[str, Any]:
    """Check the AI provider and knowledge store."""
    return get_health_status(bot.generator.provider, bot.store)


def _sender_counts(senders: List) -> List[Dict[str, Any]]:
    return [{'name': name, 'count': count} for name, count in senders]


if __name__ == '__main__':
    if config.mcp.transport == 'stdio':
        mcp.run()
    else:
        mcp.run(transport=config.mcp.transport, host=config.mcp.host, port=config.mcp.port)
