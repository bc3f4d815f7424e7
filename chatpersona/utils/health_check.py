"""
Health check utilities for the application.
"""

from typing import Any, Dict, Optional

from .ai_provider import AIProvider
from .config import config
from .knowledge_store import KnowledgeStore
from .logging_config import get_logger
from .provider_factory import get_provider

logger = get_logger(__name__)


def check_health(provider: Optional[AIProvider] = None, store: Optional[KnowledgeStore] = None) -> bool:
    """Check the health of all system components.

    Returns:
        True if all components are healthy, False otherwise
    """
    try:
        health_status = get_health_status(provider, store)

        all_healthy = all(status.get('healthy', False) for status in health_status.values())

        if all_healthy:
            logger.info('All system components are healthy')
        else:
            logger.warning('Some system components are unhealthy')

        return all_healthy

    except Exception as e:
        logger.error(f'Health check failed: {e}')
        return False


def get_health_status(provider: Optional[AIProvider] = None, store: Optional[KnowledgeStore] = None) -> Dict[str, Any]:
    """Get detailed health status of all components.

    Args:
        provider: AIProvider to test (configured provider if None)
        store: KnowledgeStore to inspect (configured store if None)

    Returns:
        Dictionary with health status of each component
    """
    health_status = {}

    try:
        provider = provider or get_provider()
        health_status['ai_provider'] = {
            'healthy': provider.test_connection(),
            'service': provider.name,
            'model': getattr(provider, 'model_id', None)
        }
    except Exception as e:
        health_status['ai_provider'] = {'healthy': False, 'service': config.ai_provider, 'error': str(e)}

    try:
        store = store or KnowledgeStore(config.knowledge)
        health_status['knowledge_store'] = {
            'healthy': True,
            'service': 'SQLite FTS5',
            'path': store.db_path,
            'entries': store.count()
        }
    except Exception as e:
        health_status['knowledge_store'] = {'healthy': False, 'service': 'SQLite FTS5', 'error': str(e)}

    return health_status
