"""
Configuration management for AI providers, the knowledge store and bot settings.
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


@dataclass
class BedrockLLMConfig:
    """Configuration for Amazon Bedrock LLM service."""
    region: str
    model_id: str
    max_tokens: int
    temperature: float
    retry_attempts: int
    retry_delay: float


@dataclass
class GeminiConfig:
    """Configuration for Google Gemini."""
    api_key: str
    model_id: str
    retry_attempts: int
    retry_delay: float


@dataclass
class OpenRouterConfig:
    """Configuration for the OpenRouter chat completions API."""
    api_key: str
    model_id: str
    base_url: str
    retry_attempts: int
    retry_delay: float


@dataclass
class KnowledgeStoreConfig:
    """Configuration for the SQLite knowledge store."""
    db_path: str
    search_limit: int = 5


@dataclass
class MemoryConfig:
    """Configuration for short-term conversation memory."""
    max_history: int = 20


@dataclass
class BotConfig:
    """Configuration for reply behaviour."""
    name: str
    enabled: bool = True
    reply_delay_min_ms: int = 1000
    reply_delay_max_ms: int = 3000
    allowed_senders: List[str] = field(default_factory=list)
    persona_file: str = ''


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    ai_provider: str
    bedrock_llm: BedrockLLMConfig
    gemini: GeminiConfig
    openrouter: OpenRouterConfig
    knowledge: KnowledgeStoreConfig
    memory: MemoryConfig
    bot: BotConfig
    mcp: MCPConfig


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    bedrock_llm_config = BedrockLLMConfig(region=os.getenv('BEDROCK_LLM_AWS_REGION', 'us-east-1'),
                                          model_id=os.getenv('BEDROCK_LLM_MODEL_ID', 'anthropic.claude-3-haiku-20240307-v1:0'),
                                          max_tokens=int(os.getenv('BEDROCK_LLM_MAX_TOKENS', '1000')),
                                          temperature=float(os.getenv('BEDROCK_LLM_TEMPERATURE', '0.7')),
                                          retry_attempts=int(os.getenv('BEDROCK_LLM_RETRY_ATTEMPTS', '3')),
                                          retry_delay=float(os.getenv('BEDROCK_LLM_RETRY_DELAY', '2.0')))

    gemini_config = GeminiConfig(api_key=os.getenv('GEMINI_API_KEY', ''),
                                 model_id=os.getenv('GEMINI_MODEL', 'gemini-1.5-flash'),
                                 retry_attempts=int(os.getenv('GEMINI_RETRY_ATTEMPTS', '3')),
                                 retry_delay=float(os.getenv('GEMINI_RETRY_DELAY', '2.0')))

    openrouter_config = OpenRouterConfig(api_key=os.getenv('OPENROUTER_API_KEY', ''),
                                         model_id=os.getenv('OPENROUTER_MODEL', 'google/gemini-2.0-flash-exp:free'),
                                         base_url=os.getenv('OPENROUTER_BASE_URL', 'https://openrouter.ai/api/v1'),
                                         retry_attempts=int(os.getenv('OPENROUTER_RETRY_ATTEMPTS', '3')),
                                         retry_delay=float(os.getenv('OPENROUTER_RETRY_DELAY', '2.0')))

    knowledge_config = KnowledgeStoreConfig(db_path=os.getenv('DB_PATH', os.path.join(os.getcwd(), 'data', 'knowledge.db')),
                                            search_limit=int(os.getenv('KNOWLEDGE_SEARCH_LIMIT', '5')))

    memory_config = MemoryConfig(max_history=int(os.getenv('MEMORY_MAX_HISTORY', '20')))

    bot_config = BotConfig(name=os.getenv('BOT_NAME', 'Personal Assistant'),
                           enabled=os.getenv('BOT_ENABLED', 'true').lower() != 'false',
                           reply_delay_min_ms=int(os.getenv('REPLY_DELAY_MIN', '1000')),
                           reply_delay_max_ms=int(os.getenv('REPLY_DELAY_MAX', '3000')),
                           allowed_senders=_split_list(os.getenv('ALLOWED_NUMBERS', '')),
                           persona_file=os.getenv('BOT_PERSONA_FILE', ''))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'stdio'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     ai_provider=os.getenv('AI_PROVIDER', 'openrouter').lower(),
                     bedrock_llm=bedrock_llm_config,
                     gemini=gemini_config,
                     openrouter=openrouter_config,
                     knowledge=knowledge_config,
                     memory=memory_config,
                     bot=bot_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
