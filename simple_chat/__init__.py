"""
Simple conversation service

Backend for a conversational app-idea assistant: streams replies from
OpenAI or Anthropic and extracts follow-up suggestions and decisions
after every turn.

Components:
- streaming: byte stream -> JSON events (SSE and NDJSON framing)
- openai_client / anthropic_client / mock_client: provider adapters
- registry: configured adapters and the active provider
- conversation: turn lifecycle and message history
- extractors: suggestion and decision extraction
- store: UI-visible state
- api: HTTP endpoints
"""

from .conversation import Conversation
from .registry import ServiceRegistry, build_registry
from .store import ConversationStore

__version__ = "0.1.0"
