"""
kgchat Common Module

Shared infrastructure for the retriever and scribe sides.
"""

from .config import KgChatConfig, load_config
from .graph import EventStore, GraphSnapshot, GraphItem, Individual
from .llm_client import LLMClient, LLMError
from .memory_store import InMemoryEventStore

__all__ = [
    "KgChatConfig",
    "load_config",
    "EventStore",
    "GraphSnapshot",
    "GraphItem",
    "Individual",
    "LLMClient",
    "LLMError",
    "InMemoryEventStore",
]
