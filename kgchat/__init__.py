"""
kgchat

Chat grounded in an append-only, causally linked event graph.

Philosophy:
- The graph is the only source of truth; the model answers from it
- Every event has at least one causal parent; the graph stays acyclic
- Retrieval is lexical and deterministic

Usage:
    from kgchat.common import InMemoryEventStore, LLMClient, load_config
    from kgchat.retriever import ContextAssembler, RAGPipeline
    from kgchat.scribe import EventIngestor, parse_response
    from kgchat.chat import ChatSession
"""

__version__ = "0.1.0"
