"""
Scribe - Graph Write Side

Takes a model reply apart and merges what it created back into the graph.

Key Components:
- parse_response: Extracts <events> and <view> blocks from the reply
- resolve_default_parent: Causal parent for events that name none
- EventIngestor: Normalizes actors, causes and ids of a batch
- ResponseCommitter: Validates, commits, dispatches views

Rules:
1. cause is always a list of event ids
2. Every committed event has at least one parent
3. The graph stays acyclic
4. Validation failures are logged, never fatal
"""

from .payload_parser import ParsedResponse, parse_response
from .causality import resolve_default_parent
from .event_ingestor import EventIngestor, normalize_cause
from .committer import ResponseCommitter, ViewSink, CollectingViewSink, CommitReport

__all__ = [
    "ParsedResponse",
    "parse_response",
    "resolve_default_parent",
    "EventIngestor",
    "normalize_cause",
    "ResponseCommitter",
    "ViewSink",
    "CollectingViewSink",
    "CommitReport",
]
