"""
Retriever - Graph-Grounded Context Retrieval

Finds what the event graph knows about a query and renders it as the
memory-context block of the model prompt.

Key Components:
- QueryProcessor: Canonicalizes, decomposes and classifies queries
- GraphSearcher: Lexical search over fragments, terms and individuals
- Ranking: Fragment scoring, diversity filter, response strategy
- RAGPipeline: Runs the steps above once per query
- ContextAssembler: Renders the context block, degrading on failure

Pipeline:
1. Canonicalize synonyms to term identifiers
2. Extract primary/related terms and modifiers
3. Detect the response schema and its extraction instruction
4. Retrieve, score and diversify fragments
5. Choose a response strategy
"""

from .query_processor import (
    QueryProcessor,
    ModifierKind,
    SchemaName,
    CanonicalQuery,
    QueryComponents,
    Intent,
    SchemaInstruction,
    MODIFIER_PATTERNS,
    SCHEMA_PATTERNS,
)
from .searcher import GraphSearcher, SearchHit, CausalChain
from .ranking import Diversifier, ResponseStrategy, score_fragment, select_response_strategy
from .preferences import Preferences, DifficultyLevel, filter_by_preferences
from .pipeline import RAGPipeline, RAGResult
from .context import ContextAssembler

__all__ = [
    "QueryProcessor",
    "ModifierKind",
    "SchemaName",
    "CanonicalQuery",
    "QueryComponents",
    "Intent",
    "SchemaInstruction",
    "MODIFIER_PATTERNS",
    "SCHEMA_PATTERNS",
    "GraphSearcher",
    "SearchHit",
    "CausalChain",
    "Diversifier",
    "ResponseStrategy",
    "score_fragment",
    "select_response_strategy",
    "Preferences",
    "DifficultyLevel",
    "filter_by_preferences",
    "RAGPipeline",
    "RAGResult",
    "ContextAssembler",
]
