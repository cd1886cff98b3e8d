"""
RAG Pipeline

canonicalize -> extract -> classify -> categorize -> retrieve -> rank
-> diversify -> strategy, run once per query over a single graph snapshot.

The pipeline does not catch its own errors; callers that want fail-soft
behaviour (ContextAssembler) treat an exception as "no result".
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..common.config import RetrieverConfig
from ..common.graph import EventStore, GraphItem, GraphSnapshot
from .preferences import Preferences
from .query_processor import CanonicalQuery, Intent, QueryComponents, QueryProcessor
from .ranking import Diversifier, ResponseStrategy, rank_fragments, select_response_strategy
from .searcher import CausalChain, GraphSearcher

logger = logging.getLogger("kgchat.retriever.pipeline")


@dataclass(frozen=True)
class RAGResult:
    """Complete, immutable output of one pipeline run"""
    query: str
    canonical: CanonicalQuery
    components: QueryComponents
    intent: Intent
    categories: Preferences
    fragments: Tuple[GraphItem, ...]
    response_strategy: ResponseStrategy
    causal_chains: Tuple[CausalChain, ...]


class RAGPipeline:
    """
    Query-side retrieval pipeline.

    Usage:
        pipeline = RAGPipeline(config=RetrieverConfig())
        result = pipeline.run("What is a DAG?", GraphSnapshot.capture(store))
    """

    def __init__(
        self,
        config: Optional[RetrieverConfig] = None,
        preferences: Optional[Preferences] = None,
        query_processor: Optional[QueryProcessor] = None,
    ):
        self.config = config or RetrieverConfig()
        self.preferences = preferences or Preferences()
        self.query_processor = query_processor or QueryProcessor()
        self.diversifier = Diversifier(
            max_count=self.config.max_fragments,
            threshold=self.config.diversity_threshold,
        )

    def run(self, query: str, snapshot: GraphSnapshot) -> RAGResult:
        searcher = GraphSearcher(snapshot)
        terms = snapshot.terms()[: self.config.term_universe]

        canonical = self.query_processor.canonicalize(query, terms)
        components = self.query_processor.extract(canonical.canonical_text, terms)
        intent = self.query_processor.classify(query, components, snapshot)

        candidates = searcher.relevant_fragments(query, limit=self.config.fragment_pool)
        ranked = rank_fragments((hit.item for hit in candidates), components, intent)
        selected = self.diversifier.select(ranked)

        strategy = select_response_strategy([intent.schema])

        logger.debug(
            "Pipeline: %d terms, %d candidates, %d selected, schema=%s, strategy=%s",
            len(components.primary_terms), len(candidates), len(selected),
            intent.schema.value if intent.schema else None, strategy.value,
        )

        return RAGResult(
            query=query,
            canonical=canonical,
            components=components,
            intent=intent,
            categories=self.preferences,
            fragments=tuple(r.fragment for r in selected),
            response_strategy=strategy,
            causal_chains=tuple(searcher.causal_chains(query)),
        )

    def run_on(self, query: str, store: EventStore) -> RAGResult:
        """Capture a snapshot of the store and run on it."""
        return self.run(query, GraphSnapshot.capture(store))
