"""
Context Assembler

Builds the memory-context block appended to the model prompt. Sections,
in order:

  0. ACTIVE MEMORY        tiered-memory excerpts
  1. QUERY ANALYSIS       replacements, schema, modifiers, strategy, guidance
  2. AVAILABLE MODELS
  3. AVAILABLE CONCEPTS
  4. PRIMARY/RELATED TERMS, or RELEVANT TERMS when the pipeline found none
  5. CAUSAL RELATIONS
  6. RELEVANT FRAGMENTS   top 5, each cut to 200 characters
  7. DATA IN MEMORY       individuals grouped by concept, 20 per concept

Empty sections are omitted. Pipeline and tier failures degrade to the
fallback paths instead of failing the turn.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..common.config import RetrieverConfig
from ..common.graph import EventStore, GraphSnapshot, Individual, TierResults
from ..common.schemas import EventType
from .pipeline import RAGPipeline, RAGResult
from .preferences import Preferences, filter_by_preferences
from .searcher import GraphSearcher

logger = logging.getLogger("kgchat.retriever.context")

NO_INDIVIDUALS = "No individuals found in memory."

TIER_ITEMS_PER_SECTION = 5
TIER_VALUE_LENGTH = 50
CONTEXT_FRAGMENTS = 5
FRAGMENT_CONTENT_LENGTH = 200
INDIVIDUALS_PER_CONCEPT = 20

# Fragment fields holding displayable text, in priority order
FRAGMENT_TEXT_FIELDS = ("content", "definition_text", "description")


def truncate(value: Any, max_length: int) -> str:
    if value is None or value == "":
        return ""
    text = str(value)
    return text[:max_length] + "..." if len(text) > max_length else text


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


class ContextAssembler:
    """
    Assembles the textual context block for one query.

    The graph is read through a single GraphSnapshot per call; the tier
    index is queried on the live store.
    """

    def __init__(
        self,
        store: EventStore,
        pipeline: Optional[RAGPipeline] = None,
        config: Optional[RetrieverConfig] = None,
    ):
        self.store = store
        self.config = config or RetrieverConfig()
        self.pipeline = pipeline or RAGPipeline(config=self.config)

    @property
    def preferences(self) -> Preferences:
        return self.pipeline.preferences

    def build(self, query: str = "", snapshot: Optional[GraphSnapshot] = None) -> str:
        snapshot = snapshot or GraphSnapshot.capture(self.store)
        individuals = snapshot.individuals()

        rag_result: Optional[RAGResult] = None
        tier_results: Optional[TierResults] = None
        if query and individuals:
            try:
                rag_result = self.pipeline.run(query, snapshot)
                tier_results = self.store.retrieve_from_tiers(query, self.config.tier_limit)
            except Exception as e:
                logger.warning("RAG pipeline error: %s", e)

        lines: List[str] = []
        if tier_results is not None:
            self._tiers_section(lines, tier_results)
        if rag_result is not None:
            self._analysis_section(lines, rag_result)
        self._catalog_sections(lines, snapshot)
        if individuals:
            self._terms_section(lines, rag_result, query, snapshot)
        if rag_result is not None:
            self._causal_section(lines, rag_result)
            self._fragments_section(lines, rag_result)

        lines.append("=== DATA IN MEMORY ===")
        if not individuals:
            lines.append(NO_INDIVIDUALS)
            return "\n".join(lines)

        self._individuals_section(lines, individuals, rag_result, query, snapshot)
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _tiers_section(self, lines: List[str], tiers: TierResults) -> None:
        if not tiers.combined:
            return
        lines.append("=== ACTIVE MEMORY (from cognitive tiers) ===")
        if tiers.working:
            lines.append("Working Memory (current session):")
            for hit in tiers.working[:TIER_ITEMS_PER_SECTION]:
                lines.append(f"  [W] {hit.base}:{hit.type} = {truncate(hit.value, TIER_VALUE_LENGTH)}")
        if tiers.episodic:
            lines.append("Episodic Memory (recent events):")
            for hit in tiers.episodic[:TIER_ITEMS_PER_SECTION]:
                decay = f" [decay:{hit.decay:.2f}]" if hit.decay is not None else ""
                lines.append(
                    f"  [E] {hit.base}:{hit.type} = {truncate(hit.value, TIER_VALUE_LENGTH)}{decay}"
                )
        if tiers.semantic:
            lines.append("Semantic Memory (long-term facts):")
            for hit in tiers.semantic[:TIER_ITEMS_PER_SECTION]:
                lines.append(f"  [S] {hit.base}.{hit.type} = {truncate(hit.value, TIER_VALUE_LENGTH)}")
        lines.append("")

    def _analysis_section(self, lines: List[str], result: RAGResult) -> None:
        lines.append("=== QUERY ANALYSIS ===")
        if result.canonical.replacements:
            pairs = ", ".join(f"{r.source}→{r.target}" for r in result.canonical.replacements)
            lines.append(f"Synonym replacements: {pairs}")
        if result.intent.schema is not None:
            lines.append(f"Detected schema: {result.intent.schema.value}")
        if result.components.modifiers:
            lines.append(f"Query type: {', '.join(m.value for m in result.components.modifiers)}")
        lines.append(f"Response strategy: {result.response_strategy.value}")
        instruction = result.intent.instruction
        if instruction is not None and instruction.prompt:
            lines.append(f"Extraction guidance: {instruction.prompt}")
        lines.append("")

    def _catalog_sections(self, lines: List[str], snapshot: GraphSnapshot) -> None:
        if snapshot.models:
            lines.append("=== AVAILABLE MODELS ===")
            lines.append(", ".join(snapshot.models))
            lines.append("")
        if snapshot.concepts:
            lines.append("=== AVAILABLE CONCEPTS ===")
            lines.append(", ".join(snapshot.concepts))
            lines.append("")

    def _terms_section(
        self,
        lines: List[str],
        result: Optional[RAGResult],
        query: str,
        snapshot: GraphSnapshot,
    ) -> None:
        if result is not None and result.components.primary_terms:
            lines.append("=== PRIMARY TERMS ===")
            for term in result.components.primary_terms:
                synonym = term.get("synonym")
                syn = f" (syn: {_format_value(synonym)})" if synonym else ""
                lines.append(f"  {term.id}{syn}: {term.get('definition') or ''}")
            lines.append("")

            if result.components.related_terms:
                lines.append("=== RELATED TERMS ===")
                for related in result.components.related_terms:
                    definition = related.term.get("definition") or ""
                    lines.append(f"  {related.id} [{related.relation}]: {definition}")
                lines.append("")
            return

        if not query:
            return
        # Lexical fallback
        hits = GraphSearcher(snapshot).relevant_terms(query, limit=self.config.term_limit)
        if hits:
            lines.append("=== RELEVANT TERMS ===")
            for hit in hits:
                synonym = hit.item.get("synonym")
                syn = f" ({_format_value(synonym)})" if synonym else ""
                lines.append(f"  {hit.id}{syn}: {hit.item.get('definition') or ''}")
            lines.append("")

    def _causal_section(self, lines: List[str], result: RAGResult) -> None:
        if not result.causal_chains:
            return
        lines.append("=== CAUSAL RELATIONS ===")
        for chain in result.causal_chains:
            if chain.is_complete:
                lines.append(f"  {chain.cause} → {chain.effect}")
                if chain.mechanism:
                    lines.append(f"    Mechanism: {chain.mechanism}")
        lines.append("")

    def _fragments_section(self, lines: List[str], result: RAGResult) -> None:
        if not result.fragments:
            return
        lines.append("=== RELEVANT FRAGMENTS (ranked) ===")
        for index, fragment in enumerate(result.fragments[:CONTEXT_FRAGMENTS], start=1):
            content = next((fragment.get(f) for f in FRAGMENT_TEXT_FIELDS if fragment.get(f)), "")
            if not content:
                continue
            schema = f"[{fragment.get('schema')}]" if fragment.get("schema") else ""
            lines.append(f"  [{index}] {schema} {str(content)[:FRAGMENT_CONTENT_LENGTH]}...")
        lines.append("")

    def _individuals_section(
        self,
        lines: List[str],
        individuals: List[Individual],
        result: Optional[RAGResult],
        query: str,
        snapshot: GraphSnapshot,
    ) -> None:
        relevant = individuals
        if query:
            relevant = GraphSearcher(snapshot).search_relevant_individuals(
                individuals, query, limit=self.config.individual_limit
            )
        preferences = result.categories if result is not None else self.preferences
        relevant = filter_by_preferences(relevant, preferences)

        lines.append(f"Total individuals: {len(individuals)}")
        if query and len(relevant) < len(individuals):
            lines.append(f"Relevant to query: {len(relevant)}")
        lines.append("")

        by_concept: Dict[str, List[Individual]] = {}
        for individual in relevant:
            by_concept.setdefault(individual.concept or "Unknown", []).append(individual)

        for concept, members in by_concept.items():
            lines.append(f"--- {concept} ({len(members)}) ---")
            for individual in members[:INDIVIDUALS_PER_CONCEPT]:
                props = ", ".join(
                    f"{key}={_format_value(value)}"
                    for key, value in individual.properties.items()
                    if key != EventType.SET_MODEL.value and value
                )
                lines.append(f"  {individual.id}: {props or '(no properties)'}")
            if len(members) > INDIVIDUALS_PER_CONCEPT:
                lines.append(f"  ... and {len(members) - INDIVIDUALS_PER_CONCEPT} more")
            lines.append("")
