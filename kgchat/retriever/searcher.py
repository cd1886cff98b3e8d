"""
Searcher

Lexical scans over a graph snapshot. Every match is plain substring
containment on lower-cased text; there is no embedding index.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from ..common.graph import GraphItem, GraphSnapshot, Individual, as_number
from ..common.schemas import ConceptName
from .query_processor import tokenize

logger = logging.getLogger("kgchat.retriever.searcher")

FRAGMENT_TOKEN_WEIGHT = 2

TERM_ID_WEIGHT = 5
TERM_SYNONYM_WEIGHT = 4
TERM_DEFINITION_WEIGHT = 3

INDIVIDUAL_ID_WEIGHT = 10
INDIVIDUAL_ID_TOKEN_WEIGHT = 2
INDIVIDUAL_CONCEPT_WEIGHT = 5
PROPERTY_VALUE_WEIGHT = 3
PROPERTY_TOKEN_WEIGHT = 1


@dataclass(frozen=True)
class SearchHit:
    """A graph item with its lexical score"""
    item: GraphItem
    score: float

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def state(self):
        return self.item.state


@dataclass(frozen=True)
class CausalChain:
    """A cause/effect record found in the graph"""
    id: str
    cause: Optional[str]
    effect: Optional[str]
    mechanism: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.cause and self.effect)


def _top(hits: List[SearchHit], limit: int) -> List[SearchHit]:
    # sorted() is stable, so ties keep log order
    return sorted(hits, key=lambda h: h.score, reverse=True)[:limit]


def _text(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


class GraphSearcher:
    """
    Retrieves fragments, terms, causal records and individuals.

    Bound to one snapshot; build a new searcher per turn.
    """

    def __init__(self, snapshot: GraphSnapshot):
        self.snapshot = snapshot

    def relevant_fragments(self, query: str, limit: int = 30) -> List[SearchHit]:
        """Fragments scored +2 per query token found in their serialized state."""
        words = tokenize(query.lower())
        hits = []
        for fragment in self.snapshot.fragments():
            content = fragment.content.lower()
            score = sum(FRAGMENT_TOKEN_WEIGHT for w in words if w in content)
            if score > 0:
                hits.append(SearchHit(item=fragment, score=score))
        return _top(hits, limit)

    def relevant_terms(self, query: str, limit: int = 15) -> List[SearchHit]:
        """Terms whose id, synonyms or definition contain the whole query."""
        query_lower = query.lower()
        hits = []
        for term in self.snapshot.terms():
            score = 0.0
            if query_lower in term.id.lower():
                score += TERM_ID_WEIGHT
            synonym = term.get("synonym")
            if synonym and query_lower in _text(synonym).lower():
                score += TERM_SYNONYM_WEIGHT
            definition = term.get("definition")
            if definition and query_lower in str(definition).lower():
                score += TERM_DEFINITION_WEIGHT

            importance = as_number(term.get("importance"))
            if importance is not None:
                score *= max(1.0, importance)

            if score > 0:
                hits.append(SearchHit(item=term, score=score))
        return _top(hits, limit)

    def causal_chains(self, query: str, limit: int = 5) -> List[CausalChain]:
        """Records with cause/effect whose content mentions the query or a word of it."""
        query_lower = query.lower()
        words = query_lower.split()
        chains = []
        candidates = self.snapshot.items_of(
            ConceptName.CAUSAL_RELATION.value, ConceptName.FRAGMENT.value
        )
        for item in candidates:
            cause, effect = item.get("cause"), item.get("effect")
            if not cause and not effect:
                continue
            content = item.content.lower()
            if query_lower in content or any(w in content for w in words):
                chains.append(CausalChain(
                    id=item.id,
                    cause=_text(cause) if cause else None,
                    effect=_text(effect) if effect else None,
                    mechanism=item.get("mechanism"),
                ))
            if len(chains) >= limit:
                break
        return chains

    def search_relevant_individuals(
        self, individuals: Sequence[Individual], query: str, limit: int = 30
    ) -> List[Individual]:
        """
        Rank individuals against the query.

        Returns the positive-scoring ones by descending score. When nothing
        scores, the first `limit` individuals are returned unranked.
        """
        query_lower = query.lower()
        words = tokenize(query_lower)

        scored = []
        for individual in individuals:
            individual_id = individual.id.lower()
            score = 0
            if query_lower in individual_id:
                score += INDIVIDUAL_ID_WEIGHT
            score += sum(INDIVIDUAL_ID_TOKEN_WEIGHT for w in words if w in individual_id)
            if query_lower in individual.concept.lower():
                score += INDIVIDUAL_CONCEPT_WEIGHT

            for key, value in individual.properties.items():
                value_text = _text(value).lower()
                key_lower = key.lower()
                if query_lower in value_text:
                    score += PROPERTY_VALUE_WEIGHT
                for w in words:
                    if w in value_text:
                        score += PROPERTY_TOKEN_WEIGHT
                    if w in key_lower:
                        score += PROPERTY_TOKEN_WEIGHT
            scored.append((individual, score))

        scored.sort(key=lambda pair: pair[1], reverse=True)
        relevant = [individual for individual, score in scored if score > 0]
        if not relevant:
            logger.debug("No individual matched %r, returning first %d", query, limit)
            return list(individuals[:limit])
        return relevant[:limit]
