"""
Ranking

Scores candidate fragments against the extracted query components, keeps a
low-redundancy subset and picks how the answer should use it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from ..common.graph import GraphItem, as_number
from .query_processor import Intent, QueryComponents, SchemaName

EXACT_MATCH_WEIGHT = 2.0
RELATED_MATCH_WEIGHT = 1.0
SCHEMA_MATCH_WEIGHT = 1.5
CONFIDENCE_WEIGHT = 0.5
IMPORTANCE_FACTOR = 0.1

# Leading characters of a fragment's serialized content compared for redundancy
SIGNATURE_LENGTH = 100


class ResponseStrategy(str, Enum):
    """How the answer should present retrieved fragments"""
    FORMAL_FRAGMENTS = "formal_fragments"  # present fragments directly
    SYNTHESIZED_RAG = "synthesized_rag"  # synthesize across fragments
    HYBRID = "hybrid"


FORMAL_SCHEMAS = frozenset({
    SchemaName.DEFINITION,
    SchemaName.CODE_SNIPPET,
    SchemaName.COMPARISON,
    SchemaName.EXAMPLE,
    SchemaName.ARCHITECTURAL_COMPONENT,
    SchemaName.TECHNICAL_PROCESS,
})

ANALYTICAL_SCHEMAS = frozenset({
    SchemaName.PROBLEM_SOLUTION,
    SchemaName.ADVANTAGE_DISADVANTAGE,
    SchemaName.USE_CASE,
    SchemaName.CONCEPTUAL_MODEL,
})


@dataclass(frozen=True)
class RankedFragment:
    """A fragment with its relevance score"""
    fragment: GraphItem
    score: float


def score_fragment(
    fragment: GraphItem, components: QueryComponents, intent: Intent
) -> float:
    """
    Relevance of a fragment to the query.

    2.0 per primary term and 1.0 per related term whose id occurs in the
    serialized fragment, 1.5 when the fragment's schema is the detected one,
    plus half its confidence. The total is then multiplied by
    (1 + importance * 0.1) for every primary term carrying an importance.
    """
    content = fragment.content.lower()

    exact = sum(1 for t in components.primary_terms if t.id.lower() in content)
    related = sum(1 for r in components.related_terms if r.id.lower() in content)

    score = exact * EXACT_MATCH_WEIGHT + related * RELATED_MATCH_WEIGHT

    if intent.schema is not None and fragment.get("schema") == intent.schema.value:
        score += SCHEMA_MATCH_WEIGHT

    confidence = as_number(fragment.get("confidence"))
    if confidence:
        score += confidence * CONFIDENCE_WEIGHT

    for term in components.primary_terms:
        importance = as_number(term.get("importance"))
        if importance:
            score *= 1 + importance * IMPORTANCE_FACTOR

    return score


def rank_fragments(
    fragments: Iterable[GraphItem], components: QueryComponents, intent: Intent
) -> List[RankedFragment]:
    """Score and sort by descending score; ties keep input order."""
    ranked = [
        RankedFragment(fragment=f, score=score_fragment(f, components, intent))
        for f in fragments
    ]
    return sorted(ranked, key=lambda r: r.score, reverse=True)


def jaccard_similarity(a: str, b: str) -> float:
    """Word-set Jaccard index of two strings, case-insensitive."""
    set_a = set(a.lower().split())
    set_b = set(b.lower().split())
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


class Diversifier:
    """
    Greedy redundancy filter.

    Walks candidates in ranked order and accepts one unless its signature
    is more similar than `threshold` to an accepted signature.
    """

    def __init__(self, max_count: int = 10, threshold: float = 0.7):
        self.max_count = max_count
        self.threshold = threshold

    def select(self, ranked: Sequence[RankedFragment]) -> List[RankedFragment]:
        selected: List[RankedFragment] = []
        signatures: List[str] = []

        for candidate in ranked:
            if len(selected) >= self.max_count:
                break
            signature = candidate.fragment.content[:SIGNATURE_LENGTH]
            if any(jaccard_similarity(signature, seen) > self.threshold for seen in signatures):
                continue
            selected.append(candidate)
            signatures.append(signature)

        return selected


def select_response_strategy(schemas: Iterable[Optional[SchemaName]]) -> ResponseStrategy:
    detected = [s for s in schemas if s is not None]
    if any(s in FORMAL_SCHEMAS for s in detected):
        return ResponseStrategy.FORMAL_FRAGMENTS
    if any(s in ANALYTICAL_SCHEMAS for s in detected):
        return ResponseStrategy.SYNTHESIZED_RAG
    return ResponseStrategy.HYBRID
