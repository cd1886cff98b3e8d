"""
Query Processor

Turns a raw user query into the pieces the retrieval pipeline ranks with:
1. Canonical text (synonyms rewritten to term identifiers)
2. Query components (primary/related terms, intent modifiers, tokens)
3. Intent (response schema plus its extraction instruction, if any)

Classification is regex driven. Both pattern tables are ordered module-level
data so precedence is explicit; cues are English and Russian.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Pattern, Sequence, Tuple

from ..common.graph import GraphItem, GraphSnapshot
from ..common.schemas import ConceptName


class ModifierKind(str, Enum):
    """Intent cues found in the query text"""
    COMPARISON = "comparison"
    DEFINITION = "definition"
    HOWTO = "howto"
    EXAMPLE = "example"
    LIST = "list"
    CAUSE = "cause"


class SchemaName(str, Enum):
    """Response schemas a question can ask for"""
    DEFINITION = "Definition"
    COMPARISON = "Comparison"
    CAUSAL_RELATION = "CausalRelation"
    EXAMPLE = "Example"
    TECHNICAL_PROCESS = "TechnicalProcess"
    ARCHITECTURAL_COMPONENT = "ArchitecturalComponent"
    USE_CASE = "UseCase"
    PRINCIPLE = "Principle"
    PROBLEM_SOLUTION = "ProblemSolution"
    FUNCTIONALITY = "Functionality"
    CODE_SNIPPET = "CodeSnippet"
    # Never detected from text, only carried by fragments and instructions
    ADVANTAGE_DISADVANTAGE = "AdvantageDisadvantage"
    CONCEPTUAL_MODEL = "ConceptualModel"


# Each pattern is tested independently; several modifiers may fire
MODIFIER_PATTERNS: Tuple[Tuple[ModifierKind, Pattern], ...] = (
    (ModifierKind.COMPARISON, re.compile(r"сравни|compare|разница|versus|vs", re.IGNORECASE)),
    (ModifierKind.DEFINITION, re.compile(r"что такое|define|определи|what is", re.IGNORECASE)),
    (ModifierKind.HOWTO, re.compile(r"как сделать|how to|как работает", re.IGNORECASE)),
    (ModifierKind.EXAMPLE, re.compile(r"пример|example|покажи", re.IGNORECASE)),
    (ModifierKind.LIST, re.compile(r"список|list|перечисли|all", re.IGNORECASE)),
    (ModifierKind.CAUSE, re.compile(r"почему|причина|why|because", re.IGNORECASE)),
)

# First match wins
SCHEMA_PATTERNS: Tuple[Tuple[Pattern, SchemaName], ...] = (
    (re.compile(r"что\s+(такое|это|значит)|what\s+is|define|определи", re.IGNORECASE), SchemaName.DEFINITION),
    (re.compile(r"сравни|compare|разница|difference|vs\.|versus", re.IGNORECASE), SchemaName.COMPARISON),
    (re.compile(r"почему|причина|следствие|why|because|cause|effect", re.IGNORECASE), SchemaName.CAUSAL_RELATION),
    (re.compile(r"пример|example|instance|покажи", re.IGNORECASE), SchemaName.EXAMPLE),
    (re.compile(r"как\s+работает|how\s+does|процесс|process|алгоритм|algorithm", re.IGNORECASE), SchemaName.TECHNICAL_PROCESS),
    (re.compile(r"архитектура|компонент|module|architecture|component", re.IGNORECASE), SchemaName.ARCHITECTURAL_COMPONENT),
    (re.compile(r"использовать|use\s+case|сценарий|scenario", re.IGNORECASE), SchemaName.USE_CASE),
    (re.compile(r"принцип|principle|правило|rule", re.IGNORECASE), SchemaName.PRINCIPLE),
    (re.compile(r"проблема|решение|problem|solution|fix", re.IGNORECASE), SchemaName.PROBLEM_SOLUTION),
    (re.compile(r"функция|feature|возможност|capability", re.IGNORECASE), SchemaName.FUNCTIONALITY),
    (re.compile(r"код|code|snippet|пример\s+кода", re.IGNORECASE), SchemaName.CODE_SNIPPET),
)

# Tokens of this length or shorter are ignored
MIN_TOKEN_LENGTH = 2


@dataclass(frozen=True)
class Replacement:
    """One synonym rewritten to its term identifier"""
    source: str
    target: str


@dataclass(frozen=True)
class CanonicalQuery:
    """Query text after synonym canonicalization"""
    canonical_text: str
    original: str
    replacements: Tuple[Replacement, ...] = ()
    confidence: float = 1.0


@dataclass(frozen=True)
class RelatedTerm:
    """A term reached from a primary term via its broader/related field"""
    term: GraphItem
    relation: str  # "broader" or "related"

    @property
    def id(self) -> str:
        return self.term.id


@dataclass(frozen=True)
class QueryComponents:
    """Terms, modifiers and tokens extracted from the canonical query"""
    primary_terms: Tuple[GraphItem, ...] = ()
    related_terms: Tuple[RelatedTerm, ...] = ()
    modifiers: Tuple[ModifierKind, ...] = ()
    query_words: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SchemaInstruction:
    """Extraction guidance stored in the graph for one schema"""
    schema: SchemaName
    prompt: Optional[str] = None
    fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Intent:
    """Classified intent of a query"""
    schema: Optional[SchemaName] = None
    modifiers: Tuple[ModifierKind, ...] = ()
    instruction: Optional[SchemaInstruction] = None


def tokenize(text: str) -> List[str]:
    """Whitespace tokens longer than MIN_TOKEN_LENGTH."""
    return [w for w in text.split() if len(w) > MIN_TOKEN_LENGTH]


def split_synonyms(value) -> List[str]:
    """Synonyms are stored comma-separated; lists are accepted as well."""
    if not value:
        return []
    parts = value if isinstance(value, (list, tuple)) else str(value).split(",")
    return [str(p).strip().lower() for p in parts if str(p).strip()]


def _as_fields(value) -> Tuple[str, ...]:
    if not value:
        return ()
    parts = value if isinstance(value, (list, tuple)) else str(value).split(",")
    return tuple(str(p).strip() for p in parts if str(p).strip())


class QueryProcessor:
    """
    Canonicalizes, decomposes and classifies queries.

    Pattern tables are injectable so precedence can be exercised in
    isolation; the defaults are MODIFIER_PATTERNS and SCHEMA_PATTERNS.
    """

    def __init__(
        self,
        modifier_patterns: Sequence[Tuple[ModifierKind, Pattern]] = MODIFIER_PATTERNS,
        schema_patterns: Sequence[Tuple[Pattern, SchemaName]] = SCHEMA_PATTERNS,
    ):
        self.modifier_patterns = tuple(modifier_patterns)
        self.schema_patterns = tuple(schema_patterns)

    def canonicalize(self, query: str, terms: Sequence[GraphItem]) -> CanonicalQuery:
        """
        Replace known synonyms with their term identifiers.

        Terms are applied in the given order and each rewrite works on the
        output of the previous one, so a synonym that occurs inside an
        already substituted identifier is matched again.
        """
        canonical = query.lower()
        replacements: List[Replacement] = []

        for term in terms:
            for synonym in split_synonyms(term.get("synonym")):
                if synonym in canonical:
                    canonical = re.sub(
                        re.escape(synonym), lambda _m, tid=term.id: tid, canonical, flags=re.IGNORECASE
                    )
                    replacements.append(Replacement(source=synonym, target=term.id))

        return CanonicalQuery(
            canonical_text=canonical,
            original=query,
            replacements=tuple(replacements),
            confidence=0.8 if replacements else 1.0,
        )

    def extract(self, canonical_text: str, terms: Sequence[GraphItem]) -> QueryComponents:
        """Select primary and related terms and detect modifiers."""
        query_words = tokenize(canonical_text)
        lowered_words = [w.lower() for w in query_words]

        primary = []
        for term in terms:
            term_id = term.id.lower()
            definition = str(term.get("definition") or "").lower()
            if any(w in term_id or (definition and w in definition) for w in lowered_words):
                primary.append(term)

        by_id = {t.id: t for t in terms}
        related: List[RelatedTerm] = []
        seen = set()
        for term in primary:
            for relation in ("broader", "related"):
                target = by_id.get(str(term.get(relation) or ""))
                if target is not None and (target.id, relation) not in seen:
                    seen.add((target.id, relation))
                    related.append(RelatedTerm(term=target, relation=relation))

        return QueryComponents(
            primary_terms=tuple(primary),
            related_terms=tuple(related),
            modifiers=self.extract_modifiers(canonical_text),
            query_words=tuple(query_words),
        )

    def extract_modifiers(self, text: str) -> Tuple[ModifierKind, ...]:
        return tuple(kind for kind, pattern in self.modifier_patterns if pattern.search(text))

    def detect_schema(self, query: str) -> Optional[SchemaName]:
        """First schema whose pattern matches; None for a general query."""
        query_lower = query.lower()
        for pattern, schema in self.schema_patterns:
            if pattern.search(query_lower):
                return schema
        return None

    def schema_instruction(
        self, schema: Optional[SchemaName], snapshot: GraphSnapshot
    ) -> Optional[SchemaInstruction]:
        """Find the SchemaInstruction individual targeting this schema."""
        if schema is None:
            return None
        targets = (schema.value, f"Model {schema.value}")
        for item in snapshot.items_of(ConceptName.SCHEMA_INSTRUCTION.value):
            if item.get("target_schema") in targets:
                return SchemaInstruction(
                    schema=schema,
                    prompt=item.get("llm_prompt_template"),
                    fields=_as_fields(item.get("extraction_fields")),
                )
        return None

    def classify(
        self, query: str, components: QueryComponents, snapshot: GraphSnapshot
    ) -> Intent:
        schema = self.detect_schema(query)
        return Intent(
            schema=schema,
            modifiers=components.modifiers,
            instruction=self.schema_instruction(schema, snapshot),
        )
