"""
Graph Access

Collaborator interface to the event store plus the read-only snapshot the
retrieval pipeline works on.

The store is external (durable log, tiered memory index). Everything the
pipeline reads goes through a GraphSnapshot captured once per turn, so a
commit from an earlier turn landing mid-retrieval cannot produce a mixed view.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .schemas import Event, EventType, ConceptName


@dataclass(frozen=True)
class TierHit:
    """One item returned by the tiered memory index"""
    tier: str  # "working", "episodic" or "semantic"
    base: str  # event base, or concept name for semantic facts
    type: str
    value: Any
    score: float = 0.0
    decay: Optional[float] = None  # episodic items only


@dataclass
class TierResults:
    """Result of retrieve_from_tiers"""
    working: List[TierHit] = field(default_factory=list)
    episodic: List[TierHit] = field(default_factory=list)
    semantic: List[TierHit] = field(default_factory=list)
    combined: List[TierHit] = field(default_factory=list)


@dataclass
class ValidationResult:
    """Result of validating an event against its model's restrictions"""
    valid: bool
    errors: List[str] = field(default_factory=list)


@runtime_checkable
class EventStore(Protocol):
    """Durable event log consumed by the pipeline and the ingestor."""

    def get_all_events(self) -> Sequence[Event]: ...

    def get_individual_state(self, individual_id: str) -> Dict[str, Any]: ...

    def get_existing_models(self) -> Sequence[str]: ...

    def get_existing_concepts(self) -> Sequence[str]: ...

    def retrieve_from_tiers(self, query: str, limit: int = 20) -> TierResults: ...

    def validate_event(self, event: Event) -> ValidationResult: ...

    async def add_event(self, event: Event) -> Optional[Event]: ...


# ============================================================================
# Read-side views
# ============================================================================

@dataclass(frozen=True)
class GraphItem:
    """An individual as the retriever sees it: id plus folded state"""
    id: str
    state: Dict[str, Any]

    def get(self, key: str, default: Any = None) -> Any:
        return self.state.get(key, default)

    @property
    def content(self) -> str:
        """Serialized state, the text every lexical match runs against"""
        return serialize_state(self.state)


@dataclass(frozen=True)
class Individual:
    """A non-deleted individual with its concept and properties"""
    id: str
    concept: str
    model: Optional[str]
    properties: Dict[str, Any]


def serialize_state(state: Dict[str, Any]) -> str:
    """Compact JSON rendering of a state, stable across calls."""
    return json.dumps(state, ensure_ascii=False, separators=(",", ":"), default=str)


def is_deleted(state: Dict[str, Any]) -> bool:
    return state.get(EventType.DELETE.value) in ("1", 1, True, "true")


def as_number(value: Any) -> Optional[float]:
    """Numeric attribute values arrive as strings; None when not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class GraphSnapshot:
    """
    Frozen read view over an EventStore.

    Captures the event list and folds every individual's state eagerly, so
    later reads never touch the live store.
    """

    def __init__(
        self,
        events: Sequence[Event],
        states: Dict[str, Dict[str, Any]],
        models: Sequence[str] = (),
        concepts: Sequence[str] = (),
    ):
        self._events = list(events)
        self._states = states
        self._models = list(models)
        self._concepts = list(concepts)

    @classmethod
    def capture(cls, store: EventStore) -> "GraphSnapshot":
        """Copy everything the pipeline needs out of the store."""
        events = list(store.get_all_events())
        states: Dict[str, Dict[str, Any]] = {}
        for event in events:
            individual_id = str(event.value)
            if event.is_individual and individual_id not in states:
                states[individual_id] = dict(store.get_individual_state(individual_id))
        return cls(
            events=events,
            states=states,
            models=store.get_existing_models(),
            concepts=store.get_existing_concepts(),
        )

    @property
    def events(self) -> List[Event]:
        return list(self._events)

    @property
    def models(self) -> List[str]:
        return list(self._models)

    @property
    def concepts(self) -> List[str]:
        return list(self._concepts)

    @property
    def is_empty(self) -> bool:
        return not self._events

    def state_of(self, individual_id: str) -> Dict[str, Any]:
        return self._states.get(individual_id, {"id": individual_id})

    def items_of(self, *concepts: str) -> List[GraphItem]:
        """Individuals of the given concepts, in log order."""
        items = []
        for event in self._events:
            if event.is_individual and event.base in concepts:
                individual_id = str(event.value)
                items.append(GraphItem(id=individual_id, state=self.state_of(individual_id)))
        return items

    def terms(self) -> List[GraphItem]:
        return self.items_of(ConceptName.TERM.value)

    def fragments(self) -> List[GraphItem]:
        return self.items_of(ConceptName.FRAGMENT.value)

    def individuals(self) -> List[Individual]:
        """All non-deleted individuals with their properties."""
        individuals = []
        for event in self._events:
            if not event.is_individual:
                continue
            individual_id = str(event.value)
            state = self.state_of(individual_id)
            if is_deleted(state):
                continue
            individuals.append(Individual(
                id=individual_id,
                concept=event.base,
                model=state.get(EventType.SET_MODEL.value),
                properties=state,
            ))
        return individuals
