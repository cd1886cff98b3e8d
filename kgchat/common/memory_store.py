"""
In-Memory Event Store

Reference EventStore kept entirely in process memory. Not durable.

Besides the append-only log it keeps a small tiered index:
- Working memory: the most recent user/model events (7 items, oldest evicted first)
- Episodic memory: events that fell out of working memory, decaying per insert,
  forgotten below a decay floor and capped at 1000 items
- Semantic memory: attribute facts of individuals, grouped by concept
"""

import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Set

from .graph import TierHit, TierResults, ValidationResult
from .schemas import Event, EventType, ConceptName, ROOT_CAUSE, generate_event_id

logger = logging.getLogger("kgchat.common.memory_store")

# Miller's 7 +/- 2
WORKING_MEMORY_CAPACITY = 7

# Multiplied into every episodic item's decay on each insert
EPISODIC_DECAY = 0.95

# Episodic items below this decay are forgotten
EPISODIC_FORGET_THRESHOLD = 0.05

EPISODIC_CAPACITY = 1000

# Actors whose events never enter the tiers
SYSTEM_ACTORS = {"system", "System", "genesis"}

# Types that carry structure rather than facts
_STRUCTURAL_TYPES = {
    EventType.INDIVIDUAL.value,
    EventType.SET_MODEL.value,
    EventType.MODEL.value,
    EventType.INSTANCE.value,
}


class InMemoryEventStore:
    """
    EventStore backed by a Python list.

    Usage:
        store = InMemoryEventStore()
        await store.add_event(Event(base="Person", type="Individual", value="john"))
        store.get_individual_state("john")
    """

    def __init__(
        self,
        events: Optional[Sequence[Event]] = None,
        working_capacity: int = WORKING_MEMORY_CAPACITY,
        episodic_capacity: int = EPISODIC_CAPACITY,
    ):
        self._events: List[Event] = []
        self._by_id: Dict[str, Event] = {}
        self._working: Deque[str] = deque(maxlen=working_capacity)
        self._episodic: Dict[str, float] = {}  # event id -> decay
        self._episodic_capacity = episodic_capacity

        for event in events or []:
            self._append(event if event.id else event.model_copy(update={"id": generate_event_id()}))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all_events(self) -> List[Event]:
        return list(self._events)

    def get_event(self, event_id: str) -> Optional[Event]:
        return self._by_id.get(event_id)

    def get_individual_state(self, individual_id: str) -> Dict[str, Any]:
        """Fold every event about the individual; later values win."""
        state: Dict[str, Any] = {"id": individual_id}
        for event in self._events:
            if event.base == individual_id and not event.is_individual:
                state[event.type] = event.value
        return state

    def get_existing_models(self) -> List[str]:
        models: Dict[str, None] = {}
        for event in self._events:
            if event.type in (EventType.MODEL.value, EventType.SET_MODEL.value) and event.value:
                models[str(event.value)] = None
        return list(models)

    def get_existing_concepts(self) -> List[str]:
        concepts: Dict[str, None] = {}
        for event in self._events:
            if event.type == EventType.INSTANCE.value and event.base == ConceptName.CONCEPT.value:
                concepts[str(event.value)] = None
            elif event.is_individual:
                concepts[event.base] = None
        return list(concepts)

    def retrieve_from_tiers(self, query: str, limit: int = 20) -> TierResults:
        """Search the three memory tiers and rank the union."""
        results = TierResults()
        query_lower = query.lower()
        query_words = [w for w in query_lower.split() if len(w) > 2]

        for event_id in reversed(self._working):
            event = self._by_id.get(event_id)
            if event:
                results.working.append(TierHit(
                    tier="working", base=event.base, type=event.type,
                    value=event.value, score=1.0 * 1.5,
                ))

        for event_id, decay in self._episodic.items():
            event = self._by_id.get(event_id)
            if not event or not query_words:
                continue
            content = event.model_dump_json().lower()
            matches = sum(1 for w in query_words if w in content)
            if matches:
                priority = decay * matches / len(query_words)
                results.episodic.append(TierHit(
                    tier="episodic", base=event.base, type=event.type,
                    value=event.value, score=priority * 1.2, decay=decay,
                ))

        for concept, facts in self._semantic_facts().items():
            concept_lower = concept.lower()
            if query_lower in concept_lower or any(w in concept_lower for w in query_words):
                for fact in facts:
                    results.semantic.append(TierHit(
                        tier="semantic", base=concept, type=fact.type,
                        value=fact.value, score=0.8,
                    ))

        results.episodic.sort(key=lambda h: h.score, reverse=True)
        results.combined = sorted(
            results.working + results.episodic + results.semantic,
            key=lambda h: h.score,
            reverse=True,
        )[:limit]
        return results

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def validate_event(self, event: Event) -> ValidationResult:
        """Structural checks only; model restrictions live with the durable store."""
        errors = []
        if not event.base:
            errors.append("Field 'base' is required")
        if not event.type:
            errors.append("Field 'type' is required")
        if event.actor in SYSTEM_ACTORS or event.type in _STRUCTURAL_TYPES:
            return ValidationResult(valid=not errors, errors=errors)
        if event.value is None or event.value == "":
            errors.append(f"Field '{event.type}' has no value")
        return ValidationResult(valid=not errors, errors=errors)

    async def add_event(self, event: Event) -> Optional[Event]:
        """Append an event; duplicates by id return the stored event."""
        if event.id and event.id in self._by_id:
            logger.debug("Skipping duplicate event: %s", event.id)
            return self._by_id[event.id]

        if not event.base or not event.type:
            logger.error("Invalid event, missing base or type: %s", event)
            return None

        event_id = event.id or generate_event_id()
        cause = [c for c in event.cause if not self._creates_cycle(event_id, c)]
        if len(cause) < len(event.cause):
            logger.warning("Dropped cyclic causes of %s", event_id)
        if not cause:
            cause = [ROOT_CAUSE]

        stored = event.model_copy(update={"id": event_id, "cause": cause})
        self._append(stored)
        return stored

    def _append(self, event: Event) -> None:
        self._events.append(event)
        self._by_id[event.id] = event

        self._decay_episodic()

        if event.actor in SYSTEM_ACTORS:
            return
        if len(self._working) == self._working.maxlen:
            self._remember_episode(self._working[0])
        self._working.append(event.id)

    def _decay_episodic(self) -> None:
        for event_id in list(self._episodic):
            decay = self._episodic[event_id] * EPISODIC_DECAY
            if decay < EPISODIC_FORGET_THRESHOLD:
                del self._episodic[event_id]
            else:
                self._episodic[event_id] = decay

    def _remember_episode(self, event_id: str) -> None:
        self._episodic[event_id] = 1.0
        # Uniform decay keeps insertion order weakest-first
        while len(self._episodic) > self._episodic_capacity:
            del self._episodic[next(iter(self._episodic))]

    def _creates_cycle(self, event_id: str, cause_id: str) -> bool:
        """True if event_id is cause_id or one of its ancestors."""
        seen: Set[str] = set()
        stack = [cause_id]
        while stack:
            current = stack.pop()
            if current == event_id:
                return True
            if current in seen:
                continue
            seen.add(current)
            parent = self._by_id.get(current)
            if parent:
                stack.extend(parent.cause)
        return False

    def _semantic_facts(self) -> Dict[str, List[Event]]:
        concept_of = {str(e.value): e.base for e in self._events if e.is_individual}
        facts: Dict[str, List[Event]] = {}
        for event in self._events:
            concept = concept_of.get(event.base)
            if concept and event.type not in _STRUCTURAL_TYPES:
                facts.setdefault(concept, []).append(event)
        return facts
