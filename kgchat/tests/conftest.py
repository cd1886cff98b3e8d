"""Shared fixtures: small graphs built from individuals and their attributes."""

import pytest

from kgchat.common.memory_store import InMemoryEventStore
from kgchat.common.schemas import Event


def individual_events(concept, individual_id, props=None, actor="user"):
    """Individual event, then one attribute event per prop, each caused by the previous."""
    events = [Event(
        id=f"{individual_id}_ind", base=concept, type="Individual",
        value=individual_id, actor=actor, cause=[concept],
    )]
    for key, value in (props or {}).items():
        events.append(Event(
            id=f"{individual_id}_{key}", base=individual_id, type=key,
            value=value, actor=actor, cause=[events[-1].id],
        ))
    return events


@pytest.fixture
def make_store():
    """Factory: make_store(("Person", "john", {"name": "John"}), ...)"""
    def _make(*individuals):
        events = []
        for concept, individual_id, props in individuals:
            events.extend(individual_events(concept, individual_id, props))
        return InMemoryEventStore(events)
    return _make
