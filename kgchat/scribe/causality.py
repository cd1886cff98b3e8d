"""
Causality

Default-parent policy for events that arrive without a usable cause.

    Individual  -> its concept name
    SetModel    -> the Individual event of the same subject
    anything    -> the subject's SetModel event, else its Individual event,
                   else the root marker
"""

from typing import Any, Iterable, Mapping, Optional

from ..common.schemas import Event, EventType, ROOT_CAUSE

# Parent of a SetModel whose Individual event is unknown
INDIVIDUAL_ROOT = EventType.INDIVIDUAL.value


def find_individual_event(subject: str, known_events: Iterable[Event]) -> Optional[Event]:
    """First Individual event that introduces `subject`."""
    for event in known_events:
        if event.is_individual and str(event.value) == subject:
            return event
    return None


def find_set_model_event(subject: str, known_events: Iterable[Event]) -> Optional[Event]:
    for event in known_events:
        if event.is_set_model and event.base == subject:
            return event
    return None


def resolve_default_parent(event: Mapping[str, Any], known_events: Iterable[Event]) -> str:
    """
    Parent id for an event with no cause.

    `known_events` is searched in the order given; callers put the most
    relevant events (the current batch, newest first) ahead of the log.
    """
    known = list(known_events)
    base = str(event.get("base") or "")
    event_type = event.get("type")

    if event_type == EventType.INDIVIDUAL.value:
        return base or ROOT_CAUSE

    if event_type == EventType.SET_MODEL.value:
        individual = find_individual_event(base, known)
        return individual.id if individual is not None else INDIVIDUAL_ROOT

    set_model = find_set_model_event(base, known)
    if set_model is not None:
        return set_model.id
    individual = find_individual_event(base, known)
    if individual is not None:
        return individual.id
    return ROOT_CAUSE
