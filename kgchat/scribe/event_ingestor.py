"""
Event Ingestor

Normalizes the raw events a model reply carries before they are committed.

For each event, in arrival order:
1. Actor placeholder "llm" -> the model's actor name
2. `cause` -> list of ids (bare string wrapped, anything malformed emptied)
3. "$prev" -> id of the previous event of the batch (or a default parent)
4. Self references and references to later events of the batch dropped
5. Empty cause -> one default parent (see causality.resolve_default_parent)
6. Missing id -> freshly generated id

Null id, actor, model or date fall back to the Event defaults and scalar
fields are coerced to strings, so only events without base or type are skipped.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from ..common.graph import EventStore
from ..common.schemas import (
    Event,
    LLM_ACTOR_PLACEHOLDER,
    PREV_PLACEHOLDERS,
    generate_event_id,
)
from .causality import resolve_default_parent

logger = logging.getLogger("kgchat.scribe.event_ingestor")

_STRING_FIELDS = ("id", "base", "type", "actor", "model", "date")

# Null values here fall back to the Event defaults
_OPTIONAL_FIELDS = ("id", "actor", "model", "date")


def normalize_cause(cause: Any) -> List[str]:
    """Cause as an ordered list of ids."""
    if isinstance(cause, str):
        return [cause] if cause else []
    if isinstance(cause, (list, tuple)):
        return [c for c in cause if isinstance(c, str) and c]
    return []


class EventIngestor:
    """
    Turns one batch of raw model events into well-linked Events.

    Usage:
        ingestor = EventIngestor(store, actor_name="claude-sonnet-4")
        events = ingestor.ingest(parsed.events)
    """

    def __init__(self, store: EventStore, actor_name: str = LLM_ACTOR_PLACEHOLDER):
        self.store = store
        self.actor_name = actor_name

    def ingest(self, raw_events: Sequence[Mapping[str, Any]]) -> List[Event]:
        processed: List[Event] = []
        prev_id: Optional[str] = None
        explicit_ids = [str(raw["id"]) if raw.get("id") else None for raw in raw_events]

        for index, raw in enumerate(raw_events):
            data = self._coerce(raw)

            if data.get("actor") == LLM_ACTOR_PLACEHOLDER:
                data["actor"] = self.actor_name

            cause = []
            for parent in normalize_cause(raw.get("cause")):
                if parent in PREV_PLACEHOLDERS:
                    parent = prev_id or self._default_parent(data, processed)
                cause.append(parent)

            later_ids = {i for i in explicit_ids[index + 1:] if i}
            own_id = data.get("id")
            kept = [c for c in cause if c != own_id and c not in later_ids]
            if len(kept) < len(cause):
                logger.warning(
                    "Dropped self or forward cause references of %s: %s",
                    own_id, [c for c in cause if c not in kept],
                )

            if not kept:
                kept = [self._default_parent(data, processed)]
            data["cause"] = kept
            data["id"] = own_id or generate_event_id()

            try:
                event = Event.model_validate(data)
            except ValidationError as e:
                logger.warning("Skipping malformed event %r: %s", raw, e)
                continue

            processed.append(event)
            prev_id = event.id

        return processed

    def _default_parent(self, data: Dict[str, Any], processed: List[Event]) -> str:
        known = list(reversed(processed)) + list(self.store.get_all_events())
        return resolve_default_parent(data, known)

    @staticmethod
    def _coerce(raw: Mapping[str, Any]) -> Dict[str, Any]:
        data = {k: v for k, v in raw.items() if not (k in _OPTIONAL_FIELDS and v is None)}
        for key in _STRING_FIELDS:
            if data.get(key) is not None and not isinstance(data[key], str):
                data[key] = str(data[key])
        return data
