"""
kgchat Graph Schemas

Event records and the UI view descriptors carried in model replies.
"""

from .event import (
    Event,
    EventType,
    ConceptName,
    LLM_ACTOR_PLACEHOLDER,
    PREV_PLACEHOLDERS,
    ROOT_CAUSE,
    generate_event_id,
)
from .views import (
    ViewDescriptor,
    ViewAction,
    FormField,
    DisplayField,
    FormView,
    CardView,
    ListView,
    TableView,
    parse_view,
)

__all__ = [
    "Event",
    "EventType",
    "ConceptName",
    "LLM_ACTOR_PLACEHOLDER",
    "PREV_PLACEHOLDERS",
    "ROOT_CAUSE",
    "generate_event_id",
    "ViewDescriptor",
    "ViewAction",
    "FormField",
    "DisplayField",
    "FormView",
    "CardView",
    "ListView",
    "TableView",
    "parse_view",
]
