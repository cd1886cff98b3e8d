"""
Event Schema

Core principle: the graph is an append-only log of events.
Every event names its causal parents, and the parent edges form a DAG.
Individuals, terms and fragments are folds over these events, never stored directly.
"""

import time
import uuid
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class EventType(str, Enum):
    """Reserved event types (any other type is an attribute name)"""
    INDIVIDUAL = "Individual"
    SET_MODEL = "SetModel"
    MODEL = "Model"
    INSTANCE = "Instance"
    DELETE = "Delete"


class ConceptName(str, Enum):
    """Concepts the retrieval pipeline reads"""
    TERM = "Term"
    FRAGMENT = "Fragment"
    CAUSAL_RELATION = "CausalRelation"
    SCHEMA_INSTRUCTION = "SchemaInstruction"
    CONCEPT = "Concept"


# Placeholder actor written by the model; replaced by the real actor at ingestion
LLM_ACTOR_PLACEHOLDER = "llm"

# Placeholder cause referring to the previous event of the same batch
PREV_PLACEHOLDERS = ("$prev", "$PREV")

# Root of the causal graph when nothing more specific is known
ROOT_CAUSE = "Event"


# ============================================================================
# Main Schema
# ============================================================================

class Event(BaseModel):
    """
    A single immutable fact in the graph.

    `cause` is always an ordered list of parent event ids (possibly empty
    before ingestion, never empty after).
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(default=None, description="Assigned at ingestion if absent")
    base: str = Field(..., description="Concept name or individual id the event is about")
    type: str = Field(..., description="Individual, SetModel, or an attribute name")
    value: Any = None
    actor: str = Field(default="user")
    model: Optional[str] = None
    cause: List[str] = Field(default_factory=list)
    date: Optional[str] = None

    @property
    def is_individual(self) -> bool:
        return self.type == EventType.INDIVIDUAL.value

    @property
    def is_set_model(self) -> bool:
        return self.type == EventType.SET_MODEL.value


def generate_event_id() -> str:
    """Generate a unique id for a new event: evt_<ms timestamp hex>_<random>"""
    return f"evt_{int(time.time() * 1000):x}_{uuid.uuid4().hex[:9]}"
