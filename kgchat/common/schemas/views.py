"""
View Descriptor Schema

Structured UI payloads the model embeds in its reply inside <view> blocks.
Each widget kind is its own model; `type` discriminates between them and
required fields are enforced when the block is parsed, not when it is rendered.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


# ============================================================================
# Sub-models
# ============================================================================

class ViewAction(BaseModel):
    """Button attached to a widget"""
    model_config = ConfigDict(extra="allow")

    label: str
    action: str
    primary: bool = False
    target: Optional[str] = None
    event: Optional[Dict[str, Any]] = None  # e.g. {"type": "status", "value": "approved"}


class FormField(BaseModel):
    """Input field of a form; `condition` is a BSL expression like `$.age >= 18`"""
    model_config = ConfigDict(extra="allow")

    name: str
    label: Optional[str] = None
    type: str = "text"
    required: bool = False
    options: Optional[Union[str, List[Any]]] = None
    range: Optional[str] = None
    condition: Optional[str] = None


class DisplayField(BaseModel):
    """Read-only label/value pair of a card"""
    model_config = ConfigDict(extra="allow")

    label: str
    value: Any = None


class _BaseView(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = ""
    model: Optional[str] = None
    concept: Optional[str] = None
    target: Optional[str] = None
    stage: Optional[str] = None
    condition: Optional[str] = None
    actions: List[ViewAction] = Field(default_factory=list)

    @property
    def is_deferred_stage(self) -> bool:
        """True when the view belongs to a later stage of a multi-stage process"""
        return bool(self.condition and self.stage)

    @property
    def model_name(self) -> str:
        """Model the view is keyed under, derived from the concept when absent"""
        return self.model or f"Model {self.concept}"


# ============================================================================
# Widget kinds
# ============================================================================

class FormView(_BaseView):
    """Data-entry form; submits events straight to the graph"""
    type: Literal["form"]
    mode: Literal["create", "edit"]
    concept: str
    model: str
    fields: List[FormField] = Field(default_factory=list)


class CardView(_BaseView):
    """Single individual, or every individual of `viewEntity` when no target is set"""
    type: Literal["card"]
    view_entity: Optional[str] = Field(default=None, alias="viewEntity")
    fields: List[DisplayField] = Field(default_factory=list)


class ListView(_BaseView):
    """Clickable list of items"""
    type: Literal["list"]
    items: List[Any] = Field(default_factory=list)


class TableView(_BaseView):
    """Tabular rows keyed by column name"""
    type: Literal["table"]
    columns: List[str]
    rows: List[Dict[str, Any]] = Field(default_factory=list)


ViewDescriptor = Annotated[
    Union[FormView, CardView, ListView, TableView],
    Field(discriminator="type"),
]

_VIEW_ADAPTER = TypeAdapter(ViewDescriptor)


def parse_view(data: Any) -> Union[FormView, CardView, ListView, TableView]:
    """Validate a decoded <view> block.

    Raises:
        pydantic.ValidationError: unknown `type` or missing required fields
    """
    return _VIEW_ADAPTER.validate_python(data)
