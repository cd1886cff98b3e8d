"""
Response Committer

Writes ingested events to the store and hands views to the UI.

Validation is advisory: an event that fails validation is logged and
committed anyway. Views that carry both `condition` and `stage` belong to a
later stage of a multi-stage form and are registered under (model, stage)
instead of being shown.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from ..common.graph import EventStore
from ..common.schemas import Event, ViewDescriptor

logger = logging.getLogger("kgchat.scribe.committer")


@runtime_checkable
class ViewSink(Protocol):
    """UI consumer of views and commit notifications."""

    def show(self, view: ViewDescriptor) -> None: ...

    def register_stage_view(self, model: str, stage: str, view: ViewDescriptor) -> None: ...

    def events_committed(self, events: Sequence[Event]) -> None: ...


class CollectingViewSink:
    """ViewSink that keeps everything in memory for an outer surface to poll."""

    def __init__(self):
        self.shown: List[ViewDescriptor] = []
        self.stage_views: Dict[Tuple[str, str], ViewDescriptor] = {}
        self.committed: List[Event] = []

    def show(self, view: ViewDescriptor) -> None:
        self.shown.append(view)

    def register_stage_view(self, model: str, stage: str, view: ViewDescriptor) -> None:
        self.stage_views[(model, stage)] = view

    def events_committed(self, events: Sequence[Event]) -> None:
        self.committed.extend(events)

    def drain_shown(self) -> List[ViewDescriptor]:
        shown, self.shown = self.shown, []
        return shown


@dataclass
class CommitReport:
    """Outcome of committing one reply"""
    committed: List[Event] = field(default_factory=list)
    invalid: List[Event] = field(default_factory=list)  # committed despite errors
    shown_views: int = 0
    registered_views: int = 0


class ResponseCommitter:
    """Commits events, then dispatches views."""

    def __init__(self, store: EventStore, sink: Optional[ViewSink] = None):
        self.store = store
        self.sink = sink

    async def commit(
        self, events: Sequence[Event], views: Sequence[ViewDescriptor] = ()
    ) -> CommitReport:
        report = CommitReport()

        for event in events:
            validation = self.store.validate_event(event)
            if not validation.valid:
                report.invalid.append(event)
                logger.warning("Event validation failed for %s: %s", event.id, validation.errors)

            added = await self.store.add_event(event)
            if added is not None:
                report.committed.append(added)

        if events:
            logger.info("Added %d/%d events", len(report.committed), len(events))
            if report.invalid:
                logger.warning("%d events had validation errors (added anyway)", len(report.invalid))

        if self.sink is not None:
            if report.committed:
                self.sink.events_committed(report.committed)
            for view in views:
                if view.is_deferred_stage:
                    self.sink.register_stage_view(view.model_name, view.stage, view)
                    report.registered_views += 1
                else:
                    self.sink.show(view)
                    report.shown_views += 1
            if views:
                logger.info(
                    "Views: %d shown, %d registered for later stages",
                    report.shown_views, report.registered_views,
                )

        return report
