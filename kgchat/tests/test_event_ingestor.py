"""
Tests for EventIngestor and the default-parent policy
"""

import logging

import pytest

from kgchat.common.memory_store import InMemoryEventStore
from kgchat.common.schemas import Event


class TestNormalizeCause:
    @pytest.mark.parametrize("cause,expected", [
        ("evt_1", ["evt_1"]),
        ("", []),
        (None, []),
        (5, []),
        (["a", 1, "", "b"], ["a", "b"]),
        (("a",), ["a"]),
    ])
    def test_shapes(self, cause, expected):
        from kgchat.scribe.event_ingestor import normalize_cause
        assert normalize_cause(cause) == expected


class TestResolveDefaultParent:
    @pytest.fixture
    def known(self):
        return [
            Event(id="sm1", base="john", type="SetModel", value="Model Person"),
            Event(id="ind1", base="Person", type="Individual", value="john"),
            Event(id="ind2", base="Task", type="Individual", value="t1"),
        ]

    def test_individual_points_at_concept(self, known):
        from kgchat.scribe.causality import resolve_default_parent
        assert resolve_default_parent({"base": "Person", "type": "Individual"}, known) == "Person"

    def test_individual_without_base_points_at_root(self):
        from kgchat.scribe.causality import resolve_default_parent
        assert resolve_default_parent({"base": "", "type": "Individual"}, []) == "Event"

    def test_set_model_points_at_individual(self, known):
        from kgchat.scribe.causality import resolve_default_parent
        assert resolve_default_parent({"base": "t1", "type": "SetModel"}, known) == "ind2"

    def test_set_model_of_unknown_subject(self, known):
        from kgchat.scribe.causality import resolve_default_parent
        assert resolve_default_parent({"base": "ghost", "type": "SetModel"}, known) == "Individual"

    def test_attribute_prefers_set_model(self, known):
        from kgchat.scribe.causality import resolve_default_parent
        assert resolve_default_parent({"base": "john", "type": "name"}, known) == "sm1"

    def test_attribute_falls_back_to_individual(self, known):
        from kgchat.scribe.causality import resolve_default_parent
        assert resolve_default_parent({"base": "t1", "type": "title"}, known) == "ind2"

    def test_attribute_of_unknown_subject(self, known):
        from kgchat.scribe.causality import resolve_default_parent
        assert resolve_default_parent({"base": "ghost", "type": "title"}, known) == "Event"

    def test_search_order_respected(self):
        from kgchat.scribe.causality import resolve_default_parent

        known = [
            Event(id="newer", base="john", type="SetModel", value="Model B"),
            Event(id="older", base="john", type="SetModel", value="Model A"),
        ]

        assert resolve_default_parent({"base": "john", "type": "age"}, known) == "newer"


class TestEventIngestor:
    @pytest.fixture
    def ingestor(self):
        from kgchat.scribe.event_ingestor import EventIngestor
        return EventIngestor(InMemoryEventStore(), actor_name="claude-sonnet-4")

    def test_every_event_gets_id_and_cause(self, ingestor):
        events = ingestor.ingest([
            {"base": "Person", "type": "Individual", "value": "john"},
            {"base": "john", "type": "name", "value": "John"},
        ])

        assert len(events) == 2
        assert all(e.id for e in events)
        assert all(e.cause for e in events)
        assert events[0].id != events[1].id

    def test_actor_placeholder_replaced(self, ingestor):
        events = ingestor.ingest([
            {"base": "Person", "type": "Individual", "value": "john", "actor": "llm"},
            {"base": "john", "type": "name", "value": "John", "actor": "user"},
        ])

        assert [e.actor for e in events] == ["claude-sonnet-4", "user"]

    def test_string_cause_becomes_single_element_list(self, ingestor):
        events = ingestor.ingest([{"base": "john", "type": "age", "value": 30, "cause": "evt_x"}])
        assert events[0].cause == ["evt_x"]

    def test_prev_chain(self, ingestor):
        events = ingestor.ingest([
            {"id": "e1", "base": "Person", "type": "Individual", "value": "john"},
            {"id": "e2", "base": "john", "type": "SetModel", "value": "Model Person", "cause": "$prev"},
            {"id": "e3", "base": "john", "type": "name", "value": "John", "cause": ["$PREV"]},
        ])

        assert [e.cause for e in events] == [["Person"], ["e1"], ["e2"]]

    def test_prev_on_first_event_uses_default_parent(self, ingestor):
        events = ingestor.ingest([
            {"base": "Person", "type": "Individual", "value": "john", "cause": "$prev"},
        ])

        assert events[0].cause == ["Person"]

    def test_prev_resolves_to_generated_id(self, ingestor):
        events = ingestor.ingest([
            {"base": "Person", "type": "Individual", "value": "john"},
            {"base": "john", "type": "name", "value": "John", "cause": "$prev"},
        ])

        assert events[1].cause == [events[0].id]

    def test_default_parent_from_batch(self, ingestor):
        events = ingestor.ingest([
            {"id": "i1", "base": "Person", "type": "Individual", "value": "john"},
            {"id": "s1", "base": "john", "type": "SetModel", "value": "Model Person"},
            {"id": "a1", "base": "john", "type": "age", "value": 30},
        ])

        assert events[1].cause == ["i1"]
        assert events[2].cause == ["s1"]

    def test_default_parent_from_store(self, make_store):
        from kgchat.scribe.event_ingestor import EventIngestor

        store = make_store(("Person", "john", {"name": "John"}))

        events = EventIngestor(store).ingest([{"base": "john", "type": "age", "value": 30}])

        assert events[0].cause == ["john_ind"]

    def test_batch_searched_before_store(self, make_store):
        from kgchat.scribe.event_ingestor import EventIngestor

        store = make_store(("Person", "john", {"SetModel": "Model Person"}))

        events = EventIngestor(store).ingest([
            {"id": "s_new", "base": "john", "type": "SetModel", "value": "Model Employee"},
            {"base": "john", "type": "salary", "value": 10},
        ])

        assert events[1].cause == ["s_new"]

    def test_forward_and_self_references_dropped(self, ingestor, caplog):
        with caplog.at_level(logging.WARNING, logger="kgchat.scribe.event_ingestor"):
            events = ingestor.ingest([
                {"id": "a", "base": "Person", "type": "Individual", "value": "a", "cause": ["b", "a"]},
                {"id": "b", "base": "Person", "type": "Individual", "value": "b", "cause": ["a"]},
            ])

        assert events[0].cause == ["Person"]
        assert events[1].cause == ["a"]
        assert "Dropped self or forward cause references" in caplog.text

    def test_non_string_fields_coerced(self, ingestor):
        events = ingestor.ingest([{"id": 42, "base": "Person", "type": "Individual", "value": 7}])

        assert events[0].id == "42"
        assert events[0].value == 7

    def test_malformed_event_skipped(self, ingestor, caplog):
        with caplog.at_level(logging.WARNING, logger="kgchat.scribe.event_ingestor"):
            events = ingestor.ingest([
                {"id": "ok1", "base": "Person", "type": "Individual", "value": "john"},
                {"type": "name", "value": "no base", "cause": "$prev"},
                {"base": "john", "type": "name", "value": "John", "cause": "$prev"},
            ])

        assert [e.type for e in events] == ["Individual", "name"]
        assert events[1].cause == ["ok1"]
        assert "Skipping malformed event" in caplog.text

    def test_extra_fields_kept(self, ingestor):
        events = ingestor.ingest([
            {"base": "Person", "type": "Individual", "value": "john", "note": "from chat"},
        ])

        assert events[0].model_dump()["note"] == "from chat"

    def test_empty_batch(self, ingestor):
        assert ingestor.ingest([]) == []

    def test_prev_resolves_to_assigned_id_of_first_event(self, ingestor):
        events = ingestor.ingest([
            {"base": "Person", "type": "Individual", "value": "john", "cause": ["Person"]},
            {"base": "john", "type": "SetModel", "value": "Model Person", "cause": ["$prev"]},
        ])

        assert events[0].cause == ["Person"]
        assert events[1].cause == [events[0].id]

    def test_null_optional_fields_take_defaults(self, ingestor):
        events = ingestor.ingest([
            {"id": "e1", "base": "Person", "type": "Individual", "value": "john", "cause": ["Person"]},
            {"id": "e2", "base": "john", "type": "SetModel", "value": "Model Person",
             "actor": None, "model": None, "date": None, "cause": ["$prev"]},
            {"id": None, "base": "john", "type": "name", "value": "John", "cause": ["$prev"]},
        ])

        assert [e.type for e in events] == ["Individual", "SetModel", "name"]
        assert events[1].actor == "user"
        assert events[1].model is None
        assert events[2].cause == ["e2"]
        assert events[2].id

    def test_numeric_date_coerced(self, ingestor):
        events = ingestor.ingest([
            {"base": "Person", "type": "Individual", "value": "john", "date": 1700000000},
        ])

        assert len(events) == 1
        assert events[0].date == "1700000000"

    def test_null_base_still_skipped(self, ingestor):
        assert ingestor.ingest([{"base": None, "type": "name", "value": "x"}]) == []
