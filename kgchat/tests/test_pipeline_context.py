"""
Tests for RAGPipeline and ContextAssembler

End-to-end retrieval over small in-memory graphs.
"""

import dataclasses
import logging

import pytest
from unittest.mock import MagicMock

from kgchat.common.graph import GraphSnapshot, Individual
from kgchat.common.memory_store import InMemoryEventStore


@pytest.fixture
def knowledge_store(make_store):
    return make_store(
        ("Term", "DAG", {
            "definition": "directed acyclic graph of events",
            "synonym": "acyclic graph",
            "broader": "Graph",
        }),
        ("Term", "Graph", {"definition": "nodes and edges"}),
        ("Fragment", "frag_dag", {
            "content": "A DAG orders events by their causes.",
            "schema": "Definition",
        }),
        ("Fragment", "frag_other", {"content": "Unrelated note about lunch."}),
        ("CausalRelation", "cr_dag", {
            "cause": "missing parent",
            "effect": "orphan DAG node",
            "mechanism": "default cause",
        }),
        ("Person", "john", {"SetModel": "Model Person", "name": "John"}),
    )


class TestRAGPipeline:
    def test_definition_query(self, knowledge_store):
        from kgchat.retriever.pipeline import RAGPipeline
        from kgchat.retriever.query_processor import SchemaName
        from kgchat.retriever.ranking import ResponseStrategy

        result = RAGPipeline().run("What is a DAG", GraphSnapshot.capture(knowledge_store))

        assert result.intent.schema == SchemaName.DEFINITION
        assert result.response_strategy == ResponseStrategy.FORMAL_FRAGMENTS
        assert [f.id for f in result.fragments] == ["frag_dag"]
        assert [c.id for c in result.causal_chains] == ["cr_dag"]

    def test_synonyms_canonicalized_before_extraction(self, knowledge_store):
        from kgchat.retriever.pipeline import RAGPipeline

        result = RAGPipeline().run(
            "Explain the acyclic graph idea", GraphSnapshot.capture(knowledge_store)
        )

        assert result.canonical.canonical_text == "explain the DAG idea"
        assert [t.id for t in result.components.primary_terms] == ["DAG"]
        assert [(r.id, r.relation) for r in result.components.related_terms] == [("Graph", "broader")]

    def test_categories_are_configured_preferences(self, knowledge_store):
        from kgchat.retriever.pipeline import RAGPipeline
        from kgchat.retriever.preferences import Preferences

        prefs = Preferences(audience="Managers", difficulty="Basic")
        result = RAGPipeline(preferences=prefs).run("dag", GraphSnapshot.capture(knowledge_store))

        assert result.categories == prefs

    def test_result_is_immutable(self, knowledge_store):
        from kgchat.retriever.pipeline import RAGPipeline

        result = RAGPipeline().run("dag", GraphSnapshot.capture(knowledge_store))

        with pytest.raises(dataclasses.FrozenInstanceError):
            result.fragments = ()

    def test_run_on_store(self, knowledge_store):
        from kgchat.retriever.pipeline import RAGPipeline

        result = RAGPipeline().run_on("dag", knowledge_store)

        assert result.query == "dag"


class TestContextAssembler:
    def test_empty_graph_yields_only_fallback(self):
        from kgchat.retriever.context import ContextAssembler

        context = ContextAssembler(InMemoryEventStore()).build("What is X?")

        assert context == "=== DATA IN MEMORY ===\nNo individuals found in memory."

    def test_section_order(self, knowledge_store):
        from kgchat.retriever.context import ContextAssembler

        context = ContextAssembler(knowledge_store).build("What is a DAG")

        headers = [
            "=== ACTIVE MEMORY (from cognitive tiers) ===",
            "=== QUERY ANALYSIS ===",
            "=== AVAILABLE MODELS ===",
            "=== AVAILABLE CONCEPTS ===",
            "=== PRIMARY TERMS ===",
            "=== RELATED TERMS ===",
            "=== CAUSAL RELATIONS ===",
            "=== RELEVANT FRAGMENTS (ranked) ===",
            "=== DATA IN MEMORY ===",
        ]
        positions = [context.index(h) for h in headers]
        assert positions == sorted(positions)
        assert context.startswith(headers[0])

    def test_query_analysis_lines(self, knowledge_store):
        from kgchat.retriever.context import ContextAssembler

        lines = ContextAssembler(knowledge_store).build("What is an acyclic graph?").split("\n")

        assert "Synonym replacements: acyclic graph→DAG" in lines
        assert "Detected schema: Definition" in lines
        assert "Query type: definition" in lines
        assert "Response strategy: formal_fragments" in lines

    def test_terms_causal_and_fragment_lines(self, knowledge_store):
        from kgchat.retriever.context import ContextAssembler

        lines = ContextAssembler(knowledge_store).build("What is a DAG").split("\n")

        assert "  DAG (syn: acyclic graph): directed acyclic graph of events" in lines
        assert "  Graph [broader]: nodes and edges" in lines
        assert "  missing parent → orphan DAG node" in lines
        assert "    Mechanism: default cause" in lines
        assert "  [1] [Definition] A DAG orders events by their causes...." in lines

    def test_models_and_individual_data(self, knowledge_store):
        from kgchat.retriever.context import ContextAssembler

        lines = ContextAssembler(knowledge_store).build("john").split("\n")

        assert "Model Person" in lines
        assert "Total individuals: 6" in lines
        assert "Relevant to query: 1" in lines
        assert "--- Person (1) ---" in lines
        assert "  john: id=john, name=John" in lines

    def test_fragment_content_truncated(self, make_store):
        from kgchat.retriever.context import ContextAssembler

        store = make_store(("Fragment", "long", {"content": "x" * 300, "schema": "Definition"}))

        lines = ContextAssembler(store).build("xxxx").split("\n")

        assert "  [1] [Definition] " + "x" * 200 + "..." in lines

    def test_group_overflow_counter(self, make_store):
        from kgchat.retriever.context import ContextAssembler

        store = make_store(*[("Person", f"p{i:02d}", {"name": f"P{i}"}) for i in range(25)])

        lines = ContextAssembler(store).build("").split("\n")

        assert "--- Person (25) ---" in lines
        assert "  ... and 5 more" in lines
        assert sum(1 for line in lines if line.startswith("  p")) == 20

    def test_pipeline_failure_degrades(self, knowledge_store, caplog):
        from kgchat.retriever.context import ContextAssembler
        from kgchat.retriever.preferences import Preferences

        pipeline = MagicMock()
        pipeline.run.side_effect = RuntimeError("bad term data")
        pipeline.preferences = Preferences()

        with caplog.at_level(logging.WARNING, logger="kgchat.retriever.context"):
            context = ContextAssembler(knowledge_store, pipeline=pipeline).build("dag")

        assert "RAG pipeline error" in caplog.text
        assert "=== QUERY ANALYSIS ===" not in context
        assert "=== ACTIVE MEMORY (from cognitive tiers) ===" not in context
        assert "=== RELEVANT TERMS ===" in context
        assert "=== DATA IN MEMORY ===" in context

    def test_preferences_filter_individual_data(self, make_store):
        from kgchat.retriever.context import ContextAssembler

        store = make_store(
            ("Guide", "g_basic", {"difficulty": "Basic"}),
            ("Guide", "g_expert", {"difficulty": "Expert"}),
            ("Guide", "g_mgmt", {"audience": "Managers"}),
        )

        context = ContextAssembler(store).build("")

        assert "g_basic" in context
        assert "g_expert" not in context
        assert "g_mgmt" not in context


class TestPreferences:
    def _individual(self, individual_id, **props):
        return Individual(id=individual_id, concept="Guide", model=None, properties={"id": individual_id, **props})

    def test_unclassified_always_pass(self):
        from kgchat.retriever.preferences import Preferences, filter_by_preferences

        items = [self._individual("a")]

        assert filter_by_preferences(items, Preferences()) == items

    def test_difficulty_at_or_below_preferred(self):
        from kgchat.retriever.preferences import Preferences, filter_by_preferences

        items = [
            self._individual("basic", difficulty="Basic"),
            self._individual("inter", difficulty="Intermediate"),
            self._individual("adv", difficulty="Advanced"),
        ]

        kept = filter_by_preferences(items, Preferences(difficulty="Intermediate"))

        assert [i.id for i in kept] == ["basic", "inter"]

    def test_audience_must_match(self):
        from kgchat.retriever.preferences import Preferences, filter_by_preferences

        items = [
            self._individual("dev", audience="Developers"),
            self._individual("mgr", audience="Managers", difficulty="Basic"),
        ]

        kept = filter_by_preferences(items, Preferences(audience="Developers"))

        assert [i.id for i in kept] == ["dev"]

    def test_difficulty_scale_order(self):
        from kgchat.retriever.preferences import DifficultyLevel, difficulty_rank

        ranks = [difficulty_rank(level.value) for level in DifficultyLevel]
        assert ranks == [0, 1, 2, 3]
        assert difficulty_rank("Wizard") == -1

    def test_no_preferences_keeps_everything(self):
        from kgchat.retriever.preferences import filter_by_preferences

        items = [self._individual("x", audience="Anyone")]

        assert filter_by_preferences(items, None) == items
