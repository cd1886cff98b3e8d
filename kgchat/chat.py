"""
Chat Session

One conversational turn against the graph:

    query -> context block -> messages -> model -> reply
          -> payload parse -> ingest -> commit -> ChatTurn

The session owns no globals; store, model gateway, assembler and view sink
are all handed in at construction.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .common.config import KgChatConfig, RetrieverConfig
from .common.graph import EventStore, GraphSnapshot
from .common.llm_client import LLMClient
from .common.schemas import Event, ViewDescriptor
from .retriever.context import ContextAssembler
from .retriever.pipeline import RAGPipeline
from .retriever.preferences import Preferences
from .scribe.committer import CommitReport, ResponseCommitter, ViewSink
from .scribe.event_ingestor import EventIngestor
from .scribe.payload_parser import parse_response

logger = logging.getLogger("kgchat.chat")

SYSTEM_PROMPT = """You are a semantic memory assistant for an event-sourced knowledge graph.

## MEMORY-ONLY MODE
Answer ONLY from the data in the MEMORY CONTEXT section.
- Do not use training knowledge or invent facts
- If something is not in memory, say: "This information is not in the knowledge base"
- When listing data, show only what exists in the MEMORY CONTEXT

## Event Format
All data is stored as events in a directed acyclic graph.

```json
{
  "base": "ConceptOrIndividual",
  "type": "EventType",
  "value": "value",
  "actor": "llm",
  "model": "Model Name",
  "cause": ["event_id"]
}
```

### Cause rules
- cause is ALWAYS an array of event ids, never a bare string
- Individual events link to their concept
- SetModel events link to the Individual event
- Property events link to the SetModel event
- The graph must stay acyclic

## Creating data
Every Individual MUST have a SetModel. Use snake_case for individual ids.
Return created events inside an events block:

<events>
[
  {"base": "Person", "type": "Individual", "value": "john_smith", "actor": "llm", "model": "Model Person", "cause": ["Person"]},
  {"base": "john_smith", "type": "SetModel", "value": "Model Person", "actor": "llm", "model": "Model Person", "cause": ["$prev"]}
]
</events>

Use "$prev" to reference the previous event of the array; it is replaced with the real id.

## Views
When the user needs to enter data, return a form view instead of events:

<view>
{"type": "form", "title": "Create Person", "mode": "create", "concept": "Person", "model": "Model Person",
 "fields": [{"name": "name", "label": "Name", "type": "text", "required": true}],
 "actions": [{"label": "Create", "action": "submit", "primary": true}]}
</view>

Forms require "mode" ("create" or "edit"), "concept" and "model". Other view types are
"card" (one individual, or every individual of "viewEntity" when no target is set),
"list" and "table" (requires "columns").
Field types: text, number, date, textarea, select ("options" or "range").
Fields and views may carry a "condition" such as "$.age >= 18".

For multi-stage processes return every stage view at once; later stages carry "stage"
and a "condition" on earlier fields and are shown once the condition holds.

## Reuse existing models
Before creating a concept or model, check the lists below and reuse a similar one.

### Existing Models in Memory:
{models}

### Existing Concepts in Memory:
{concepts}

Respond naturally. Include <events> for data you create and <view> for UI elements."""

MEMORY_CONTEXT_TEMPLATE = (
    "=== MEMORY CONTEXT (USE ONLY THIS DATA) ===\n"
    "{context}\n"
    "=== END OF MEMORY CONTEXT ===\n\n"
    "IMPORTANT: Base your answer ONLY on the data above. Do not use external knowledge."
)


@dataclass
class ChatTurn:
    """Result of one turn: prose for display plus what was written to the graph"""
    text: str
    events: List[Event] = field(default_factory=list)
    views: List[ViewDescriptor] = field(default_factory=list)
    report: Optional[CommitReport] = None


def render_system_prompt(models: Sequence[str], concepts: Sequence[str]) -> str:
    # str.replace, the prompt itself is full of JSON braces
    return (
        SYSTEM_PROMPT
        .replace("{models}", ", ".join(models) or "None yet")
        .replace("{concepts}", ", ".join(concepts) or "None yet")
    )


class ChatSession:
    """
    Grounded chat over an event store.

    Usage:
        session = ChatSession(store, LLMClient.from_config(config.llm))
        turn = await session.ask("What is a DAG?")
    """

    def __init__(
        self,
        store: EventStore,
        llm: LLMClient,
        assembler: Optional[ContextAssembler] = None,
        sink: Optional[ViewSink] = None,
        config: Optional[RetrieverConfig] = None,
        history: Optional[List[Dict[str, str]]] = None,
    ):
        self.store = store
        self.llm = llm
        self.config = config or RetrieverConfig()
        self.assembler = assembler or ContextAssembler(store, config=self.config)
        self.committer = ResponseCommitter(store, sink)
        self.history: List[Dict[str, str]] = history if history is not None else []

    @classmethod
    def from_config(
        cls, store: EventStore, config: KgChatConfig, sink: Optional[ViewSink] = None
    ) -> "ChatSession":
        pipeline = RAGPipeline(
            config=config.retriever,
            preferences=Preferences.from_config(config.preferences),
        )
        return cls(
            store=store,
            llm=LLMClient.from_config(config.llm),
            assembler=ContextAssembler(store, pipeline=pipeline, config=config.retriever),
            sink=sink,
            config=config.retriever,
        )

    @property
    def sink(self) -> Optional[ViewSink]:
        return self.committer.sink

    def build_context(self, query: str, snapshot: Optional[GraphSnapshot] = None) -> str:
        return self.assembler.build(query, snapshot)

    def build_messages(
        self, user_message: str, snapshot: Optional[GraphSnapshot] = None
    ) -> List[Dict[str, str]]:
        """System prompt, memory context, recent history, then the user message."""
        snapshot = snapshot or GraphSnapshot.capture(self.store)
        messages = [{
            "role": "system",
            "content": render_system_prompt(snapshot.models, snapshot.concepts),
        }]

        context = self.build_context(user_message, snapshot)
        if context:
            messages.append({
                "role": "system",
                "content": MEMORY_CONTEXT_TEMPLATE.format(context=context),
            })

        recent = self.history[-self.config.history_limit:] if self.config.history_limit > 0 else []
        for message in recent:
            role = "user" if message.get("role") == "user" else "assistant"
            messages.append({"role": role, "content": message.get("content", "")})

        messages.append({"role": "user", "content": user_message})
        return messages

    async def ask(self, user_message: str) -> ChatTurn:
        """Run one full turn. LLMError from the gateway propagates."""
        messages = self.build_messages(user_message)
        reply = await self.llm.complete(messages)

        parsed = parse_response(reply)
        ingestor = EventIngestor(self.store, actor_name=self.llm.actor_name)
        events = ingestor.ingest(parsed.events)
        report = await self.committer.commit(events, parsed.views)

        logger.info(
            "Turn done: %d events committed, %d views", len(report.committed), len(parsed.views)
        )

        self.history.append({"role": "user", "content": user_message})
        self.history.append({"role": "assistant", "content": parsed.text})

        return ChatTurn(
            text=parsed.text,
            events=report.committed,
            views=parsed.views,
            report=report,
        )
