"""
kgchat Server

FastAPI surface over a ChatSession.

Endpoints:
- GET /health: Health check
- POST /context: Assembled memory context for a query
- POST /chat: One full chat turn
- GET /views/pending: Views shown and stage views registered so far
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from .chat import ChatSession
from .common.config import KgChatConfig, ensure_directories, load_config
from .common.llm_client import LLMError
from .common.memory_store import InMemoryEventStore
from .scribe.committer import CollectingViewSink

logger = logging.getLogger("kgchat.server")


# =============================================================================
# Request Models
# =============================================================================

class ContextRequest(BaseModel):
    query: str = ""


class ChatRequest(BaseModel):
    message: str


# =============================================================================
# App factory
# =============================================================================

def _build_default_session(config: KgChatConfig) -> ChatSession:
    ensure_directories()
    session = ChatSession.from_config(InMemoryEventStore(), config, sink=CollectingViewSink())
    if session.llm.is_available:
        print(f"[kgchat] Model gateway ready ({session.llm.provider}, actor: {session.llm.actor_name})")
    else:
        print(f"[kgchat] Model gateway has no API key for {session.llm.provider}; /chat will fail")
    return session


def create_app(
    session: Optional[ChatSession] = None, config: Optional[KgChatConfig] = None
) -> FastAPI:
    """
    Build the app around a session.

    Without a session one is created at start-up from ~/.kgchat/config.json,
    .env and the environment, over an in-memory store. A dormant config
    leaves the app without a session, so every session route answers 503.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        print("[kgchat] Starting up...")
        if app.state.session is None:
            current_config = config
            if current_config is None:
                load_dotenv()
                current_config = load_config()
            print(f"[kgchat] Loaded config (state: {current_config.state}, provider: {current_config.llm.provider})")

            if current_config.state == "active":
                app.state.session = _build_default_session(current_config)
                print("[kgchat] Ready to chat")
            else:
                print("[kgchat] Dormant: set state to \"active\" in ~/.kgchat/config.json to enable chat")

        yield

        print("[kgchat] Shutting down...")

    app = FastAPI(
        title="kgchat",
        description="Chat grounded in an event graph",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.session = session

    def get_session(request: Request) -> ChatSession:
        current = request.app.state.session
        if current is None:
            raise HTTPException(status_code=503, detail="Session not initialized (kgchat is dormant or starting)")
        return current

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint"""
        current = request.app.state.session
        return {
            "status": "healthy",
            "service": "kgchat",
            "initialized": current is not None,
            "provider": current.llm.provider if current else None,
            "llm_available": current.llm.is_available if current else False,
            "events": len(current.store.get_all_events()) if current else 0,
        }

    @app.post("/context")
    async def context(body: ContextRequest, request: Request):
        current = get_session(request)
        return {"query": body.query, "context": current.build_context(body.query)}

    @app.post("/chat")
    async def chat(body: ChatRequest, request: Request):
        current = get_session(request)
        try:
            turn = await current.ask(body.message)
        except LLMError as e:
            logger.error("Chat turn failed: %s", e)
            raise HTTPException(status_code=502, detail=str(e))

        return {
            "text": turn.text,
            "events": [event.model_dump() for event in turn.events],
            "views": [view.model_dump(by_alias=True, exclude_none=True) for view in turn.views],
        }

    @app.get("/views/pending")
    async def pending_views(request: Request):
        current = get_session(request)
        sink = current.sink
        if not isinstance(sink, CollectingViewSink):
            return {"shown": [], "stages": []}
        return {
            "shown": [view.model_dump(by_alias=True, exclude_none=True) for view in sink.shown],
            "stages": [
                {"model": model, "stage": stage, "view": view.model_dump(by_alias=True, exclude_none=True)}
                for (model, stage), view in sink.stage_views.items()
            ],
        }

    return app


app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the kgchat server"""
    import uvicorn

    load_dotenv()
    config = load_config()
    port = config.server.port

    print(f"[kgchat] Starting server on port {port}")
    uvicorn.run(
        "kgchat.server:app",
        host=config.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
