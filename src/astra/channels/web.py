"""Web channel — FastAPI HTTP surface over a Runtime.

Routes:
    POST /chat                                   one message, one tick
    GET  /api/visualization/learning_progress    learning counters
    GET  /api/visualization/reasoning_chains     recent reasoning chains
    GET  /health                                 liveness and tick status

Handlers are plain ``def`` so FastAPI runs them on its threadpool; the tick
itself blocks up to the tick budget.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel

from astra import __version__

if TYPE_CHECKING:
    from astra.runtime.core import Runtime

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    message: str


class ChatResponse(BaseModel):
    reply: str
    emotion_state: dict[str, float]
    personality_traits: dict[str, float]
    recent_events: list[str]


class LearningProgressResponse(BaseModel):
    concepts_learned: int
    research_sessions: int
    code_modules_created: int
    last_updated: str


def create_app(runtime: Runtime) -> FastAPI:
    app = FastAPI(title="Astra", version=__version__)
    lock = threading.Lock()

    @app.post("/chat", response_model=ChatResponse)
    def chat(request: ChatRequest) -> dict:
        with lock:
            report = runtime.chat(request.message)
        logger.info("Chat tick %d: %d events", report.tick, len(report.events))
        return report.to_response()

    @app.get("/api/visualization/learning_progress", response_model=LearningProgressResponse)
    def learning_progress() -> dict:
        return runtime.learning_progress()

    @app.get("/api/visualization/reasoning_chains")
    def reasoning_chains() -> dict[str, list[str]]:
        return runtime.reasoning_chains()

    @app.get("/health")
    def health() -> dict:
        status = runtime.status()
        return {
            "status": "ok",
            "tick": status["tick"],
            "events": status["memory"]["events"],
            "mood": status["mood"],
        }

    return app


def serve(runtime: Runtime, host: str, port: int, log_level: str = "warning") -> None:
    """Blocking: run the HTTP server until interrupted."""
    app = create_app(runtime)
    logger.info("Web channel starting on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
    logger.info("Web channel stopped")
