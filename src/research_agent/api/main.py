"""FastAPI entrypoint for ingest/chat/session/trace endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from research_agent.bootstrap import AgentRuntime, build_agent, ingest_sources
from research_agent.config import load_settings
from research_agent.errors import (
    FetchError,
    MaxIterationsExceeded,
    PlanningFailed,
    ProviderError,
    SessionStoreError,
    TurnTimeout,
)
from research_agent.obs.logging_setup import setup_logging


class IngestRequest(BaseModel):
    uri: str = Field(min_length=1)


class ChatRequest(BaseModel):
    session_key: str = Field(min_length=1)
    message: str = Field(min_length=1)


def create_app(runtime: AgentRuntime, *, ingest_on_startup: bool = False) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if ingest_on_startup:
            ingest_sources(runtime)
        yield
        runtime.close()

    app = FastAPI(title="Research Agent", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "planner_mode": runtime.planner_mode,
            "indexed_chunks": len(runtime.index),
            "tools": runtime.registry.names(),
            "sessions": len(runtime.sessions.session_keys()),
        }

    @app.post("/ingest")
    def ingest(request: IngestRequest) -> dict[str, Any]:
        try:
            chunks = runtime.pipeline.ingest_uri(request.uri)
        except FetchError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ProviderError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

        return {
            "chunks_created": len(chunks),
            "chunk_ids": [chunk.chunk_id for chunk in chunks],
        }

    @app.post("/chat")
    async def chat(request: ChatRequest) -> dict[str, Any]:
        try:
            result = await runtime.agent.run_turn(request.session_key, request.message)
        except MaxIterationsExceeded as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except TurnTimeout as exc:
            raise HTTPException(status_code=504, detail=str(exc)) from exc
        except (PlanningFailed, SessionStoreError) as exc:
            logger.error("Chat turn failed: {}", exc)
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        return {
            "session_key": result.session_key,
            "answer": result.answer,
            "iterations": result.iterations,
            "tool_calls": [asdict(item) for item in result.tool_results],
            "trace_id": result.trace_id,
            "latency_ms": result.latency_ms,
        }

    @app.get("/sessions/{session_key}")
    def session(session_key: str) -> dict[str, Any]:
        return {
            "session_key": session_key,
            "messages": [message.as_dict() for message in runtime.sessions.get(session_key)],
        }

    @app.get("/traces")
    def traces(limit: int = 20) -> dict[str, Any]:
        records = [asdict(record) for record in runtime.traces.list_recent(limit=limit)]
        return {"items": records}

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = runtime.traces.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return runtime.traces.summary()

    return app


def _create_default_app() -> FastAPI:
    settings = load_settings()
    setup_logging(settings.log_level)
    return create_app(build_agent(settings), ingest_on_startup=True)


app = _create_default_app()
