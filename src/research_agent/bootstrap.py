"""Composition root: builds the agent runtime from settings."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from research_agent.agent.fallback import DeterministicPlanner
from research_agent.agent.loop import AgentLoop
from research_agent.agent.planner import ChatModelPlanner, Planner, create_chat_model
from research_agent.agent.registry import ToolRegistry
from research_agent.agent.session import SessionHistoryStore
from research_agent.agent.tools import register_builtin_tools
from research_agent.config import Settings
from research_agent.ingest.chunker import RecursiveChunker
from research_agent.ingest.embedder import Embedder, HashingEmbedder, OpenAIEmbedder
from research_agent.ingest.loader import DocumentSource, SourceRouter, WebPageLoader
from research_agent.ingest.pipeline import IngestPipeline
from research_agent.obs.tracing import TraceStore
from research_agent.retrieval.index import EmbeddingIndex
from research_agent.retrieval.web_search import (
    SearchProvider,
    TavilySearchProvider,
    UnconfiguredSearchProvider,
)


@dataclass(slots=True)
class AgentRuntime:
    settings: Settings
    agent: AgentLoop
    index: EmbeddingIndex
    registry: ToolRegistry
    sessions: SessionHistoryStore
    traces: TraceStore
    pipeline: IngestPipeline

    @property
    def planner_mode(self) -> str:
        return "deterministic" if isinstance(self.agent.planner, DeterministicPlanner) else "llm"

    def close(self) -> None:
        self.sessions.close()


def build_agent(
    settings: Settings,
    *,
    planner: Planner | None = None,
    embedder: Embedder | None = None,
    search_provider: SearchProvider | None = None,
    source: DocumentSource | None = None,
) -> AgentRuntime:
    """Wire every component; collaborators not passed in come from settings."""

    if embedder is None:
        embedder = (
            OpenAIEmbedder(model=settings.openai_embedding_model, api_key=settings.openai_api_key)
            if settings.openai_api_key
            else HashingEmbedder()
        )
    if search_provider is None:
        search_provider = (
            TavilySearchProvider(
                settings.tavily_api_key,
                api_url=settings.search.api_url,
                timeout=settings.search.timeout_seconds,
            )
            if settings.tavily_api_key
            else UnconfiguredSearchProvider()
        )
    if source is None:
        source = SourceRouter(web=WebPageLoader(timeout=settings.search.timeout_seconds))

    index = EmbeddingIndex(embedder)
    pipeline = IngestPipeline(source, RecursiveChunker(settings.chunking), index)

    registry = ToolRegistry()
    register_builtin_tools(
        registry,
        index,
        search_provider,
        retrieval_config=settings.retrieval,
        search_config=settings.search,
    )

    if planner is None:
        if settings.openai_api_key:
            llm = create_chat_model(
                settings.openai_model,
                api_key=settings.openai_api_key,
                temperature=settings.temperature,
            )
            planner = ChatModelPlanner(
                llm=llm,
                tools=registry.as_langchain_tools(),
                system_prompt=settings.system_prompt(),
            )
        else:
            planner = DeterministicPlanner(
                preference=(settings.retrieval.tool_name, settings.search.tool_name)
            )

    sessions = SessionHistoryStore()
    traces = TraceStore()
    agent = AgentLoop(
        planner=planner,
        tool_registry=registry,
        sessions=sessions,
        config=settings.agent,
        trace_store=traces,
    )
    logger.info(
        "Agent ready: planner={}, embedder={}, tools={}",
        type(planner).__name__,
        embedder.provider_id,
        ", ".join(registry.names()),
    )
    return AgentRuntime(
        settings=settings,
        agent=agent,
        index=index,
        registry=registry,
        sessions=sessions,
        traces=traces,
        pipeline=pipeline,
    )


def ingest_sources(runtime: AgentRuntime, uris: list[str] | None = None) -> int:
    """Index the configured sources; returns the number of chunks added."""

    targets = runtime.settings.sources if uris is None else uris
    return len(runtime.pipeline.ingest_many(targets))
