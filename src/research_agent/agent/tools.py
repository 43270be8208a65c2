"""Built-in tool adapters: indexed document retrieval and web search."""

from __future__ import annotations

import asyncio

from loguru import logger
from pydantic import BaseModel, Field

from research_agent.agent.registry import ToolRegistry, ToolSpec
from research_agent.config import RetrievalConfig, SearchConfig
from research_agent.retrieval.index import VectorIndex
from research_agent.retrieval.web_search import SearchProvider
from research_agent.types import ScoredChunk

NO_RESULTS = "NO_RESULTS"


class ToolInput(BaseModel):
    query: str = Field(min_length=1, description="Natural-language query")


def make_retrieval_tool(
    index: VectorIndex,
    config: RetrievalConfig | None = None,
) -> ToolSpec:
    """Wrap an embedding index as a tool returning provenance-tagged chunks."""

    cfg = config or RetrievalConfig()

    async def _retrieve(input_data: ToolInput) -> str:
        try:
            hits = await asyncio.to_thread(index.query, input_data.query, cfg.top_k)
        except Exception as exc:
            logger.warning("{} failed for {!r}: {}", cfg.tool_name, input_data.query, exc)
            return f"ERROR: {cfg.tool_name} failed: {exc}"
        if not hits:
            return NO_RESULTS
        return "\n\n".join(format_hit(hit) for hit in hits)

    return ToolSpec(
        name=cfg.tool_name,
        description=cfg.tool_description,
        args_schema=ToolInput,
        handler=_retrieve,
        tags=["retrieval", "rag"],
    )


def make_search_tool(
    provider: SearchProvider,
    config: SearchConfig | None = None,
) -> ToolSpec:
    """Wrap a web search provider as a tool returning numbered results."""

    cfg = config or SearchConfig()

    async def _search(input_data: ToolInput) -> str:
        try:
            results = await provider.search(input_data.query, cfg.max_results)
        except Exception as exc:
            logger.warning("{} failed for {!r}: {}", cfg.tool_name, input_data.query, exc)
            return f"ERROR: {cfg.tool_name} failed: {exc}"
        if not results:
            return NO_RESULTS
        lines = []
        for i, result in enumerate(results[: cfg.max_results], start=1):
            lines.append(f"{i}. {result.title}\n{result.snippet}\nURL: {result.url}")
        return "\n\n".join(lines)

    return ToolSpec(
        name=cfg.tool_name,
        description=cfg.tool_description,
        args_schema=ToolInput,
        handler=_search,
        tags=["web", "search"],
    )


def register_builtin_tools(
    registry: ToolRegistry,
    index: VectorIndex,
    search_provider: SearchProvider,
    *,
    retrieval_config: RetrievalConfig | None = None,
    search_config: SearchConfig | None = None,
) -> None:
    """Register the default tool set.

    Tools:
    - web search (`web_search` by default): external search results.
    - document retrieval (`document_search` by default): top-k chunks from the
      local index with source and offsets.
    """

    registry.register(make_search_tool(search_provider, search_config))
    registry.register(make_retrieval_tool(index, retrieval_config))


def format_hit(hit: ScoredChunk) -> str:
    chunk = hit.chunk
    source = chunk.metadata.get("source", chunk.doc_id)
    marker = (
        f"[source={source} chunk={chunk.chunk_id} "
        f"offsets={chunk.start_offset}-{chunk.end_offset} score={hit.score:.4f}]"
    )
    return f"{marker}\n{chunk.text.strip()}"
