import asyncio

from research_agent.agent.fallback import DeterministicPlanner
from research_agent.agent.registry import ToolRegistry
from research_agent.agent.tools import register_builtin_tools
from research_agent.config import load_settings
from research_agent.ingest.chunker import RecursiveChunker
from research_agent.ingest.embedder import HashingEmbedder
from research_agent.retrieval.index import EmbeddingIndex
from research_agent.retrieval.web_search import StaticSearchProvider
from research_agent.types import Document, FinalAnswer, Message, ToolCallRequest


def test_prompt_names_configured_tools() -> None:
    prompt = load_settings({}).system_prompt()

    assert "`document_search`" in prompt
    assert "`web_search`" in prompt


def test_builtin_tools_advertise_query_schema() -> None:
    registry = ToolRegistry()
    register_builtin_tools(registry, EmbeddingIndex(HashingEmbedder()), StaticSearchProvider())

    for description in registry.describe_all():
        assert description.description
        assert description.input_schema["properties"]["query"]["type"] == "string"


def test_fallback_planner_understands_retrieval_output() -> None:
    index = EmbeddingIndex(HashingEmbedder())
    doc = Document(doc_id="guide", source_uri="https://x/guide", text="Tracing records every run.")
    index.add_many(RecursiveChunker.from_sizes(100, 10).split(doc))
    registry = ToolRegistry()
    register_builtin_tools(registry, index, StaticSearchProvider())

    result = asyncio.run(
        registry.ainvoke(
            ToolCallRequest(call_id="c1", name="document_search", arguments={"query": "tracing"})
        )
    )
    decision = asyncio.run(
        DeterministicPlanner().decide(
            [Message.user("tracing?"), Message.tool_result(result)],
            registry.describe_all(),
        )
    )

    assert decision == FinalAnswer("1. Tracing records every run. [guide-chunk-0000]")
