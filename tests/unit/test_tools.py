import asyncio

from research_agent.agent.registry import ToolRegistry
from research_agent.agent.tools import NO_RESULTS, make_retrieval_tool, make_search_tool, register_builtin_tools
from research_agent.config import RetrievalConfig, SearchConfig
from research_agent.errors import IndexMismatch, ProviderError
from research_agent.ingest.embedder import HashingEmbedder
from research_agent.retrieval.index import EmbeddingIndex
from research_agent.retrieval.web_search import SearchProvider, SearchResult, StaticSearchProvider
from research_agent.types import Chunk


def _index_with(*texts: str) -> EmbeddingIndex:
    index = EmbeddingIndex(HashingEmbedder())
    offset = 0
    for i, text in enumerate(texts):
        index.add(
            Chunk(
                chunk_id=f"guide-chunk-{i:04d}",
                doc_id="guide",
                text=text,
                start_offset=offset,
                end_offset=offset + len(text),
                metadata={"source": "https://example.com/guide"},
            )
        )
        offset += len(text)
    return index


class FailingIndex:
    def add(self, chunk: Chunk) -> None:
        raise NotImplementedError

    def add_many(self, chunks: list[Chunk]) -> None:
        raise NotImplementedError

    def query(self, text: str, k: int):
        raise IndexMismatch("query embedding has dimension 3, index expects 2")

    def __len__(self) -> int:
        return 0


class FailingSearch(SearchProvider):
    async def search(self, query: str, max_results: int = 5) -> list[SearchResult]:
        raise ProviderError("rate limited")


def test_retrieval_tool_returns_ranked_chunks_with_provenance() -> None:
    index = _index_with(
        "Tracing records every run of your application.",
        "Datasets hold examples for evaluation runs.",
    )
    spec = make_retrieval_tool(index, RetrievalConfig(top_k=2))

    output = asyncio.run(spec.ainvoke({"query": "tracing records runs"}))

    blocks = output.split("\n\n")
    assert len(blocks) == 2
    assert blocks[0].startswith(
        "[source=https://example.com/guide chunk=guide-chunk-0000 offsets=0-46 score="
    )
    assert blocks[0].endswith("Tracing records every run of your application.")
    assert "chunk=guide-chunk-0001" in blocks[1]


def test_retrieval_tool_uses_fixed_k() -> None:
    index = _index_with("alpha one", "alpha two", "alpha three")
    spec = make_retrieval_tool(index, RetrievalConfig(top_k=1))

    output = asyncio.run(spec.ainvoke({"query": "alpha"}))

    assert output.count("[source=") == 1


def test_retrieval_tool_on_empty_index() -> None:
    spec = make_retrieval_tool(EmbeddingIndex(HashingEmbedder()))

    assert asyncio.run(spec.ainvoke({"query": "anything"})) == NO_RESULTS


def test_retrieval_tool_reports_index_errors_as_output() -> None:
    spec = make_retrieval_tool(FailingIndex())

    output = asyncio.run(spec.ainvoke({"query": "anything"}))

    assert output.startswith("ERROR: document_search failed:")
    assert "dimension 3" in output


def test_search_tool_formats_results() -> None:
    provider = StaticSearchProvider(
        [
            SearchResult(title="LangSmith", snippet="Observability platform.", url="https://a.example"),
            SearchResult(title="Docs", snippet="User guide.", url="https://b.example"),
        ]
    )
    spec = make_search_tool(provider, SearchConfig(max_results=5))

    output = asyncio.run(spec.ainvoke({"query": "what is langsmith"}))

    assert output == (
        "1. LangSmith\nObservability platform.\nURL: https://a.example\n\n"
        "2. Docs\nUser guide.\nURL: https://b.example"
    )
    assert provider.queries == ["what is langsmith"]


def test_search_tool_no_results() -> None:
    spec = make_search_tool(StaticSearchProvider([]))

    assert asyncio.run(spec.ainvoke({"query": "nothing"})) == NO_RESULTS


def test_search_tool_reports_provider_errors_as_output() -> None:
    spec = make_search_tool(FailingSearch())

    output = asyncio.run(spec.ainvoke({"query": "news"}))

    assert output == "ERROR: web_search failed: rate limited"


def test_register_builtin_tools() -> None:
    registry = ToolRegistry()

    register_builtin_tools(registry, _index_with("text"), StaticSearchProvider())

    assert registry.names() == ["web_search", "document_search"]
    assert all(d.input_schema["required"] == ["query"] for d in registry.describe_all())
