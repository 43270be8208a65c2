import asyncio
import json

import httpx
import pytest

from research_agent.errors import ProviderError
from research_agent.retrieval.web_search import (
    SearchResult,
    TavilySearchProvider,
    UnconfiguredSearchProvider,
)


def _provider(handler) -> TavilySearchProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TavilySearchProvider("tvly-test", api_url="https://search.example/api", client=client)


def test_tavily_results_are_mapped() -> None:
    seen: list[dict] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={
                "results": [
                    {"title": " LangSmith ", "content": "Observability.", "url": "https://a.example"},
                    {"title": "Other", "content": "More.", "url": "https://b.example"},
                    {"title": "Third", "content": "Extra.", "url": "https://c.example"},
                ]
            },
        )

    results = asyncio.run(_provider(_handler).search("langsmith", max_results=2))

    assert results == [
        SearchResult(title="LangSmith", snippet="Observability.", url="https://a.example"),
        SearchResult(title="Other", snippet="More.", url="https://b.example"),
    ]
    assert seen[0]["query"] == "langsmith"
    assert seen[0]["max_results"] == 2
    assert seen[0]["api_key"] == "tvly-test"


def test_tavily_http_error_is_provider_error() -> None:
    provider = _provider(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(ProviderError):
        asyncio.run(provider.search("anything"))


def test_tavily_requires_api_key() -> None:
    with pytest.raises(ProviderError):
        TavilySearchProvider("")


def test_unconfigured_provider_raises() -> None:
    with pytest.raises(ProviderError, match="not configured"):
        asyncio.run(UnconfiguredSearchProvider().search("anything"))
