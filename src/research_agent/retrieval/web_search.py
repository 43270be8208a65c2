"""Web search providers consumed by the search tool."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from research_agent.errors import ProviderError


@dataclass(slots=True, frozen=True)
class SearchResult:
    title: str
    snippet: str
    url: str


class SearchProvider(ABC):
    """Ranked web search."""

    @abstractmethod
    async def search(self, query: str, max_results: int = 5) -> list[SearchResult]:
        """Return ranked results, raising `ProviderError` on failure."""


class TavilySearchProvider(SearchProvider):
    """Tavily search REST API client."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = "https://api.tavily.com/search",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ProviderError("TAVILY_API_KEY is not configured")
        self._api_key = api_key
        self._api_url = api_url
        self._timeout = timeout
        self._client = client

    async def search(self, query: str, max_results: int = 5) -> list[SearchResult]:
        payload = {
            "api_key": self._api_key,
            "query": query,
            "max_results": max_results,
            "search_depth": "basic",
        }
        try:
            if self._client is not None:
                response = await self._client.post(self._api_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._api_url, json=payload)
            response.raise_for_status()
            data: Any = response.json()
        except httpx.TimeoutException as exc:
            raise ProviderError("search request timed out") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Tavily search failed: {}", exc)
            raise ProviderError(f"search request failed: {exc}") from exc

        results: list[SearchResult] = []
        for item in (data.get("results") or [])[:max_results]:
            results.append(
                SearchResult(
                    title=str(item.get("title") or "").strip(),
                    snippet=str(item.get("content") or "").strip(),
                    url=str(item.get("url") or "").strip(),
                )
            )
        return results


class StaticSearchProvider(SearchProvider):
    """Serves canned results; used offline and in tests."""

    def __init__(self, results: list[SearchResult] | None = None) -> None:
        self._results = list(results or [])
        self.queries: list[str] = []

    async def search(self, query: str, max_results: int = 5) -> list[SearchResult]:
        self.queries.append(query)
        return self._results[:max_results]


class UnconfiguredSearchProvider(SearchProvider):
    """Stands in when no search backend is configured."""

    async def search(self, query: str, max_results: int = 5) -> list[SearchResult]:
        raise ProviderError("web search is not configured (set TAVILY_API_KEY)")
