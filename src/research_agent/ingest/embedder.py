"""Embedding abstractions, a deterministic baseline, and the OpenAI adapter."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt
from typing import Any

from loguru import logger

from research_agent.errors import ProviderError

_WORD_PATTERN = re.compile(r"\w+", flags=re.UNICODE)


class Embedder(ABC):
    """Embedder interface used by ingest and retrieval components.

    `provider_id` identifies the model configuration; an index refuses to mix
    vectors from different providers.
    """

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Stable identifier of the provider and model."""

    @abstractmethod
    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed many documents."""

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Embed one query."""


class HashingEmbedder(Embedder):
    """Deterministic bag-of-words embedding without external model calls.

    Used for local tests and offline runs. Words are lower-cased, hashed into
    `dimension` buckets with a sign bit, and the vector is L2-normalized.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    @property
    def provider_id(self) -> str:
        return f"hashing-{self.dimension}"

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._embed(text)

    def _embed(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = _WORD_PATTERN.findall(text.lower())
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


class OpenAIEmbedder(Embedder):
    """OpenAI embeddings via `langchain_openai.OpenAIEmbeddings`.

    Any client failure is reported as `ProviderError` so callers only need to
    handle the package's own taxonomy.
    """

    def __init__(
        self,
        *,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model
        if client is None:
            from langchain_openai import OpenAIEmbeddings

            client = OpenAIEmbeddings(model=model, api_key=api_key)
        self._client = client

    @property
    def provider_id(self) -> str:
        return f"openai:{self.model}"

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            return [list(vector) for vector in self._client.embed_documents(texts)]
        except Exception as exc:
            logger.warning("Embedding {} documents failed: {}", len(texts), exc)
            raise ProviderError(f"embedding request failed: {exc}") from exc

    def embed_query(self, text: str) -> list[float]:
        try:
            return list(self._client.embed_query(text))
        except Exception as exc:
            logger.warning("Embedding query failed: {}", exc)
            raise ProviderError(f"embedding request failed: {exc}") from exc
