"""Embedding index with exact linear-scan similarity search."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from math import sqrt
from typing import Protocol

from loguru import logger

from research_agent.errors import IndexMismatch
from research_agent.ingest.embedder import Embedder
from research_agent.types import Chunk, Embedding, ScoredChunk


class VectorIndex(Protocol):
    """Minimal index contract used by the retrieval tool and ingest pipeline."""

    def add(self, chunk: Chunk) -> None:
        """Embed and insert (or replace) one chunk."""

    def add_many(self, chunks: list[Chunk]) -> None:
        """Embed and insert (or replace) many chunks."""

    def query(self, text: str, k: int) -> list[ScoredChunk]:
        """Return at most `k` chunks ranked by descending similarity."""

    def __len__(self) -> int: ...


@dataclass(slots=True, frozen=True)
class _Entry:
    chunk: Chunk
    embedding: Embedding


@dataclass(slots=True, frozen=True)
class _Snapshot:
    entries: dict[str, _Entry]
    dimension: int | None
    provider_id: str | None


class EmbeddingIndex:
    """In-memory cosine-similarity index over chunk embeddings.

    Writers build a new snapshot under a lock and swap it in; readers take the
    current snapshot reference and never lock, so a rebuild that runs while
    queries are in flight cannot hand them a half-written mapping.
    Re-adding a chunk id replaces its entry and keeps its original position,
    which is also the tie-break order for equal scores.
    """

    metric = "cosine"

    def __init__(self, embedder: Embedder) -> None:
        self._embedder = embedder
        self._write_lock = threading.Lock()
        self._snapshot = _Snapshot(entries={}, dimension=None, provider_id=None)

    @property
    def embedder(self) -> Embedder:
        return self._embedder

    @property
    def dimension(self) -> int | None:
        return self._snapshot.dimension

    @property
    def provider_id(self) -> str | None:
        return self._snapshot.provider_id

    def __len__(self) -> int:
        return len(self._snapshot.entries)

    def rebind(self, embedder: Embedder) -> None:
        """Switch providers; `clear()` and re-add before querying again."""
        with self._write_lock:
            self._embedder = embedder

    def clear(self) -> None:
        with self._write_lock:
            self._snapshot = _Snapshot(entries={}, dimension=None, provider_id=None)

    def get(self, chunk_id: str) -> Chunk | None:
        entry = self._snapshot.entries.get(chunk_id)
        return entry.chunk if entry else None

    def chunks(self) -> list[Chunk]:
        return [entry.chunk for entry in self._snapshot.entries.values()]

    def add(self, chunk: Chunk) -> None:
        self.add_many([chunk])

    def add_many(self, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        vectors = self._embedder.embed_documents([chunk.text for chunk in chunks])
        if len(vectors) != len(chunks):
            raise IndexMismatch(
                f"embedder returned {len(vectors)} vectors for {len(chunks)} chunks"
            )
        self._insert(zip(chunks, vectors, strict=True))

    def query(self, text: str, k: int) -> list[ScoredChunk]:
        """Rank stored chunks against `text`.

        The snapshot is read once, so the result reflects one consistent
        version of the index even if a writer swaps in a new one meanwhile.
        """

        snapshot = self._snapshot
        if k < 1 or not snapshot.entries:
            return []

        self._check_provider(snapshot)
        query_vector = self._embedder.embed_query(text)
        if len(query_vector) != snapshot.dimension:
            logger.error(
                "Query vector has {} dims, index has {}",
                len(query_vector),
                snapshot.dimension,
            )
            raise IndexMismatch(
                f"query embedding has dimension {len(query_vector)}, "
                f"index expects {snapshot.dimension}"
            )

        scored = [
            (_cosine_similarity(query_vector, entry.embedding.vector), entry.chunk)
            for entry in snapshot.entries.values()
        ]
        # sorted() is stable, so equal scores keep insertion order.
        ranked = sorted(scored, key=lambda item: item[0], reverse=True)
        return [
            ScoredChunk(chunk=chunk, score=score, rank=i + 1)
            for i, (score, chunk) in enumerate(ranked[:k])
        ]

    def _insert(self, pairs: Iterable[tuple[Chunk, list[float]]]) -> None:
        with self._write_lock:
            current = self._snapshot
            self._check_provider(current)
            entries = dict(current.entries)
            dimension = current.dimension
            for chunk, vector in pairs:
                if dimension is None:
                    dimension = len(vector)
                elif len(vector) != dimension:
                    raise IndexMismatch(
                        f"chunk {chunk.chunk_id} has dimension {len(vector)}, "
                        f"index expects {dimension}"
                    )
                entries[chunk.chunk_id] = _Entry(
                    chunk=chunk,
                    embedding=Embedding(chunk_id=chunk.chunk_id, vector=tuple(vector)),
                )
            self._snapshot = _Snapshot(
                entries=entries,
                dimension=dimension,
                provider_id=self._embedder.provider_id,
            )
        logger.debug("Index now holds {} chunks (dim={})", len(entries), dimension)

    def _check_provider(self, snapshot: _Snapshot) -> None:
        if snapshot.provider_id is not None and snapshot.provider_id != self._embedder.provider_id:
            raise IndexMismatch(
                f"index built with {snapshot.provider_id}, "
                f"embedder is {self._embedder.provider_id}"
            )


def _cosine_similarity(a: list[float] | tuple[float, ...], b: tuple[float, ...]) -> float:
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
