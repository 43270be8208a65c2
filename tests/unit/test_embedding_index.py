import threading

import pytest

from research_agent.errors import IndexMismatch
from research_agent.ingest.embedder import Embedder, HashingEmbedder
from research_agent.retrieval.index import EmbeddingIndex
from research_agent.types import Chunk


class TableEmbedder(Embedder):
    """Looks vectors up by text so scores are fully controlled."""

    def __init__(self, table: dict[str, list[float]], query_dimension: int | None = None) -> None:
        self.table = table
        self.query_dimension = query_dimension

    @property
    def provider_id(self) -> str:
        return "table"

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.table[text] for text in texts]

    def embed_query(self, text: str) -> list[float]:
        vector = self.table[text]
        if self.query_dimension is not None:
            return vector[: self.query_dimension]
        return vector


def _chunk(chunk_id: str, text: str) -> Chunk:
    return Chunk(
        chunk_id=chunk_id,
        doc_id="doc",
        text=text,
        start_offset=0,
        end_offset=len(text),
        metadata={"source": "unit"},
    )


def test_query_on_empty_index_returns_empty() -> None:
    index = EmbeddingIndex(HashingEmbedder())

    assert index.query("anything", 5) == []
    assert len(index) == 0


def test_query_respects_k_and_sorts_descending() -> None:
    index = EmbeddingIndex(HashingEmbedder())
    texts = [
        "encrypt customer data at rest",
        "holiday arrangements for employees",
        "customer data retention policy",
        "office plants need water",
        "customer support hours",
    ]
    for i, text in enumerate(texts):
        index.add(_chunk(f"c{i}", text))

    hits = index.query("customer data", 3)

    assert len(hits) == 3
    scores = [hit.score for hit in hits]
    assert scores == sorted(scores, reverse=True)
    assert [hit.rank for hit in hits] == [1, 2, 3]
    assert index.query("customer data", 0) == []
    assert len(index.query("customer data", 50)) == len(texts)


def test_ties_keep_insertion_order() -> None:
    table = {
        "first": [1.0, 0.0],
        "second": [1.0, 0.0],
        "third": [0.0, 1.0],
        "q": [1.0, 0.0],
    }
    index = EmbeddingIndex(TableEmbedder(table))
    index.add_many([_chunk("a", "first"), _chunk("b", "second"), _chunk("c", "third")])

    hits = index.query("q", 3)

    assert [hit.chunk.chunk_id for hit in hits] == ["a", "b", "c"]
    assert hits[0].score == pytest.approx(1.0)
    assert hits[2].score == pytest.approx(0.0)


def test_re_adding_chunk_replaces_entry() -> None:
    index = EmbeddingIndex(HashingEmbedder())
    index.add(_chunk("c0", "alpha beta"))
    index.add(_chunk("c1", "gamma delta"))

    index.add(_chunk("c0", "gamma delta epsilon"))

    assert len(index) == 2
    assert index.get("c0").text == "gamma delta epsilon"
    assert [chunk.chunk_id for chunk in index.chunks()] == ["c0", "c1"]
    hits = index.query("gamma", 5)
    assert len(hits) == 2
    assert {hit.chunk.chunk_id for hit in hits} == {"c0", "c1"}


def test_query_dimension_mismatch_raises() -> None:
    table = {"doc": [1.0, 0.0, 0.0], "q": [1.0, 0.0, 0.0]}
    index = EmbeddingIndex(TableEmbedder(table, query_dimension=2))
    index.add(_chunk("a", "doc"))

    with pytest.raises(IndexMismatch):
        index.query("q", 1)


def test_add_dimension_mismatch_raises_and_keeps_index() -> None:
    table = {"short": [1.0, 0.0], "long": [1.0, 0.0, 0.0]}
    index = EmbeddingIndex(TableEmbedder(table))
    index.add(_chunk("a", "short"))

    with pytest.raises(IndexMismatch):
        index.add(_chunk("b", "long"))

    assert len(index) == 1
    assert index.dimension == 2


def test_provider_change_requires_rebuild() -> None:
    index = EmbeddingIndex(HashingEmbedder(dimension=64))
    index.add(_chunk("a", "alpha"))

    index.rebind(HashingEmbedder(dimension=128))

    with pytest.raises(IndexMismatch):
        index.query("alpha", 1)
    with pytest.raises(IndexMismatch):
        index.add(_chunk("b", "beta"))

    index.clear()
    index.add(_chunk("a", "alpha"))
    assert index.query("alpha", 1)[0].chunk.chunk_id == "a"
    assert index.provider_id == "hashing-128"


def test_queries_see_consistent_snapshots_during_rebuild() -> None:
    index = EmbeddingIndex(HashingEmbedder())
    index.add_many([_chunk(f"c{i}", f"topic {i} shared words") for i in range(50)])
    errors: list[BaseException] = []

    def _reader() -> None:
        try:
            for _ in range(50):
                hits = index.query("shared words", 10)
                assert len(hits) == 10
        except BaseException as exc:  # surfaced by the main thread
            errors.append(exc)

    readers = [threading.Thread(target=_reader) for _ in range(4)]
    for thread in readers:
        thread.start()
    for round_ in range(20):
        index.add_many([_chunk(f"c{i}", f"topic {i} shared words v{round_}") for i in range(50)])
    for thread in readers:
        thread.join()

    assert errors == []
    assert len(index) == 50
