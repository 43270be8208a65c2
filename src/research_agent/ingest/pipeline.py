"""End-to-end ingest pipeline: fetch -> chunk -> embed -> index."""

from __future__ import annotations

from loguru import logger

from research_agent.errors import ProviderError
from research_agent.ingest.chunker import RecursiveChunker
from research_agent.ingest.loader import DocumentSource
from research_agent.retrieval.index import VectorIndex
from research_agent.types import Chunk, Document


class IngestPipeline:
    """Coordinates document source, chunker, and index stages.

    Ingestion is the index's single writer; it runs at startup (or from the
    `/ingest` endpoint) before or alongside read-only queries.
    """

    def __init__(
        self,
        source: DocumentSource,
        chunker: RecursiveChunker,
        index: VectorIndex,
    ) -> None:
        self._source = source
        self._chunker = chunker
        self._index = index

    def ingest_document(self, document: Document) -> list[Chunk]:
        chunks = self._chunker.split(document)
        self._index.add_many(chunks)
        logger.info(
            "Indexed {} chunks from {} ({} chars)",
            len(chunks),
            document.source_uri,
            len(document.text),
        )
        return chunks

    def ingest_uri(self, uri: str) -> list[Chunk]:
        """Fetch and index a single source; `FetchError` propagates."""
        return self.ingest_document(self._source.fetch(uri))

    def ingest_many(self, uris: list[str]) -> list[Chunk]:
        """Ingest many sources, skipping ones that cannot be fetched or embedded."""

        all_chunks: list[Chunk] = []
        for uri in uris:
            try:
                all_chunks.extend(self.ingest_uri(uri))
            except ProviderError as exc:
                logger.warning("Skipping {}: {}", uri, exc)
        return all_chunks
