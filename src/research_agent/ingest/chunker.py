"""Recursive character chunking with overlapping windows."""

from __future__ import annotations

import re

from research_agent.config import ChunkingConfig
from research_agent.errors import InvalidConfig
from research_agent.types import Chunk, Document

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"[.!?。！？]\s+")
_WORD_BREAK = re.compile(r"\s+")

# Preferred break points, strongest first.
_BREAK_PATTERNS: tuple[re.Pattern[str], ...] = (
    _PARAGRAPH_BREAK,
    _SENTENCE_BREAK,
    _WORD_BREAK,
)


class RecursiveChunker:
    """Splits document text into overlapping windows of at most `chunk_size`.

    Design notes:
    1. Windows slide forward.
       Each window starts `overlap` characters before the previous window's
       end, so consecutive chunks share exactly `overlap` characters and the
       chunks cover the full text with no gaps.

    2. Structural boundaries are preferred.
       A window that does not reach the end of the text is cut at the last
       paragraph break inside it; failing that, at the last sentence end;
       failing that, at the last whitespace. Only when none exists does the
       window fall back to a hard cut at `chunk_size` characters.

    3. Every cut must advance.
       A candidate break is only accepted when it lies beyond
       `start + overlap`, otherwise the next window would not move forward.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        if self.config.overlap >= self.config.chunk_size:
            raise InvalidConfig("overlap must be less than chunk_size")

    @classmethod
    def from_sizes(cls, chunk_size: int, overlap: int) -> "RecursiveChunker":
        return cls(ChunkingConfig.create(chunk_size=chunk_size, overlap=overlap))

    def split(self, document: Document) -> list[Chunk]:
        """Chunk a document into ordered, overlapping windows.

        Args:
            document: Fetched text and metadata from a document source.

        Returns:
            Ordered `Chunk` objects whose offsets index into `document.text`.
        """

        chunks: list[Chunk] = []
        for index, (start, end) in enumerate(self.split_text(document.text)):
            chunks.append(
                Chunk(
                    chunk_id=f"{document.doc_id}-chunk-{index:04d}",
                    doc_id=document.doc_id,
                    text=document.text[start:end],
                    start_offset=start,
                    end_offset=end,
                    metadata={
                        **document.metadata,
                        "source": document.source_uri,
                        "chunk_index": index,
                    },
                )
            )
        return chunks

    def split_text(self, text: str) -> list[tuple[int, int]]:
        """Return `(start, end)` spans covering `text`."""

        if not text.strip():
            return []

        size = self.config.chunk_size
        overlap = self.config.overlap
        spans: list[tuple[int, int]] = []
        start = 0

        while True:
            if len(text) - start <= size:
                spans.append((start, len(text)))
                break
            end = self._find_break(text, start, start + size)
            spans.append((start, end))
            start = end - overlap

        return spans

    def _find_break(self, text: str, start: int, limit: int) -> int:
        window = text[start:limit]
        min_length = self.config.overlap + 1
        for pattern in _BREAK_PATTERNS:
            cut = _last_match_end(pattern, window)
            if cut is not None and cut >= min_length:
                return start + cut
        return limit


def _last_match_end(pattern: re.Pattern[str], window: str) -> int | None:
    last: int | None = None
    for match in pattern.finditer(window):
        last = match.end()
    return last
