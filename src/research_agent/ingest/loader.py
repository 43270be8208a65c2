"""Document sources: web pages and local files normalized into `Document`s."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from hashlib import sha1
from html.parser import HTMLParser
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx
from loguru import logger

from research_agent.errors import FetchError
from research_agent.types import Document

_SKIPPED_TAGS = {"script", "style", "noscript", "template", "svg", "head"}
_BLOCK_TAGS = {
    "p", "div", "section", "article", "main", "header", "footer", "li", "ul",
    "ol", "table", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "pre", "blockquote",
    "br", "hr",
}


class DocumentSource(ABC):
    """Fetches a URI and returns its normalized text."""

    @abstractmethod
    def fetch(self, uri: str) -> Document:
        """Fetch one document, raising `FetchError` on failure."""


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._skip_depth = 0
        self.title = ""
        self._in_title = False

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "title":
            self._in_title = True
        if tag in _SKIPPED_TAGS:
            self._skip_depth += 1
        elif tag in _BLOCK_TAGS:
            self._parts.append("\n\n")

    def handle_endtag(self, tag: str) -> None:
        if tag == "title":
            self._in_title = False
        if tag in _SKIPPED_TAGS and self._skip_depth:
            self._skip_depth -= 1
        elif tag in _BLOCK_TAGS:
            self._parts.append("\n\n")

    def handle_data(self, data: str) -> None:
        if self._in_title:
            self.title += data.strip()
        if self._skip_depth:
            return
        self._parts.append(data)

    def text(self) -> str:
        raw = "".join(self._parts)
        lines = [re.sub(r"[ \t\r\f\v]+", " ", line).strip() for line in raw.split("\n")]
        collapsed = "\n".join(lines)
        return re.sub(r"\n{3,}", "\n\n", collapsed).strip()


def html_to_text(html: str) -> tuple[str, str]:
    """Strip markup, returning `(title, text)` with paragraph breaks kept."""

    extractor = _TextExtractor()
    extractor.feed(html)
    extractor.close()
    return extractor.title, extractor.text()


def make_doc_id(uri: str) -> str:
    parsed = urlparse(uri)
    stem = Path(parsed.path).stem or parsed.netloc or "doc"
    stem = re.sub(r"[^A-Za-z0-9_-]+", "-", stem).strip("-") or "doc"
    return f"{stem}-{sha1(uri.encode('utf-8')).hexdigest()[:8]}"


class WebPageLoader(DocumentSource):
    """Loads an HTTP(S) page and reduces it to plain text."""

    def __init__(self, *, timeout: float = 15.0, client: httpx.Client | None = None) -> None:
        self._timeout = timeout
        self._client = client

    def fetch(self, uri: str) -> Document:
        try:
            if self._client is not None:
                response = self._client.get(uri, follow_redirects=True)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.get(uri, follow_redirects=True)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchError(f"Timed out fetching {uri}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to fetch {uri}: {exc}") from exc

        content_type = response.headers.get("content-type", "")
        if "html" in content_type or response.text.lstrip().startswith("<"):
            title, text = html_to_text(response.text)
            fmt = "html"
        else:
            title, text = "", response.text
            fmt = "text"

        logger.debug("Fetched {} ({} chars, {})", uri, len(text), fmt)
        return Document(
            doc_id=make_doc_id(uri),
            source_uri=uri,
            text=text,
            metadata={"format": fmt, "title": title},
        )


class FileLoader(DocumentSource):
    """Loads local text, markdown, JSON, and HTML files."""

    extensions: tuple[str, ...] = (".txt", ".log", ".md", ".markdown", ".json", ".html", ".htm")

    def fetch(self, uri: str) -> Document:
        path = Path(uri[len("file://"):] if uri.startswith("file://") else uri)
        suffix = path.suffix.lower()
        if suffix not in self.extensions:
            raise FetchError(f"No loader registered for extension: {path.suffix}")
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FetchError(f"Failed to read {path}: {exc}") from exc

        metadata: dict[str, Any] = {"format": suffix.lstrip(".")}
        if suffix == ".json":
            text = _normalize_json(raw, path)
        elif suffix in {".html", ".htm"}:
            title, text = html_to_text(raw)
            metadata["title"] = title
        else:
            text = raw

        return Document(
            doc_id=path.stem,
            source_uri=str(path),
            text=text,
            metadata=metadata,
        )


class SourceRouter(DocumentSource):
    """Dispatches a URI to the web loader or the file loader by scheme."""

    def __init__(
        self,
        web: DocumentSource | None = None,
        files: DocumentSource | None = None,
    ) -> None:
        self._web = web or WebPageLoader()
        self._files = files or FileLoader()

    def fetch(self, uri: str) -> Document:
        scheme = urlparse(uri).scheme.lower()
        if scheme in {"http", "https"}:
            return self._web.fetch(uri)
        return self._files.fetch(uri)


def _normalize_json(raw: str, path: Path) -> str:
    try:
        payload: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise FetchError(f"Invalid JSON in {path}: {exc}") from exc
    if isinstance(payload, (dict, list)):
        return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2)
    return str(payload)
