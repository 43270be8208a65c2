"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

Role = Literal["user", "assistant", "tool"]


@dataclass(slots=True, frozen=True)
class Document:
    """A fetched source document before chunking."""

    doc_id: str
    source_uri: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Chunk:
    """A window of a source document; `text == document.text[start:end]`."""

    chunk_id: str
    doc_id: str
    text: str
    start_offset: int
    end_offset: int
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Embedding:
    chunk_id: str
    vector: tuple[float, ...]


@dataclass(slots=True)
class ScoredChunk:
    """A retrieval result with its similarity score."""

    chunk: Chunk
    score: float
    rank: int = 0


@dataclass(slots=True, frozen=True)
class ToolDescription:
    """Capability advertisement handed to the planner."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass(slots=True, frozen=True)
class ToolCallRequest:
    call_id: str
    name: str
    arguments: dict[str, Any]


@dataclass(slots=True, frozen=True)
class ToolCallResult:
    call_id: str
    name: str
    output: str
    is_error: bool = False
    latency_ms: float = 0.0


@dataclass(slots=True, frozen=True)
class Message:
    """One transcript entry.

    Assistant messages that requested tools carry the requests in `tool_calls`;
    tool messages carry `tool_name` and the originating `tool_call_id`.
    """

    role: Role
    content: str
    tool_name: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = ()

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role="assistant", content=content)

    @classmethod
    def tool_result(cls, result: ToolCallResult) -> "Message":
        return cls(
            role="tool",
            content=result.output,
            tool_name=result.name,
            tool_call_id=result.call_id,
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_name is not None:
            payload["tool_name"] = self.tool_name
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            payload["tool_calls"] = [
                {"call_id": call.call_id, "name": call.name, "arguments": call.arguments}
                for call in self.tool_calls
            ]
        return payload


@dataclass(slots=True, frozen=True)
class FinalAnswer:
    text: str


Decision = Union[FinalAnswer, list[ToolCallRequest]]


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
    is_error: bool = False


@dataclass(slots=True)
class TurnResult:
    """Outcome of one completed agent turn."""

    session_key: str
    answer: str
    iterations: int
    tool_results: list[ToolCallResult]
    latency_ms: float
    trace_id: str | None = None
