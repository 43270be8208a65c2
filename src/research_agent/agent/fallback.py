"""Deterministic fallback planner when no external LLM is configured."""

from __future__ import annotations

import re
import uuid
from collections.abc import Sequence

from research_agent.agent.tools import NO_RESULTS
from research_agent.types import Decision, FinalAnswer, Message, ToolCallRequest, ToolDescription

_MARKER = re.compile(r"^\[source=(?P<source>\S+) chunk=(?P<chunk>\S+) [^\]]*\]$")


class DeterministicPlanner:
    """Planner that answers from tool observations without an LLM.

    It keeps the same decision contract as `ChatModelPlanner` and is useful
    for local/offline environments where `OPENAI_API_KEY` is not configured.
    Tools are tried in `preference` order, one per iteration, until one
    returns usable output; the answer quotes the first few evidence blocks.
    """

    def __init__(self, preference: Sequence[str] = ("document_search", "web_search"), max_blocks: int = 3) -> None:
        self.preference = tuple(preference)
        self.max_blocks = max_blocks

    async def decide(
        self,
        context: Sequence[Message],
        tools: Sequence[ToolDescription],
    ) -> Decision:
        question, observations = _current_turn(context)
        available = {tool.name for tool in tools}
        tried = {message.tool_name for message in observations}

        for message in observations:
            if _usable(message.content):
                return FinalAnswer(text=self._build_answer(message))

        for name in self.preference:
            if name in available and name not in tried:
                return [
                    ToolCallRequest(
                        call_id=f"call_{uuid.uuid4().hex[:12]}",
                        name=name,
                        arguments={"query": question},
                    )
                ]

        if observations:
            return FinalAnswer(text="I could not find verifiable evidence for that question.")
        return FinalAnswer(text="No tools are available to answer that question.")

    def _build_answer(self, observation: Message) -> str:
        lines: list[str] = []
        for idx, (chunk_id, body) in enumerate(_evidence_blocks(observation.content)[: self.max_blocks], start=1):
            snippet = " ".join(body.split())
            lines.append(f"{idx}. {snippet} [{chunk_id}]" if chunk_id else f"{idx}. {snippet}")
        return "\n".join(lines)


def _evidence_blocks(output: str) -> list[tuple[str | None, str]]:
    """Split tool output into `(chunk_id, text)` blocks.

    Retrieval output starts each block with a provenance marker line; other
    tool output is split on blank lines.
    """

    lines = output.strip().splitlines()
    if not lines or not _MARKER.match(lines[0]):
        return [(None, block) for block in output.split("\n\n") if block.strip()]

    blocks: list[tuple[str | None, str]] = []
    for line in lines:
        match = _MARKER.match(line)
        if match:
            blocks.append((match.group("chunk"), ""))
        else:
            chunk_id, body = blocks[-1]
            blocks[-1] = (chunk_id, f"{body}\n{line}")
    return blocks


def _current_turn(context: Sequence[Message]) -> tuple[str, list[Message]]:
    question = ""
    start = 0
    for i in range(len(context) - 1, -1, -1):
        if context[i].role == "user":
            question = context[i].content
            start = i + 1
            break
    observations = [message for message in context[start:] if message.role == "tool"]
    return question, observations


def _usable(output: str) -> bool:
    stripped = output.strip()
    return bool(stripped) and stripped != NO_RESULTS and not stripped.startswith("ERROR:")
