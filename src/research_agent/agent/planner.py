"""Model-decision interface and the LangChain chat-model adapter."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any, Protocol

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.tools import StructuredTool
from loguru import logger

from research_agent.errors import ModelError
from research_agent.types import Decision, FinalAnswer, Message, ToolCallRequest, ToolDescription


class Planner(Protocol):
    """Decides, from the conversation so far, to answer or to call tools."""

    async def decide(
        self,
        context: Sequence[Message],
        tools: Sequence[ToolDescription],
    ) -> Decision:
        """Return a `FinalAnswer` or a non-empty list of `ToolCallRequest`s."""


class ChatModelPlanner:
    """Planner backed by any LangChain chat model that supports `bind_tools`.

    Messages are converted to LangChain message objects, the tools the loop
    advertises are bound as function schemas, and the model's reply is mapped
    back: tool calls become `ToolCallRequest`s, plain content a `FinalAnswer`.
    Client failures are reported as `ModelError`.
    """

    def __init__(
        self,
        *,
        llm: Any,
        tools: Sequence[StructuredTool],
        system_prompt: str | None = None,
    ) -> None:
        self.llm = llm
        self.system_prompt = system_prompt
        self._tools = {tool.name: tool for tool in tools}
        self._bound_cache: dict[tuple[str, ...], Any] = {}

    async def decide(
        self,
        context: Sequence[Message],
        tools: Sequence[ToolDescription],
    ) -> Decision:
        messages = to_langchain_messages(context, system_prompt=self.system_prompt)
        model = self._bind([tool.name for tool in tools])
        try:
            reply = await model.ainvoke(messages)
        except Exception as exc:
            logger.error("Chat model call failed: {}", exc)
            raise ModelError(f"chat model call failed: {exc}") from exc
        return parse_reply(reply)

    def _bind(self, names: list[str]) -> Any:
        key = tuple(names)
        if key not in self._bound_cache:
            selected = [self._tools[name] for name in names if name in self._tools]
            self._bound_cache[key] = self.llm.bind_tools(selected) if selected else self.llm
        return self._bound_cache[key]


def to_langchain_messages(
    context: Sequence[Message],
    *,
    system_prompt: str | None = None,
) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))
    for message in context:
        if message.role == "user":
            messages.append(HumanMessage(content=message.content))
        elif message.role == "assistant":
            messages.append(
                AIMessage(
                    content=message.content,
                    tool_calls=[
                        {"id": call.call_id, "name": call.name, "args": call.arguments}
                        for call in message.tool_calls
                    ],
                )
            )
        else:
            messages.append(
                ToolMessage(
                    content=message.content,
                    tool_call_id=message.tool_call_id or "",
                    name=message.tool_name,
                )
            )
    return messages


def parse_reply(reply: Any) -> Decision:
    """Map a chat-model reply to a planner decision."""

    if not isinstance(reply, AIMessage):
        raise ModelError(f"unexpected model reply type: {type(reply).__name__}")

    if reply.invalid_tool_calls:
        bad = reply.invalid_tool_calls[0]
        raise ModelError(f"malformed tool call {bad.get('name')!r}: {bad.get('error')}")

    if reply.tool_calls:
        requests: list[ToolCallRequest] = []
        for call in reply.tool_calls:
            args = call.get("args") or {}
            if not isinstance(args, dict):
                raise ModelError(f"tool call arguments must be an object, got {args!r}")
            requests.append(
                ToolCallRequest(
                    call_id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                    name=str(call.get("name", "")),
                    arguments=args,
                )
            )
        return requests

    return FinalAnswer(text=_content_text(reply.content))


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return " ".join(parts).strip()
    return str(content)


def create_chat_model(model: str, *, api_key: str | None, temperature: float = 0.0) -> Any:
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=model, temperature=temperature, api_key=api_key)
