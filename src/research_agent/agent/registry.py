"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from time import perf_counter
from typing import Any, Union

from langchain_core.tools import StructuredTool
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from research_agent.errors import RegistryFrozen, ToolNotFound
from research_agent.types import ToolCallRequest, ToolCallResult, ToolDescription, ToolTrace

ToolHandler = Callable[[Any], Union[str, Awaitable[str]]]


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(min_length=1)
    description: str
    args_schema: type[BaseModel]
    handler: ToolHandler
    tags: list[str] = Field(default_factory=list)

    def describe(self) -> ToolDescription:
        return ToolDescription(
            name=self.name,
            description=self.description,
            input_schema=self.args_schema.model_json_schema(),
        )

    async def ainvoke(self, payload: dict[str, Any]) -> str:
        data = self.args_schema.model_validate(payload)
        if inspect.iscoroutinefunction(self.handler):
            return await self.handler(data)
        result = await asyncio.to_thread(self.handler, data)
        if inspect.isawaitable(result):
            return await result
        return result


class ToolRegistry:
    """Name -> tool lookup table, frozen before the agent loop first runs."""

    def __init__(self, specs: list[ToolSpec] | None = None) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._observer: Callable[[ToolTrace], None] | None = None
        self._frozen = False
        for spec in specs or []:
            self.register(spec)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, spec: ToolSpec) -> None:
        if self._frozen:
            raise RegistryFrozen(f"Cannot register {spec.name}: registry is frozen")
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def freeze(self) -> None:
        self._frozen = True

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Set an optional callback invoked after each tool execution."""
        self._observer = observer

    def resolve(self, name: str) -> ToolSpec:
        spec = self._tools.get(name)
        if spec is None:
            raise ToolNotFound(name)
        return spec

    def describe_all(self) -> list[ToolDescription]:
        return [spec.describe() for spec in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def as_langchain_tools(self) -> list[StructuredTool]:
        """Export tool schemas for binding to a LangChain chat model.

        The exported tools are only used to advertise names and argument
        schemas; execution always goes through `ainvoke`.
        """
        tools: list[StructuredTool] = []
        for spec in self._tools.values():
            tools.append(
                StructuredTool.from_function(
                    name=spec.name,
                    description=spec.description,
                    args_schema=spec.args_schema,
                    coroutine=self._build_coroutine(spec),
                )
            )
        return tools

    async def ainvoke(self, request: ToolCallRequest) -> ToolCallResult:
        """Execute one tool call; failures are returned as error results."""

        start = perf_counter()
        try:
            spec = self.resolve(request.name)
            output = await spec.ainvoke(request.arguments)
            is_error = False
        except ToolNotFound as exc:
            available = ", ".join(self._tools) or "none"
            output = f"ERROR: {exc}. Available tools: {available}"
            is_error = True
        except ValidationError as exc:
            output = f"ERROR: invalid arguments for {request.name}: {_summarize_validation(exc)}"
            is_error = True
        except Exception as exc:
            logger.exception("Tool {} raised", request.name)
            output = f"ERROR: {request.name} failed: {exc}"
            is_error = True
        latency_ms = (perf_counter() - start) * 1000.0

        if is_error:
            logger.warning("Tool call {} ({}) -> {}", request.call_id, request.name, output)
        else:
            logger.debug("Tool {} finished in {:.1f} ms", request.name, latency_ms)

        if self._observer is not None:
            self._observer(
                ToolTrace(
                    name=request.name,
                    input_payload=dict(request.arguments),
                    output_preview=output[:320],
                    latency_ms=latency_ms,
                    is_error=is_error,
                )
            )
        return ToolCallResult(
            call_id=request.call_id,
            name=request.name,
            output=output,
            is_error=is_error,
            latency_ms=latency_ms,
        )

    def _build_coroutine(self, spec: ToolSpec) -> Callable[..., Awaitable[str]]:
        async def _coroutine(**kwargs: Any) -> str:
            return await spec.ainvoke(kwargs)

        return _coroutine


def _summarize_validation(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "input"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)
