"""Plan-act-observe agent loop."""

from __future__ import annotations

import asyncio
from enum import Enum

from loguru import logger

from research_agent.agent.planner import Planner
from research_agent.agent.registry import ToolRegistry
from research_agent.agent.session import SessionHistoryStore
from research_agent.config import AgentConfig
from research_agent.errors import MaxIterationsExceeded, PlanningFailed, TurnTimeout
from research_agent.obs.tracing import Timer, TraceStore
from research_agent.types import (
    Decision,
    FinalAnswer,
    Message,
    ToolCallRequest,
    ToolCallResult,
    ToolDescription,
    ToolTrace,
    TurnResult,
)


class LoopState(str, Enum):
    PLANNING = "planning"
    DISPATCHING = "dispatching"
    DONE = "done"


class AgentLoop:
    """Runs one conversational turn as a Planning/Dispatching state machine.

    Each iteration hands the planner the session transcript, the new user
    message, and everything the turn has produced so far (tool requests and
    their observations). A `FinalAnswer` ends the turn; tool requests are
    dispatched concurrently and their results appended as `tool` messages
    before planning again.

    The session transcript is written once, after the final answer, so a
    failed, timed-out, or runaway turn leaves it untouched. By default only
    the user message and the final answer are persisted; intermediate tool
    traffic stays scoped to the turn unless `persist_tool_messages` is set.
    """

    def __init__(
        self,
        *,
        planner: Planner,
        tool_registry: ToolRegistry,
        sessions: SessionHistoryStore,
        config: AgentConfig | None = None,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.planner = planner
        self.tool_registry = tool_registry
        self.sessions = sessions
        self.config = config or AgentConfig()
        self.trace_store = trace_store
        self.tool_registry.freeze()

    async def run_turn(self, session_key: str, user_input: str) -> TurnResult:
        """Run one full turn and return the final answer.

        Raises:
            PlanningFailed: the planner raised or returned a malformed decision.
            MaxIterationsExceeded: no final answer within `max_iterations`.
            TurnTimeout: the turn exceeded `turn_timeout_seconds`.
        """

        try:
            return await asyncio.wait_for(
                self._run(session_key, user_input),
                timeout=self.config.turn_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "Turn for session {} timed out after {}s",
                session_key,
                self.config.turn_timeout_seconds,
            )
            raise TurnTimeout(
                f"turn exceeded {self.config.turn_timeout_seconds} seconds"
            ) from exc

    def run_turn_sync(self, session_key: str, user_input: str) -> TurnResult:
        return asyncio.run(self.run_turn(session_key, user_input))

    async def _run(self, session_key: str, user_input: str) -> TurnResult:
        history = self.sessions.get(session_key)
        user_message = Message.user(user_input)
        scratch: list[Message] = []
        tool_results: list[ToolCallResult] = []
        tool_traces: list[ToolTrace] = []
        tools = self.tool_registry.describe_all()

        with Timer() as timer:
            for iteration in range(1, self.config.max_iterations + 1):
                self._transition(session_key, LoopState.PLANNING, iteration)
                decision = await self._decide([*history, user_message, *scratch], tools)

                if isinstance(decision, FinalAnswer):
                    answer = Message.assistant(decision.text)
                    persisted = (
                        [user_message, *scratch, answer]
                        if self.config.persist_tool_messages
                        else [user_message, answer]
                    )
                    await self.sessions.extend(session_key, persisted)
                    self._transition(session_key, LoopState.DONE, iteration)
                    break

                self._transition(session_key, LoopState.DISPATCHING, iteration)
                results = await asyncio.gather(
                    *(self.tool_registry.ainvoke(request) for request in decision)
                )
                scratch.append(
                    Message(role="assistant", content="", tool_calls=tuple(decision))
                )
                for request, result in zip(decision, results, strict=True):
                    scratch.append(Message.tool_result(result))
                    tool_results.append(result)
                    tool_traces.append(
                        ToolTrace(
                            name=result.name,
                            input_payload=dict(request.arguments),
                            output_preview=result.output[:320],
                            latency_ms=result.latency_ms,
                            is_error=result.is_error,
                        )
                    )
            else:
                logger.error(
                    "Session {} hit the iteration cap ({})",
                    session_key,
                    self.config.max_iterations,
                )
                raise MaxIterationsExceeded(self.config.max_iterations)

        trace_id = None
        if self.trace_store is not None:
            trace_id = self.trace_store.create_record(
                session_key=session_key,
                question=user_input,
                answer=decision.text,
                tool_traces=tool_traces,
                iterations=iteration,
                latency_ms=timer.elapsed_ms,
            ).trace_id

        logger.info(
            "Session {} turn done in {} iteration(s), {} tool call(s), {:.0f} ms",
            session_key,
            iteration,
            len(tool_results),
            timer.elapsed_ms,
        )
        return TurnResult(
            session_key=session_key,
            answer=decision.text,
            iterations=iteration,
            tool_results=tool_results,
            latency_ms=timer.elapsed_ms,
            trace_id=trace_id,
        )

    async def _decide(
        self, context: list[Message], tools: list[ToolDescription]
    ) -> FinalAnswer | list[ToolCallRequest]:
        try:
            decision: Decision = await self.planner.decide(context, tools)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Planning step failed")
            raise PlanningFailed(f"planning step failed: {exc}") from exc

        if isinstance(decision, FinalAnswer):
            return decision
        if (
            not isinstance(decision, list)
            or not decision
            or not all(isinstance(item, ToolCallRequest) for item in decision)
        ):
            raise PlanningFailed(f"malformed planner decision: {decision!r}")
        return decision

    @staticmethod
    def _transition(session_key: str, state: LoopState, iteration: int) -> None:
        logger.debug("Session {} iteration {} -> {}", session_key, iteration, state.value)
