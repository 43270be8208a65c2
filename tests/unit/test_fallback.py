import asyncio

from research_agent.agent.fallback import DeterministicPlanner
from research_agent.types import FinalAnswer, Message, ToolCallResult, ToolDescription

TOOLS = [
    ToolDescription(name="web_search", description="web", input_schema={}),
    ToolDescription(name="document_search", description="docs", input_schema={}),
]


def _observation(name: str, output: str) -> Message:
    return Message.tool_result(ToolCallResult(call_id=f"call-{name}", name=name, output=output))


def test_first_decision_queries_documents_with_question() -> None:
    planner = DeterministicPlanner()

    decision = asyncio.run(planner.decide([Message.user("What is tracing?")], TOOLS))

    assert isinstance(decision, list)
    assert decision[0].name == "document_search"
    assert decision[0].arguments == {"query": "What is tracing?"}


def test_answers_from_retrieval_evidence() -> None:
    planner = DeterministicPlanner()
    context = [
        Message.user("What is tracing?"),
        _observation(
            "document_search",
            "[source=https://x chunk=guide-chunk-0002 offsets=10-60 score=0.5000]\n"
            "Tracing records every run.",
        ),
    ]

    decision = asyncio.run(planner.decide(context, TOOLS))

    assert decision == FinalAnswer("1. Tracing records every run. [guide-chunk-0002]")


def test_falls_through_to_next_tool_after_empty_result() -> None:
    planner = DeterministicPlanner()
    context = [Message.user("news?"), _observation("document_search", "NO_RESULTS")]

    decision = asyncio.run(planner.decide(context, TOOLS))

    assert isinstance(decision, list)
    assert decision[0].name == "web_search"


def test_gives_up_after_all_tools_fail() -> None:
    planner = DeterministicPlanner()
    context = [
        Message.user("news?"),
        _observation("document_search", "NO_RESULTS"),
        _observation("web_search", "ERROR: web_search failed: not configured"),
    ]

    decision = asyncio.run(planner.decide(context, TOOLS))

    assert isinstance(decision, FinalAnswer)
    assert "could not find" in decision.text


def test_only_current_turn_observations_count() -> None:
    planner = DeterministicPlanner()
    context = [
        Message.user("old question"),
        Message.assistant("old answer"),
        Message.user("new question"),
    ]

    decision = asyncio.run(planner.decide(context, TOOLS))

    assert isinstance(decision, list)
    assert decision[0].arguments == {"query": "new question"}
