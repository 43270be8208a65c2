"""Interactive chat loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from research_agent.agent.loop import AgentLoop
from research_agent.bootstrap import build_agent, ingest_sources
from research_agent.config import load_settings
from research_agent.errors import AgentError
from research_agent.obs.logging_setup import setup_logging

EXIT_COMMAND = "exit"


def is_exit(line: str) -> bool:
    return line.strip().lower() == EXIT_COMMAND


async def run_chat(
    agent: AgentLoop,
    session_key: str,
    *,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> int:
    """Read lines until `exit`, running one agent turn per line.

    Returns the number of turns that completed.
    """

    completed = 0
    while True:
        try:
            line = await asyncio.to_thread(read_line, "You: ")
        except EOFError:
            break
        if is_exit(line):
            break
        if not line.strip():
            continue
        try:
            result = await agent.run_turn(session_key, line)
        except AgentError as exc:
            logger.error("Turn failed: {}", exc)
            write(f"Agent error: {exc}")
            continue
        completed += 1
        write(f"Agent: {result.answer}")

    write("Goodbye!")
    return completed


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)

    print("Setting up the agent...")
    runtime = build_agent(settings)
    chunk_count = ingest_sources(runtime)
    logger.info("Indexed {} chunks from {} source(s)", chunk_count, len(settings.sources))
    print("Agent is ready! You can start chatting. Type 'exit' to end the conversation.")

    try:
        asyncio.run(run_chat(runtime.agent, settings.session_key))
    except KeyboardInterrupt:
        print("\nChat session ended.")
    finally:
        runtime.close()


if __name__ == "__main__":
    main()
