"""Interactive shell that runs the agent in-process and narrates each run."""

from __future__ import annotations

import asyncio
import logging
from typing import Tuple

from replanner.agent.agent_loop import Agent
from replanner.agent.observers import attach_console_reader
from replanner.agent.planner_interface import load_planner
from replanner.agent.policies import run_with_turn_limit
from replanner.common import (
    AnsiColors,
    colored_print,
)
from replanner.config import settings
from replanner.core.errors import AgentError
from replanner.tools import load_tools

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shell
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    # (True  ⇒  *do* interrupt;  False ⇒ restart them)
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


async def ask(agent: Agent, question: str) -> str:
    """Run *agent* once for *question* and return the printable answer."""
    output = await run_with_turn_limit(
        agent, question, settings.MAX_TURNS, observe=attach_console_reader
    )
    return output.message.text


def run_cli() -> None:
    """Read questions from stdin until 'exit', 'quit', EOF or Ctrl+C."""
    agent = Agent(planner=load_planner(), tools=load_tools(settings.tool_names()))
    names = ", ".join(tool.name for tool in agent.tools) or "none"

    colored_print(
        f"\n🔮 Replanner shell (tools: {names}) - type 'exit' or 'quit' (or Ctrl+C) to exit",
        AnsiColors.GREEN,
    )
    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        try:
            answer = asyncio.run(ask(agent, user_msg))
        except AgentError as exc:
            logger.debug("Run failed", exc_info=True)
            colored_print(f"Agent (error) 🤖 : {type(exc).__name__}: {exc}", AnsiColors.RED)
            continue
        except KeyboardInterrupt:
            colored_print("Agent 🤖 : run interrupted", AnsiColors.RED)
            continue

        colored_print("Agent 🤖 : ", AnsiColors.YELLOW, end="")
        print(answer)


if __name__ == "__main__":
    run_cli()
