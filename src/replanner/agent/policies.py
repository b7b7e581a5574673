"""Policies wrapped around :meth:`Agent.run` without touching the loop itself."""

import asyncio
import logging
from typing import Callable

from replanner.agent.agent_loop import (
    Agent,
    AgentRunOutput,
)
from replanner.agent.events import (
    EventChannel,
    UpdateEvent,
)
from replanner.core.cancellation import new_signal
from replanner.core.errors import (
    RunCancelledError,
    TurnLimitExceededError,
)

logger = logging.getLogger(__name__)


def _mirror(source: asyncio.Event, target: asyncio.Event) -> "asyncio.Future[None]":
    """Set *target* as soon as *source* is set."""

    async def forward() -> None:
        await source.wait()
        target.set()

    if source.is_set():
        target.set()
    return asyncio.ensure_future(forward())


async def run_with_turn_limit(
    agent: Agent,
    prompt: str | None,
    max_turns: int | None,
    *,
    signal: asyncio.Event | None = None,
    observe: Callable[[EventChannel], None] | None = None,
) -> AgentRunOutput:
    """
    Run *agent* but give up once *max_turns* turns have been spent on tool calls.

    The limit is enforced through the run's cancellation signal: when the *max_turns*-th state
    still asks for tools, the signal fires and the resulting cancellation is reported as
    :class:`TurnLimitExceededError`.  ``max_turns=None`` runs without a limit.
    """
    if max_turns is None:
        return await agent.run(prompt, signal=signal, observe=observe)
    if max_turns < 1:
        raise ValueError("max_turns must be at least 1")

    # The caller's signal is only read, never set.
    run_signal = new_signal()
    mirror = _mirror(signal, run_signal) if signal is not None else None
    turns = 0
    tripped = False

    def count(event: UpdateEvent) -> None:
        nonlocal turns, tripped
        turns += 1
        if turns >= max_turns and event.state.next_step.type == "tool":
            logger.warning("Turn limit of %d reached, stopping the run", max_turns)
            tripped = True
            run_signal.set()

    def attach(channel: EventChannel) -> None:
        channel.on("update", count)
        if observe is not None:
            observe(channel)

    try:
        return await agent.run(prompt, signal=run_signal, observe=attach)
    except RunCancelledError as exc:
        if not tripped:
            raise
        error = TurnLimitExceededError(f"Agent did not answer within {max_turns} turns.")
        error.working_memory = exc.working_memory
        raise error from exc
    finally:
        if mirror is not None:
            mirror.cancel()
            await asyncio.gather(mirror, return_exceptions=True)
