"""One planner call per turn: generate, record, announce."""

import asyncio
import logging

from replanner.agent.events import (
    EventChannel,
    UpdateEvent,
)
from replanner.agent.planner_interface import BasePlanner
from replanner.agent.schema_composer import OutputContract
from replanner.core.cancellation import race
from replanner.core.errors import DecodingError
from replanner.core.schema import (
    Role,
    State,
)
from replanner.memory.memory_store import Memory

logger = logging.getLogger(__name__)


async def execute_turn(
    planner: BasePlanner,
    contract: OutputContract,
    memory: Memory,
    channel: EventChannel,
    signal: asyncio.Event | None = None,
) -> State:
    """
    Run a single turn.

    The raw reply is appended to *memory* as an assistant message and an ``update`` event is
    emitted before the decoded state is returned.  Nothing is appended when the call fails or is
    cancelled.

    Raises
    ------
    TransportError, DecodingError
        Propagated from the planner; the turn is not retried.
    RunCancelledError
        If *signal* fires while the model call is in flight.
    """
    try:
        generation = await race(planner.generate(contract, memory.messages), signal, "model call")
    except DecodingError as exc:
        logger.error("Could not decode planner output: %s", exc)
        raise

    memory.add_text(Role.ASSISTANT, generation.raw_text)
    await channel.emit("update", UpdateEvent(state=generation.state))
    return generation.state
