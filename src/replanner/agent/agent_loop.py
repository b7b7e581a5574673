"""Main orchestration loop for Replanner."""

from __future__ import annotations

import asyncio
import logging
from typing import (
    Callable,
    Dict,
    List,
    Sequence,
)

from pydantic import (
    BaseModel,
    ConfigDict,
)

from replanner.agent.events import (
    EventChannel,
    FinalEvent,
)
from replanner.agent.planner_interface import BasePlanner
from replanner.agent.prompts import render_tool_results
from replanner.agent.schema_composer import (
    OutputContract,
    compose_output_schema,
)
from replanner.agent.tool_executor import dispatch_tools
from replanner.agent.turn_executor import execute_turn
from replanner.core.errors import AgentError
from replanner.core.schema import (
    Message,
    MessageStep,
    Role,
)
from replanner.memory.memory_store import Memory
from replanner.tools.base import Tool

logger = logging.getLogger(__name__)


class AgentRunOutput(BaseModel):
    """Final answer of a run plus the working memory it accumulated."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    message: Message
    working_memory: Memory


# ---------------------------------------------------------------------------
# Agent Loop
# ---------------------------------------------------------------------------
class Agent:
    """
    Plan-act-respond agent.

    Each turn the planner emits a full :class:`~replanner.core.schema.State`.  A ``message``
    decision ends the run; a ``tool`` decision runs the requested calls and feeds their results
    back before the next turn.  There is no turn limit here; see
    :func:`replanner.agent.policies.run_with_turn_limit`.

    Parameters
    ----------
    planner:
        Model transport producing one state per turn.
    tools:
        The closed tool set for every run of this agent.
    memory:
        Persistent conversation memory.  It receives the prompt at the start of a run and the
        final answer at the end; everything in between lives in the run's working memory.
    """

    def __init__(
        self,
        planner: BasePlanner,
        tools: Sequence[Tool] = (),
        memory: Memory | None = None,
    ) -> None:
        self.planner = planner
        self.tools: List[Tool] = list(tools)
        self.memory = memory if memory is not None else Memory()

    async def run(
        self,
        prompt: str | None,
        *,
        signal: asyncio.Event | None = None,
        observe: Callable[[EventChannel], None] | None = None,
    ) -> AgentRunOutput:
        """
        Execute one run.

        Parameters
        ----------
        prompt:
            New user message, or ``None`` to continue from the existing memory.
        signal:
            Cancellation signal; setting it aborts the in-flight model or tool calls.
        observe:
            Called with the run's :class:`EventChannel` before the first turn, to subscribe
            observers.

        Raises
        ------
        AgentError
            Any failure of the run.  ``working_memory`` is set on the error.
        """
        channel = EventChannel()
        if observe is not None:
            observe(channel)

        if prompt is not None:
            self.memory.add_text(Role.USER, prompt)
        working_memory = self.memory.fork()

        try:
            contract = compose_output_schema(self.tools)
            final_message = await self._loop(contract, working_memory, channel, signal)
        except AgentError as exc:
            exc.working_memory = working_memory
            logger.warning("Agent run failed: %s: %s", type(exc).__name__, exc)
            raise

        self.memory.add(final_message)
        await channel.emit("final", FinalEvent(message=final_message))
        return AgentRunOutput(message=final_message, working_memory=working_memory)

    async def _loop(
        self,
        contract: OutputContract,
        working_memory: Memory,
        channel: EventChannel,
        signal: asyncio.Event | None,
    ) -> Message:
        tools_by_name: Dict[str, Tool] = {tool.name: tool for tool in self.tools}
        turn = 0
        while True:
            turn += 1
            state = await execute_turn(self.planner, contract, working_memory, channel, signal)
            logger.info("Turn %d decided '%s'", turn, state.next_step.type)

            if isinstance(state.next_step, MessageStep):
                return Message(role=Role.ASSISTANT, text=state.next_step.message)

            results = await dispatch_tools(
                state.next_step.calls, tools_by_name, channel, signal, working_memory.messages
            )
            working_memory.add_text(Role.ASSISTANT, render_tool_results(results))
