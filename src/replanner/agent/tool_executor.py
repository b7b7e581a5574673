"""Dispatches the tool calls of one turn concurrently and wraps errors."""

import asyncio
import logging
from typing import (
    Any,
    List,
    Mapping,
    Sequence,
)

from pydantic import ValidationError

from replanner.agent.events import (
    EventChannel,
    ToolErrorEvent,
    ToolStartEvent,
    ToolSuccessEvent,
)
from replanner.core.cancellation import race
from replanner.core.errors import (
    ToolExecutionError,
    UnknownToolError,
)
from replanner.core.schema import (
    Message,
    ToolCall,
    ToolResult,
)
from replanner.tools.base import Tool

logger = logging.getLogger(__name__)


async def execute_tool(
    tool: Tool,
    call: ToolCall,
    calls: Sequence[ToolCall],
    channel: EventChannel,
    signal: asyncio.Event | None = None,
    memory: Sequence[Message] = (),
) -> Any:
    """
    Invoke *tool* for *call*, reporting ``start`` and then ``success`` or ``error``.

    Parameters
    ----------
    tool:
        The resolved tool.
    call:
        The call being executed.
    calls:
        The whole batch *call* belongs to (passed along to observers).
    memory:
        Snapshot of the run's working memory, readable by the tool.

    Returns
    -------
    Any
        Whatever the tool returns.

    Raises
    ------
    ToolExecutionError
        If the input does not validate or the tool raises an exception.
    """
    meta = {"tool": tool.name, "call": call, "calls": list(calls)}
    await channel.emit("tool", ToolStartEvent(**meta))
    try:
        logger.debug("Executing tool '%s' with input=%s", call.name, call.input)
        output = await tool.run(call.input, signal=signal, memory=memory)
    except ValidationError as exc:
        # Argument mismatch: give the caller a clean exception.
        logger.error("Argument error while executing tool '%s': %s", call.name, exc)
        await channel.emit("tool", ToolErrorEvent(**meta, error=exc))
        raise ToolExecutionError(f"Invalid arguments for tool '{call.name}': {exc}") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", call.name)
        await channel.emit("tool", ToolErrorEvent(**meta, error=exc))
        raise ToolExecutionError(f"Tool '{call.name}' raised an error: {exc}") from exc

    await channel.emit("tool", ToolSuccessEvent(**meta, output=output))
    return output


async def _abandon(tasks: Sequence["asyncio.Future[Any]"]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


def _failed(task: "asyncio.Future[Any]") -> bool:
    return task.cancelled() or task.exception() is not None


async def _until_first_failure(tasks: Sequence["asyncio.Future[Any]"]) -> None:
    """Wait until every task is done or one of them fails or ends up cancelled."""
    pending = set(tasks)
    while pending:
        done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        if any(_failed(task) for task in done):
            return


async def dispatch_tools(
    calls: Sequence[ToolCall],
    tools: Mapping[str, Tool],
    channel: EventChannel,
    signal: asyncio.Event | None = None,
    memory: Sequence[Message] = (),
) -> List[ToolResult]:
    """
    Run every call of a batch concurrently.

    All names are resolved before anything runs.  The batch is all-or-nothing: as soon as one call
    fails the others are cancelled, their results (finished or not) are discarded and the failure
    is raised.  A tool that cancels itself counts as a failure of that call.

    Raises
    ------
    UnknownToolError
        If a call names a tool missing from *tools*; no tool is invoked in that case.
    ToolExecutionError
        If any call fails.
    RunCancelledError
        If *signal* fires while the batch is running.
    """
    resolved = []
    for call in calls:
        tool = tools.get(call.name)
        if tool is None:
            raise UnknownToolError(f"Tool {call.name} does not exist.")
        resolved.append((call, tool))

    if not resolved:
        return []

    logger.info("Dispatching %d tool calls: %s", len(resolved), [call.name for call, _ in resolved])
    snapshot = tuple(memory)
    tasks = [
        asyncio.ensure_future(execute_tool(tool, call, calls, channel, signal, snapshot))
        for call, tool in resolved
    ]
    try:
        await race(_until_first_failure(tasks), signal, "tool batch")
    except BaseException:
        await _abandon(tasks)
        raise

    # Nothing has been cancelled by the dispatcher at this point.
    for (call, tool), task in zip(resolved, tasks):
        if not task.done() or not _failed(task):
            continue
        if task.cancelled():
            logger.error("Tool '%s' was cancelled from within", call.name)
            await channel.emit(
                "tool",
                ToolErrorEvent(
                    tool=tool.name, call=call, calls=list(calls), error=asyncio.CancelledError()
                ),
            )
            error: BaseException = ToolExecutionError(f"Tool '{call.name}' was cancelled.")
        else:
            error = task.exception()  # type: ignore[assignment]
        await _abandon(tasks)
        raise error

    return [ToolResult(call=call, output=task.result()) for (call, _), task in zip(resolved, tasks)]
