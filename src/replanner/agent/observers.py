"""Ready-made observers for :class:`~replanner.agent.events.EventChannel`."""

import json
import logging
from typing import Any

from replanner.agent.events import (
    EventChannel,
    FinalEvent,
    ToolErrorEvent,
    ToolStartEvent,
    ToolSuccessEvent,
    UpdateEvent,
)
from replanner.agent.prompts import to_jsonable
from replanner.common import (
    AnsiColors,
    colored_print,
    shorten,
)

logger = logging.getLogger(__name__)


def _dumps(value: Any) -> str:
    return json.dumps(to_jsonable(value), ensure_ascii=False, default=str)


# ---------------------------------------------------------------------------
# Console reader
# ---------------------------------------------------------------------------
def attach_console_reader(channel: EventChannel) -> None:
    """Print lookback, plan steps and tool activity of a run to the terminal."""

    def on_update(event: UpdateEvent) -> None:
        colored_print("Lookback 💭 🤖 : ", AnsiColors.MAGENTA, end="")
        print(event.state.lookback)
        for step in event.state.plan:
            colored_print("Step ➡️  ", AnsiColors.CYAN, end="")
            print(step.title)

    def on_tool(event: Any) -> None:
        if isinstance(event, ToolStartEvent):
            colored_print("Tool 🛠️  ", AnsiColors.BLUE, end="")
            print(f"Start {event.tool} with {_dumps(event.input)}")
        elif isinstance(event, ToolSuccessEvent):
            colored_print("Tool 🛠  ", AnsiColors.GREEN, end="")
            print(f"Success {event.tool} with {shorten(_dumps(event.output))}")
        elif isinstance(event, ToolErrorEvent):
            colored_print(f"🛠 Error {event.tool} ", AnsiColors.RED, end="")
            print(f"with {type(event.error).__name__}: {event.error}")

    channel.on("update", on_update)
    channel.on("tool", on_tool)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
def attach_logger(channel: EventChannel, log: logging.Logger = logger) -> None:
    """Report every event of a run through *log*."""

    def on_event(name: str, event: Any) -> None:
        if isinstance(event, UpdateEvent):
            log.info("update: lookback=%s", shorten(event.state.lookback))
            log.debug("update: plan=%s", [step.title for step in event.state.plan])
            log.debug("update: information=%s", event.state.information)
        elif isinstance(event, ToolStartEvent):
            log.info("tool start: %s %s", event.tool, _dumps(event.input))
        elif isinstance(event, ToolSuccessEvent):
            log.info("tool success: %s -> %s", event.tool, shorten(_dumps(event.output)))
        elif isinstance(event, ToolErrorEvent):
            log.warning("tool error: %s -> %s: %s", event.tool, type(event.error).__name__, event.error)
        elif isinstance(event, FinalEvent):
            log.info("final: %s", shorten(event.message.text))
        else:
            log.debug("%s: %r", name, event)

    channel.on("*", on_event)
