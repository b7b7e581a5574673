"""Tests for the per-run event channel."""

import pytest

from replanner.agent.events import (
    EventChannel,
    FinalEvent,
    ToolStartEvent,
)
from replanner.core.schema import (
    Message,
    Role,
    ToolCall,
)

FINAL = FinalEvent(message=Message(role=Role.ASSISTANT, text="Hallo"))


@pytest.mark.asyncio
async def test_named_and_wildcard_observers() -> None:
    channel = EventChannel()
    named, wildcard = [], []
    channel.on("final", named.append)
    channel.on("*", lambda name, payload: wildcard.append((name, payload)))

    await channel.emit("final", FINAL)

    assert named == [FINAL]
    assert wildcard == [("final", FINAL)]


@pytest.mark.asyncio
async def test_observers_only_see_their_event() -> None:
    channel = EventChannel()
    seen = []
    channel.on("update", seen.append)

    await channel.emit("final", FINAL)

    assert seen == []


@pytest.mark.asyncio
async def test_unsubscribe() -> None:
    channel = EventChannel()
    seen = []
    unsubscribe = channel.on("final", seen.append)

    unsubscribe()
    unsubscribe()
    await channel.emit("final", FINAL)

    assert seen == []


@pytest.mark.asyncio
async def test_async_observer_is_awaited() -> None:
    channel = EventChannel()
    seen = []

    async def observer(payload) -> None:
        seen.append(payload.tool)

    channel.on("tool", observer)
    call = ToolCall(name="getWeather", input={"city": "Berlin"})
    await channel.emit("tool", ToolStartEvent(tool="getWeather", call=call, calls=[call]))

    assert seen == ["getWeather"]


@pytest.mark.asyncio
async def test_failing_observer_is_skipped(caplog) -> None:
    channel = EventChannel()
    seen = []

    def broken(_payload) -> None:
        raise RuntimeError("observer bug")

    channel.on("final", broken)
    channel.on("final", seen.append)

    await channel.emit("final", FINAL)

    assert seen == [FINAL]
    assert "observer bug" in caplog.text


def test_unknown_event_name() -> None:
    with pytest.raises(ValueError, match="Unknown event 'done'"):
        EventChannel().on("done", print)


def test_tool_event_exposes_input() -> None:
    call = ToolCall(name="getWeather", input={"city": "Berlin"})

    event = ToolStartEvent(tool="getWeather", call=call, calls=[call])

    assert event.input == {"city": "Berlin"}
    assert event.type == "start"
