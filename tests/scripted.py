"""Test doubles shared by the test modules."""

import json
from typing import (
    Any,
    Dict,
    List,
    Sequence,
    Tuple,
)

from replanner.agent.planner_interface import (
    BasePlanner,
    Generation,
)
from replanner.agent.schema_composer import OutputContract
from replanner.core.schema import (
    Message,
    State,
)


def state_json(next_step: Dict[str, Any], lookback: str = "", plan: List[Dict] | None = None) -> Dict:
    """A planner reply in wire format."""
    return {"information": {}, "lookback": lookback, "plan": plan or [], "nextStep": next_step}


def answer(text: str) -> Dict:
    """Reply that ends the run with *text*."""
    return state_json({"type": "message", "message": text}, lookback="Answering.")


def use_tools(*calls: Tuple[str, Dict[str, Any]]) -> Dict:
    """Reply requesting *calls* given as ``(name, input)`` pairs."""
    return state_json(
        {"type": "tool", "calls": [{"name": name, "input": data} for name, data in calls]},
        lookback="Need more information.",
        plan=[{"title": "Look it up", "decision": "Use a tool", "research": True, "computation": False}],
    )


class ScriptedPlanner(BasePlanner):
    """
    Replays canned replies, one per turn, and records what it was shown.

    A reply may be a dict (dumped to JSON), a raw string, a ready :class:`State` (bypasses
    decoding) or an async callable producing one of those.
    """

    def __init__(self, replies: Sequence[Any]) -> None:
        self.replies = list(replies)
        self.seen: List[Tuple[Message, ...]] = []
        self.system_prompts: List[str] = []
        self._pending = ""

    async def generate(self, contract: OutputContract, messages: Sequence[Message]) -> Generation:
        self.seen.append(tuple(messages))
        reply = self.replies.pop(0)
        if callable(reply):
            reply = await reply()
        if isinstance(reply, State):
            return Generation(raw_text=reply.model_dump_json(by_alias=True), state=reply)
        self._pending = reply if isinstance(reply, str) else json.dumps(reply)
        return await super().generate(contract, messages)

    async def _complete(
        self, system_prompt: str, contract: OutputContract, messages: Sequence[Message]
    ) -> str:
        self.system_prompts.append(system_prompt)
        return self._pending


class Recorder:
    """Wildcard observer keeping every ``(event_name, payload)`` pair."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Any]] = []

    def __call__(self, name: str, payload: Any) -> None:
        self.events.append((name, payload))

    def attach(self, channel: Any) -> None:
        channel.on("*", self)

    def named(self, name: str) -> List[Any]:
        return [payload for event, payload in self.events if event == name]

    def tool_types(self) -> List[str]:
        return [payload.type for payload in self.named("tool")]
