"""Tests for the output contract composition."""

import json
from typing import Any, Dict, List

import pytest
from pydantic import BaseModel

from replanner.agent.schema_composer import (
    compose_output_schema,
    tool_token,
)
from replanner.core.errors import (
    ConfigurationError,
    DecodingError,
)
from replanner.core.schema import (
    MessageStep,
    ToolStep,
)
from replanner.tools.base import (
    FunctionTool,
    Tool,
)

from scripted import (
    answer,
    use_tools,
)


def _count(x: int) -> int:
    """Count to *x*."""
    return x


def _shout(text: str) -> str:
    """Upper-case *text*."""
    return text.upper()


class Location(BaseModel):
    city: str


class Trip(BaseModel):
    origin: Location
    destination: Location


def _plan_trip(trip: Trip) -> str:
    """Plan a trip."""
    return f"{trip.origin.city} -> {trip.destination.city}"


class _NoSchemaTool(Tool):
    name = "broken"

    def input_json_schema(self) -> Dict[str, Any]:
        return {}

    async def _run(self, params: Any, signal: Any, memory: Any) -> Any:  # pragma: no cover
        return None


class Node(BaseModel):
    value: int
    children: List["Node"] = []


class _TreeTool(Tool):
    name = "tree"
    description = "Sum the values of a tree."
    input_model = Node

    async def _run(self, params: Node, signal: Any, memory: Any) -> int:
        total = params.value
        for child in params.children:
            total += await self._run(child, signal, memory)
        return total


def test_empty_tool_set_only_allows_messages() -> None:
    """Without tools the contract has no 'tool' variant at all."""
    contract = compose_output_schema([])

    assert "ToolStep" not in contract.json_schema["$defs"]
    assert contract.json_schema["properties"]["nextStep"].get("$ref") == "#/$defs/MessageStep"
    assert contract.tool_names == ()

    state = contract.decode(json.dumps(answer("Hallo!")))
    assert isinstance(state.next_step, MessageStep)
    assert state.next_step.message == "Hallo!"

    with pytest.raises(DecodingError):
        contract.decode(json.dumps(use_tools(("getWeather", {"city": "Berlin"}))))


def test_registered_tool_call_decodes(weather_tool: FunctionTool) -> None:
    contract = compose_output_schema([weather_tool])

    state = contract.decode(json.dumps(use_tools(("getWeather", {"city": "Berlin"}))))

    assert isinstance(state.next_step, ToolStep)
    assert state.next_step.calls[0].name == "getWeather"
    assert state.next_step.calls[0].input == {"city": "Berlin"}
    assert state.plan[0].research is True


def test_unregistered_tool_name_fails_validation(weather_tool: FunctionTool) -> None:
    """An unknown name is rejected by the contract itself, not only at dispatch time."""
    contract = compose_output_schema([weather_tool, FunctionTool(_count, name="count")])

    with pytest.raises(DecodingError) as info:
        contract.decode(json.dumps(use_tools(("doesNotExist", {}))))

    assert "doesNotExist" in info.value.raw_text


def test_call_variants_are_closed_over_tool_names(weather_tool: FunctionTool) -> None:
    contract = compose_output_schema([weather_tool, FunctionTool(_count, name="count")])

    items = contract.json_schema["$defs"]["ToolStep"]["properties"]["calls"]["items"]
    assert items["discriminator"]["propertyName"] == "name"
    assert set(items["discriminator"]["mapping"]) == {"getWeather", "count"}
    assert contract.json_schema["properties"]["nextStep"]["discriminator"]["propertyName"] == "type"


def test_input_placeholder_is_replaced_by_tool_schema(weather_tool: FunctionTool) -> None:
    contract = compose_output_schema([weather_tool])

    defs = contract.json_schema["$defs"]
    assert defs[tool_token(0, "getWeather")] == weather_tool.input_json_schema()
    assert defs[tool_token(0, "getWeather")]["required"] == ["city"]


def test_tools_with_identical_placeholders_keep_their_own_schema() -> None:
    count = FunctionTool(_count, name="count")
    shout = FunctionTool(_shout, name="shout")

    contract = compose_output_schema([count, shout])

    defs = contract.json_schema["$defs"]
    assert defs[tool_token(0, "count")] == count.input_json_schema()
    assert defs[tool_token(1, "shout")] == shout.input_json_schema()
    assert defs[tool_token(0, "count")] != defs[tool_token(1, "shout")]


def test_nested_definitions_are_hoisted() -> None:
    trip = FunctionTool(_plan_trip, name="planTrip")
    token = tool_token(0, "planTrip")

    contract = compose_output_schema([trip])

    defs = contract.json_schema["$defs"]
    assert "$defs" not in defs[token]
    assert defs[token]["properties"]["trip"]["$ref"] == f"#/$defs/{token}_Trip"
    assert defs[f"{token}_Trip"]["properties"]["origin"]["$ref"] == f"#/$defs/{token}_Location"
    assert f"{token}_Location" in defs


def test_composition_is_idempotent(weather_tool: FunctionTool) -> None:
    tools = [weather_tool, FunctionTool(_count, name="count")]

    first = compose_output_schema(tools)
    second = compose_output_schema(tools)

    assert first.json_schema == second.json_schema
    assert first.json_text() == second.json_text()


def test_duplicate_tool_names_are_rejected(weather_tool: FunctionTool) -> None:
    with pytest.raises(ConfigurationError, match="Duplicate tool name 'getWeather'"):
        compose_output_schema([weather_tool, FunctionTool(_count, name="getWeather")])


def test_invalid_input_schema_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="broken"):
        compose_output_schema([_NoSchemaTool()])


def test_malformed_output_is_a_decoding_error() -> None:
    contract = compose_output_schema([])

    with pytest.raises(DecodingError):
        contract.decode("not json at all")
    with pytest.raises(DecodingError):
        contract.decode(json.dumps({"lookback": "missing everything else"}))


@pytest.mark.asyncio
async def test_self_referencing_input_model() -> None:
    """A recursive input model has a root ``$ref``; its definition fills the placeholder slot."""
    tree = _TreeTool()
    token = tool_token(0, "tree")

    contract = compose_output_schema([tree])

    defs = contract.json_schema["$defs"]
    assert defs[token]["type"] == "object"
    assert defs[token]["properties"]["children"]["items"]["$ref"] == f"#/$defs/{token}"
    assert f"{token}_Node" not in defs

    tree_input = {"value": 1, "children": [{"value": 2, "children": [{"value": 3}]}]}
    state = contract.decode(json.dumps(use_tools(("tree", tree_input))))
    call = state.next_step.calls[0]
    assert call.input == tree_input
    assert await tree.run(call.input) == 6
