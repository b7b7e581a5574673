"""Tests for the tool base classes, the registry and the built-in tools."""

import datetime as dt

import httpx
import pytest
from pydantic import ValidationError

from replanner.core.errors import ConfigurationError
from replanner.tools import (
    TOOL_REGISTRY,
    load_tools,
    register_tool,
)
from replanner.tools.base import (
    FunctionTool,
    function_tool,
)
from replanner.tools.search import (
    DuckDuckGoSearchTool,
    parse_results,
)
from replanner.tools.weather import (
    LocationNotFoundError,
    OpenMeteoTool,
)


def _add(a: int, b: int = 1) -> int:
    """Add two integers."""
    return a + b


# ---------------------------------------------------------------------------
# FunctionTool
# ---------------------------------------------------------------------------
def test_function_tool_schema_from_signature() -> None:
    tool = FunctionTool(_add, name="add")

    schema = tool.input_json_schema()

    assert tool.description == "Add two integers."
    assert schema["title"] == "AddInput"
    assert schema["required"] == ["a"]
    assert schema["properties"]["a"]["type"] == "integer"
    assert schema["properties"]["b"]["default"] == 1
    assert schema["additionalProperties"] is False


@pytest.mark.asyncio
async def test_function_tool_runs_sync_and_async() -> None:
    @function_tool(name="double")
    async def double(x: int) -> int:
        return x * 2

    assert await FunctionTool(_add).run({"a": 2, "b": 3}) == 5
    assert await double.run({"x": 4}) == 8
    assert double.name == "double"


@pytest.mark.asyncio
async def test_function_tool_validates_input() -> None:
    tool = FunctionTool(_add)

    with pytest.raises(ValidationError):
        await tool.run({"b": 2})
    with pytest.raises(ValidationError):
        await tool.run({"a": 1, "unexpected": True})


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
def test_register_tool_rejects_duplicates() -> None:
    with pytest.raises(ValueError, match="already registered"):
        register_tool("echo")


def test_register_function_tool(monkeypatch) -> None:
    monkeypatch.setattr("replanner.tools.TOOL_REGISTRY", dict(TOOL_REGISTRY))

    @register_tool("shout")
    def shout(text: str) -> str:
        """Upper-case the text."""
        return text.upper()

    (tool,) = load_tools(["shout"])
    assert isinstance(tool, FunctionTool)
    assert tool.name == "shout"
    assert "shout" not in TOOL_REGISTRY


def test_load_builtin_tools() -> None:
    tools = load_tools(["echo", "duckduckgo", "open_meteo"])

    assert [tool.name for tool in tools] == ["echo", "DuckDuckGo", "OpenMeteo"]


def test_load_unknown_tool() -> None:
    with pytest.raises(ConfigurationError, match="'nope' is not registered"):
        load_tools(["nope"])


# ---------------------------------------------------------------------------
# DuckDuckGo
# ---------------------------------------------------------------------------
SEARCH_PAYLOAD = {
    "Heading": "Berlin",
    "AbstractText": "Berlin is the capital of Germany.",
    "AbstractURL": "https://en.wikipedia.org/wiki/Berlin",
    "RelatedTopics": [
        {"Text": "Berlin Wall - A former barrier", "FirstURL": "https://duckduckgo.com/Berlin_Wall"},
        {
            "Name": "Places",
            "Topics": [
                {"Text": "Brandenburg Gate - A monument", "FirstURL": "https://duckduckgo.com/Gate"},
            ],
        },
        {"FirstURL": "https://duckduckgo.com/empty"},
    ],
}


def test_parse_results_flattens_topics() -> None:
    results = parse_results(SEARCH_PAYLOAD, max_results=10)

    assert [r.title for r in results] == ["Berlin", "Berlin Wall", "Brandenburg Gate"]
    assert results[2].url == "https://duckduckgo.com/Gate"
    assert len(parse_results(SEARCH_PAYLOAD, max_results=1)) == 1


@pytest.mark.asyncio
async def test_search_tool_queries_api() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["q"] = request.url.params["q"]
        return httpx.Response(200, json=SEARCH_PAYLOAD)

    tool = DuckDuckGoSearchTool(transport=httpx.MockTransport(handler))

    results = await tool.run({"query": "Berlin", "max_results": 2})

    assert seen["q"] == "Berlin"
    assert [r.title for r in results] == ["Berlin", "Berlin Wall"]


# ---------------------------------------------------------------------------
# Open-Meteo
# ---------------------------------------------------------------------------
GEOCODING_PAYLOAD = {
    "results": [
        {"name": "Berlin", "country": "United States", "country_code": "US",
         "latitude": 44.47, "longitude": -71.18},
        {"name": "Berlin", "country": "Germany", "country_code": "DE",
         "latitude": 52.52, "longitude": 13.41},
    ]
}

FORECAST_PAYLOAD = {
    "current": {"temperature_2m": 5.0},
    "current_units": {"temperature_2m": "°C"},
    "daily": {"time": ["2024-01-01"], "temperature_2m_max": [7.0]},
    "daily_units": {"temperature_2m_max": "°C"},
}


def _open_meteo_transport(seen: dict) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "geocoding-api.open-meteo.com":
            return httpx.Response(200, json=GEOCODING_PAYLOAD)
        seen.update(request.url.params)
        return httpx.Response(200, json=FORECAST_PAYLOAD)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_weather_tool_resolves_country() -> None:
    seen: dict = {}
    tool = OpenMeteoTool(transport=_open_meteo_transport(seen))

    result = await tool.run(
        {"location_name": "Berlin", "country": "de", "start_date": "2024-01-01"}
    )

    assert result["location"]["country"] == "Germany"
    assert result["current"] == {"temperature_2m": 5.0}
    assert seen["latitude"] == "52.52"
    assert seen["start_date"] == seen["end_date"] == dt.date(2024, 1, 1).isoformat()


@pytest.mark.asyncio
async def test_weather_tool_unknown_location() -> None:
    tool = OpenMeteoTool(transport=_open_meteo_transport({}))

    with pytest.raises(LocationNotFoundError):
        await tool.run({"location_name": "Berlin", "country": "France"})
