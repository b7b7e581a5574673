"""Shared fixtures."""

from typing import Dict

import pytest

from replanner.tools.base import FunctionTool

from scripted import Recorder


def get_weather(city: str) -> Dict[str, int]:
    """Return the current temperature for *city*."""
    return {"temperature": 5}


@pytest.fixture
def weather_tool() -> FunctionTool:
    return FunctionTool(get_weather, name="getWeather")


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
