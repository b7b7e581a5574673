"""
Tool registry for Replanner.

This module provides a decorator to register tools under a name and a factory that instantiates a
tool set from a list of names (e.g. the ``TOOLS`` setting).  Registered entries are either
:class:`~replanner.tools.base.Tool` subclasses or plain functions, which are wrapped in a
:class:`~replanner.tools.base.FunctionTool`.
"""

import inspect
import logging
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
)

from replanner.core.errors import ConfigurationError
from replanner.tools.base import (
    FunctionTool,
    Tool,
    function_tool,
)

logger = logging.getLogger(__name__)

TOOL_REGISTRY: Dict[str, Callable[[], Tool]] = {}
"""Global registry of tool factories."""


def register_tool(name: str) -> Callable:
    """
    Register a tool class or function with the given name.

    The name must be unique; it is what the ``TOOLS`` setting refers to.  Use it as a decorator:

        @register_tool("my_tool")
        def my_tool_function(arg1: str, arg2: int) -> str:
            ...

    Parameters
    ----------
    name: str
        The name of the tool.
    Returns
    -------
    Callable
        A decorator that registers the class or function and returns it unchanged.
    Raises
    ------
    ValueError
        If a tool with the same name is already registered.
    """
    if name in TOOL_REGISTRY:
        raise ValueError(f"Tool '{name}' is already registered.")
    logger.debug("Registering tool '%s'", name)

    def wrapper(obj: Callable) -> Callable:
        if inspect.isclass(obj) and issubclass(obj, Tool):
            TOOL_REGISTRY[name] = obj
        else:
            TOOL_REGISTRY[name] = lambda: FunctionTool(obj, name=name)
        return obj

    return wrapper


def load_tools(names: Iterable[str]) -> List[Tool]:
    """Instantiate the registered tools called *names*, in order."""
    tools: List[Tool] = []
    for name in names:
        factory = TOOL_REGISTRY.get(name)
        if factory is None:
            raise ConfigurationError(
                f"Tool '{name}' is not registered. Known tools: {sorted(TOOL_REGISTRY)}"
            )
        tools.append(factory())
    return tools


@register_tool("echo")
def echo_tool(text: str) -> str:
    """Echo the input text back to the caller."""
    return text


# Built-in tools register themselves on import.
from replanner.tools import (  # noqa: E402  pylint: disable=wrong-import-position
    search,
    weather,
)

__all__ = [
    "TOOL_REGISTRY",
    "FunctionTool",
    "Tool",
    "function_tool",
    "load_tools",
    "register_tool",
    "search",
    "weather",
]
