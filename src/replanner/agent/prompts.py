"""Prompt text for the planner: the system prompt and the tool-result message."""

import json
from typing import (
    Any,
    Sequence,
)

from pydantic import BaseModel

from replanner.core.schema import ToolResult
from replanner.tools.base import Tool

SYSTEM_PROMPT = """\
# Role
You are a knowledgeable and friendly AI assistant named {name}.

# Instructions
Your role is to help users by answering their questions, providing information, and offering \
guidance to the best of your abilities. When responding, use a warm and professional tone, and \
break down complex topics into easy-to-understand explanations.
If you are unsure about an answer, it's okay to say you don't know rather than guessing.
You must understand all languages but you must answer always in proper {language} language.
If there are terms which are technical topics in english and they are common known in english \
don't translate the keywords.
The AI assistant is forbidden from using factual information that was not provided by the user \
or tools in this very conversation. All information about places, people, events, etc. is \
unknown to the assistant, and the assistant must use tools to obtain it.

# Available functions
{functions}

Respond with a single JSON object and nothing else.

Output Schema: {schema}"""

_FUNCTION_BLOCK = """\
Function Name: {name}
Description: {description}
Parameters: {parameters}
"""


def render_functions(tools: Sequence[Tool]) -> str:
    """List *tools* the way the system prompt presents them."""
    if not tools:
        return "No functions are available.\n"
    blocks = [
        _FUNCTION_BLOCK.format(
            name=tool.name,
            description=tool.description,
            parameters=json.dumps(tool.input_json_schema(), ensure_ascii=False),
        )
        for tool in tools
    ]
    return "You can only use the following functions. Always use all required parameters.\n\n" + (
        "\n".join(blocks)
    )


def render_system_prompt(
    tools: Sequence[Tool], schema_json: str, name: str = "Thomas", language: str = "German"
) -> str:
    """Build the system prompt for one run."""
    return SYSTEM_PROMPT.format(
        name=name, language=language, functions=render_functions(tools), schema=schema_json
    )


def to_jsonable(value: Any) -> Any:
    """Convert pydantic models (also nested in lists and dicts) to JSON-ready data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    return value


def render_tool_results(results: Sequence[ToolResult]) -> str:
    """Serialize a finished batch as the text of the synthetic assistant message."""
    payload = [
        {"call": result.call.model_dump(by_alias=True), "output": to_jsonable(result.output)}
        for result in results
    ]
    return json.dumps(payload, ensure_ascii=False, default=str)
