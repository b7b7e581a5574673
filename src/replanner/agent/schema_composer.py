"""
Builds the structured-output contract the planner must satisfy for one run.

The contract has two faces:

* ``definition``: a pydantic model created on the fly with :func:`pydantic.create_model`.  It is
  what planner output is validated against.  ``nextStep`` is a discriminated union over
  ``message`` and, only if tools are registered, ``tool``.  Each entry of ``tool.calls`` is itself
  a union of one model per tool whose ``name`` is a ``Literal`` of that tool's name, so a call to
  an unregistered tool cannot validate.
* ``json_schema``: the JSON schema shown to (or enforced on) the model.  While building
  ``definition`` every tool gets a generic, permissive placeholder model for its ``input`` field,
  named after a per-tool token.  After generating the JSON schema the placeholder definition
  stored under that token is swapped for the tool's real input schema.  Substitution is keyed on
  the token alone, so tools whose placeholders are structurally identical never collide.
"""

import copy
import json
import logging
import re
from dataclasses import dataclass
from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Literal,
    Sequence,
    Tuple,
    Type,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    create_model,
)

from replanner.core.errors import (
    ConfigurationError,
    DecodingError,
)
from replanner.core.schema import (
    State,
    Step,
    WireModel,
)
from replanner.tools.base import Tool

logger = logging.getLogger(__name__)

_DEFS_REF = "#/$defs/"

INFORMATION_DESCRIPTION = (
    "Summary of the factual information that was collected so far. Eg. 'height of the Eiffel "
    "tower': '300m'. Only information that was provided by tools or the user in this very "
    "conversation is allowed to be included here. Other information must not be included."
)
LOOKBACK_DESCRIPTION = (
    "A full summary of what has happened so far, focusing on what the assistant tried, what went "
    "well and what failed. This repeats in every message, but always concerns the full history "
    "up to that point."
)
PLAN_DESCRIPTION = (
    "Detailed step-by-step plan of what steps will the assistant take from start to finish to "
    "fulfill the user's request. Includes concrete facts and numbers wherever possible. This "
    "repeats in every message, but always contains all the future steps from this point on."
)
MESSAGE_DESCRIPTION = (
    "Message with the response, that is sent back to the user. Always include a bit of info on "
    "how you arrived at the answer. Be friendly and helpful."
)


@dataclass(frozen=True)
class OutputContract:
    """The composed contract for one tool set."""

    definition: Type[BaseModel]
    json_schema: Dict[str, Any]
    tools: Tuple[Tool, ...]

    @property
    def tool_names(self) -> Tuple[str, ...]:
        """Names of the registered tools, in registration order."""
        return tuple(tool.name for tool in self.tools)

    def json_text(self, indent: int | None = None) -> str:
        """Serialized JSON schema, e.g. for embedding in a prompt."""
        return json.dumps(self.json_schema, indent=indent, ensure_ascii=False)

    def decode(self, raw_text: str) -> State:
        """
        Validate *raw_text* against :attr:`definition` and return it as a :class:`State`.

        Raises
        ------
        DecodingError
            If *raw_text* is not JSON or does not satisfy the contract.
        """
        try:
            parsed = self.definition.model_validate_json(raw_text)
        except ValidationError as exc:
            raise DecodingError(
                f"Planner output does not match the output schema: {exc}", raw_text
            ) from exc
        return State.model_validate(parsed.model_dump(by_alias=True))


def tool_token(index: int, name: str) -> str:
    """Stable identifier of the *index*-th tool, used to key schema substitution."""
    return f"ToolInput{index}_{re.sub(r'[^0-9A-Za-z_]', '_', name)}"


def _tagged_union(variants: List[Type[BaseModel]], tag: str) -> Any:
    if len(variants) == 1:
        # the Literal tag of a lone variant already closes the set
        return variants[0]
    return Annotated[Union[tuple(variants)], Field(discriminator=tag)]


def _root_name(schema: Dict[str, Any]) -> str | None:
    """Name of the local definition a schema's root refers to (self-referencing models)."""
    ref = schema.get("$ref")
    if isinstance(ref, str) and ref.startswith(_DEFS_REF):
        name = ref[len(_DEFS_REF) :]
        if name in (schema.get("$defs") or {}):
            return name
    return None


def _input_schemas(tools: Sequence[Tool]) -> List[Dict[str, Any]]:
    """Check the tool set and return each tool's input schema, in order."""
    seen: Dict[str, int] = {}
    schemas: List[Dict[str, Any]] = []
    for index, tool in enumerate(tools):
        if not isinstance(tool.name, str) or not tool.name.strip():
            raise ConfigurationError(f"Tool at position {index} has an empty name.")
        if tool.name in seen:
            raise ConfigurationError(
                f"Duplicate tool name '{tool.name}' at positions {seen[tool.name]} and {index}."
            )
        seen[tool.name] = index

        schema = tool.input_json_schema()
        root = _root_name(schema) if isinstance(schema, dict) else None
        body = schema["$defs"][root] if root is not None else schema
        if not isinstance(body, dict) or body.get("type") != "object":
            raise ConfigurationError(
                f"Tool '{tool.name}' must describe its input as a JSON object schema."
            )
        schemas.append(schema)
    return schemas


def _rewrite_refs(node: Any, renames: Dict[str, str]) -> None:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith(_DEFS_REF):
            target = ref[len(_DEFS_REF) :]
            if target in renames:
                node["$ref"] = _DEFS_REF + renames[target]
        for value in node.values():
            _rewrite_refs(value, renames)
    elif isinstance(node, list):
        for item in node:
            _rewrite_refs(item, renames)


def _find_placeholder(defs: Dict[str, Any], token: str) -> str:
    if token in defs:
        return token
    for key, value in defs.items():
        if isinstance(value, dict) and value.get("title") == token:
            return key
    raise ConfigurationError(f"Placeholder '{token}' missing from generated schema.")


def _substitute(schema: Dict[str, Any], substitutions: Dict[str, Dict[str, Any]]) -> None:
    """Replace each placeholder definition with the tool's own input schema, in place."""
    defs = schema.setdefault("$defs", {})
    for token, tool_schema in substitutions.items():
        key = _find_placeholder(defs, token)
        replacement = copy.deepcopy(tool_schema)
        nested = replacement.pop("$defs", {})
        renames = {name: f"{token}_{name}" for name in nested}
        root = _root_name(tool_schema)
        if root is not None:
            # the root definition takes the placeholder's slot
            renames[root] = key
            replacement = nested.pop(root)
        _rewrite_refs(replacement, renames)
        for name, sub_schema in nested.items():
            _rewrite_refs(sub_schema, renames)
            defs[renames[name]] = sub_schema
        defs[key] = replacement


def compose_output_schema(tools: Sequence[Tool]) -> OutputContract:
    """
    Build the output contract for *tools*.

    Parameters
    ----------
    tools:
        The tool set of the run.  May be empty, in which case only ``message`` decisions are
        representable.

    Returns
    -------
    OutputContract
        Composing twice for the same tools yields equal ``json_schema`` values.

    Raises
    ------
    ConfigurationError
        On empty or duplicate tool names, or a tool input schema that is not an object schema.
    """
    input_schemas = _input_schemas(tools)

    message_step = create_model(
        "MessageStep",
        __base__=WireModel,
        __doc__="Message the user -- either to give the answer, or to ask for more information.",
        type=(Literal["message"], ...),
        message=(str, Field(..., description=MESSAGE_DESCRIPTION)),
    )
    next_step_variants: List[Type[BaseModel]] = [message_step]

    substitutions: Dict[str, Dict[str, Any]] = {}
    if tools:
        call_variants: List[Type[BaseModel]] = []
        for index, (tool, input_schema) in enumerate(zip(tools, input_schemas)):
            token = tool_token(index, tool.name)
            placeholder = create_model(token, __config__=ConfigDict(extra="allow"))
            substitutions[token] = input_schema
            call_variants.append(
                create_model(
                    token.replace("ToolInput", "ToolCall", 1),
                    __base__=WireModel,
                    __doc__=tool.description or None,
                    name=(Literal[tool.name], ...),  # type: ignore[valid-type]
                    input=(placeholder, ...),
                )
            )
        tool_step = create_model(
            "ToolStep",
            __base__=WireModel,
            __doc__="Obtain more information using tools.",
            type=(Literal["tool"], ...),
            calls=(List[_tagged_union(call_variants, "name")], ...),  # type: ignore[misc]
        )
        next_step_variants.append(tool_step)

    definition = create_model(
        "AgentState",
        __base__=WireModel,
        information=(Dict[str, str], Field(..., description=INFORMATION_DESCRIPTION)),
        lookback=(str, Field(..., description=LOOKBACK_DESCRIPTION)),
        plan=(List[Step], Field(..., description=PLAN_DESCRIPTION)),
        next_step=(_tagged_union(next_step_variants, "type"), ...),
    )

    json_schema = definition.model_json_schema(by_alias=True)
    _substitute(json_schema, substitutions)

    contract = OutputContract(definition=definition, json_schema=json_schema, tools=tuple(tools))
    logger.debug("Composed output schema for tools %s", contract.tool_names)
    return contract
