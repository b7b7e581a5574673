"""
Schema definitions for planner <-> agent <-> tool messages.

These data models serve as the contract between the planner LLM, the orchestration loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.

Wire names are camelCase (``nextStep``) because that is what the model is asked to emit; Python
code uses the snake_case attribute names.
"""

from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Literal,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for immutable models exchanged with the planner."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Role(str, Enum):
    """Author of a conversation message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(WireModel):
    """A single role-tagged entry in a conversation."""

    role: Role
    text: str


class Step(WireModel):
    """One entry of the assistant's forward-looking plan."""

    title: str = Field(
        ..., description="Title of this step, shortly describing what needs to be done."
    )
    decision: str = Field(..., description="Assistant's decision of how to tackle this step.")
    research: bool = Field(
        ..., description="Does this step involve looking up factual information through tools?"
    )
    computation: bool = Field(
        ..., description="Does this step involve calculating or computing information through tools?"
    )


class ToolCall(WireModel):
    """A call that the planner wants the agent to execute."""

    name: str = Field(..., description="Registered tool name")
    input: Dict[str, Any] = Field(default_factory=dict, description="Input for the tool")


class MessageStep(WireModel):
    """Terminal decision: answer (or question) sent back to the user."""

    type: Literal["message"] = "message"
    message: str


class ToolStep(WireModel):
    """Non-terminal decision: obtain more information using tools."""

    type: Literal["tool"] = "tool"
    calls: List[ToolCall] = Field(default_factory=list)


NextStep = Annotated[Union[MessageStep, ToolStep], Field(discriminator="type")]


class State(WireModel):
    """Everything the planner emits in one turn."""

    information: Dict[str, str] = Field(default_factory=dict)
    lookback: str = ""
    plan: List[Step] = Field(default_factory=list)
    next_step: NextStep


class ToolResult(WireModel):
    """A tool call paired with the output it produced."""

    call: ToolCall
    output: Any = None
