"""
Tool capability used by the agent.

A tool has a unique ``name``, a human readable ``description`` (shown to the planner) and a
pydantic ``input_model`` describing what it accepts.  :meth:`Tool.run` validates the raw input
against that model before handing it to :meth:`Tool._run`, together with the run's cancellation
signal and a read-only snapshot of its working memory.

:class:`FunctionTool` turns an ordinary (sync or async) Python function into a tool by reading
its signature and type hints.
"""

import asyncio
import inspect
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    Sequence,
    Tuple,
    Type,
    get_type_hints,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    create_model,
)

from replanner.core.schema import Message

logger = logging.getLogger(__name__)


class EmptyInput(BaseModel):
    """Input model for tools without parameters."""

    model_config = ConfigDict(extra="forbid")


class Tool(ABC):
    """Abstract base for everything the agent can call."""

    name: str = ""
    description: str = ""
    input_model: Type[BaseModel] = EmptyInput

    def input_json_schema(self) -> Dict[str, Any]:
        """JSON schema of the accepted input, substituted into the output contract."""
        return self.input_model.model_json_schema()

    async def run(
        self,
        input: Mapping[str, Any] | None = None,
        *,
        signal: asyncio.Event | None = None,
        memory: Sequence[Message] = (),
    ) -> Any:
        """
        Validate *input* and execute the tool.

        Raises
        ------
        pydantic.ValidationError
            If *input* does not match :attr:`input_model`.
        """
        params = self.input_model.model_validate(dict(input or {}))
        logger.debug("Running tool '%s' with %s", self.name, params)
        return await self._run(params, signal, tuple(memory))

    @abstractmethod
    async def _run(
        self, params: Any, signal: asyncio.Event | None, memory: Tuple[Message, ...]
    ) -> Any:
        """Do the actual work with already validated *params*; *memory* must not be modified."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


MEMORY_PARAMETER = "memory"
"""A function parameter with this name receives the working-memory snapshot, not planner input."""


def _model_from_signature(model_name: str, fn: Callable) -> Type[BaseModel]:
    sig = inspect.signature(fn)
    type_hints = get_type_hints(fn)
    fields: Dict[str, Any] = {}
    for param_name, param in sig.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        if param_name == MEMORY_PARAMETER:
            continue
        annotation = type_hints.get(param_name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param_name] = (annotation, default)
    return create_model(model_name, __config__=ConfigDict(extra="forbid"), **fields)


class FunctionTool(Tool):
    """Wrap a plain function as a :class:`Tool`.

    Sync functions run in a worker thread so they do not block the other calls of a batch.  A
    parameter named ``memory`` is left out of the input model and receives the run's working
    memory as a tuple of messages.
    """

    def __init__(
        self, fn: Callable, name: str | None = None, description: str | None = None
    ) -> None:
        self._fn = fn
        self.name = name or fn.__name__
        self.description = description or inspect.getdoc(fn) or ""
        title = "".join(part.capitalize() for part in self.name.replace("-", "_").split("_"))
        self.input_model = _model_from_signature(f"{title}Input", fn)
        self._wants_memory = MEMORY_PARAMETER in inspect.signature(fn).parameters

    async def _run(
        self, params: Any, signal: asyncio.Event | None, memory: Tuple[Message, ...]
    ) -> Any:
        kwargs = dict(params)
        if self._wants_memory:
            kwargs[MEMORY_PARAMETER] = memory
        if inspect.iscoroutinefunction(self._fn):
            return await self._fn(**kwargs)
        return await asyncio.to_thread(self._fn, **kwargs)


def function_tool(
    name: str | None = None, description: str | None = None
) -> Callable[[Callable], FunctionTool]:
    """Decorator form of :class:`FunctionTool`."""

    def wrapper(fn: Callable) -> FunctionTool:
        return FunctionTool(fn, name=name, description=description)

    return wrapper
