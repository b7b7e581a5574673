"""
Per-run observability channel.

Every run gets its own :class:`EventChannel`; observers subscribe to it and are told about each
decoded state (``update``), each tool invocation (``tool``) and the final answer (``final``).
Observers never influence the run: an observer that raises is logged and skipped.
"""

import inspect
import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Literal,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
)

from replanner.core.schema import (
    Message,
    State,
    ToolCall,
)

logger = logging.getLogger(__name__)

EventName = Literal["update", "tool", "final"]
WILDCARD = "*"


class UpdateEvent(BaseModel):
    """A turn has been decoded."""

    model_config = ConfigDict(frozen=True)

    state: State


class _ToolEventBase(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    tool: str
    call: ToolCall
    calls: List[ToolCall]

    @property
    def input(self) -> Dict[str, Any]:
        """Input the tool was (or is about to be) called with."""
        return self.call.input


class ToolStartEvent(_ToolEventBase):
    """A tool is about to be invoked."""

    type: Literal["start"] = "start"


class ToolSuccessEvent(_ToolEventBase):
    """A tool returned *output*."""

    type: Literal["success"] = "success"
    output: Any = None


class ToolErrorEvent(_ToolEventBase):
    """A tool raised *error*."""

    type: Literal["error"] = "error"
    error: BaseException


class FinalEvent(BaseModel):
    """The run produced its answer."""

    model_config = ConfigDict(frozen=True)

    message: Message


ToolEvent = Union[ToolStartEvent, ToolSuccessEvent, ToolErrorEvent]
Event = Union[UpdateEvent, ToolEvent, FinalEvent]
Observer = Callable[[Any], Union[None, Awaitable[None]]]


class EventChannel:
    """Ordered list of observers for a single run."""

    def __init__(self) -> None:
        self._observers: Dict[str, List[Observer]] = {}

    def on(self, event: str, callback: Observer) -> Callable[[], None]:
        """
        Subscribe *callback* to *event* (``"update"``, ``"tool"``, ``"final"`` or ``"*"``).

        Wildcard observers are called as ``callback(event_name, payload)``; all others as
        ``callback(payload)``.  Returns a function that removes the subscription.
        """
        if event not in ("update", "tool", "final", WILDCARD):
            raise ValueError(f"Unknown event '{event}'")
        self._observers.setdefault(event, []).append(callback)

        def unsubscribe() -> None:
            observers = self._observers.get(event, [])
            if callback in observers:
                observers.remove(callback)

        return unsubscribe

    async def emit(self, event: EventName, payload: Event) -> None:
        """Deliver *payload* to the observers of *event*, then to wildcard observers."""
        for callback in list(self._observers.get(event, [])):
            await self._deliver(event, callback, (payload,))
        for callback in list(self._observers.get(WILDCARD, [])):
            await self._deliver(event, callback, (event, payload))

    @staticmethod
    async def _deliver(event: str, callback: Observer, args: tuple) -> None:
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:  # pylint: disable=broad-except
            logger.exception("Observer %r failed while handling '%s'", callback, event)
