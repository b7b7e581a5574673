"""
Error taxonomy for agent runs.

Every error that ends a run derives from :class:`AgentError`.  The agent loop attaches the run's
working memory to the error before re-raising it, so callers can inspect how far the run got.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from replanner.memory.memory_store import Memory


class AgentError(RuntimeError):
    """Base class for failures that abort an agent run."""

    working_memory: Memory | None = None


class ConfigurationError(AgentError):
    """Raised when the tool set cannot be turned into an output contract."""


class TransportError(AgentError):
    """Raised when the planner back-end cannot be reached or answers with an error."""


class DecodingError(AgentError):
    """Raised when the planner's output does not satisfy the active contract."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class UnknownToolError(AgentError):
    """Raised when a tool call names a tool that is not registered for the run."""


class ToolExecutionError(AgentError):
    """Raised when a requested tool cannot run or fails."""


class RunCancelledError(AgentError):
    """Raised when the run's cancellation signal fires while work is in flight."""


class TurnLimitExceededError(AgentError):
    """Raised by the turn-limit policy when the agent keeps calling tools."""
