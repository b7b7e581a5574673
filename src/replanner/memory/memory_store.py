"""
Ordered, append-only conversation memory.

The same class serves two purposes:

* **persistent memory** owned by the caller (e.g. one per API session).  It only ever receives
  the user's prompt and the agent's final answer.
* **working memory** created privately for one agent run.  It is seeded with a copy of the
  persistent memory and grows with every turn and every tool-result batch.
"""

from __future__ import annotations

import logging
from typing import (
    Iterable,
    Iterator,
    List,
    Tuple,
)

from replanner.core.schema import (
    Message,
    Role,
)

logger = logging.getLogger(__name__)


class Memory:
    """Unbounded list of :class:`Message` objects in insertion order."""

    def __init__(self, messages: Iterable[Message] | None = None) -> None:
        self._messages: List[Message] = list(messages or [])

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def add(self, message: Message) -> None:
        """Append a single message."""
        logger.debug("Memory %s += %s (%d chars)", id(self), message.role.value, len(message.text))
        self._messages.append(message)

    def add_many(self, messages: Iterable[Message]) -> None:
        """Append *messages* in order."""
        for message in messages:
            self.add(message)

    def add_text(self, role: Role, text: str) -> Message:
        """Build a message from *role* and *text*, append it and return it."""
        message = Message(role=role, text=text)
        self.add(message)
        return message

    def fork(self) -> "Memory":
        """Return an independent copy holding the same messages."""
        return Memory(self._messages)

    @property
    def messages(self) -> Tuple[Message, ...]:
        """Read-only snapshot of the stored messages."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def __repr__(self) -> str:
        return f"Memory({len(self._messages)} messages)"
