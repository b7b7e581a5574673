"""Racing suspension points against a run's cancellation signal."""

import asyncio
import logging
from typing import (
    Awaitable,
    TypeVar,
)

from replanner.core.errors import RunCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def new_signal() -> asyncio.Event:
    """Return a fresh, unset cancellation signal."""
    return asyncio.Event()


async def race(awaitable: Awaitable[T], signal: asyncio.Event | None, what: str) -> T:
    """
    Await *awaitable* unless *signal* fires first.

    When the signal wins, the pending work is cancelled and drained before
    :class:`RunCancelledError` is raised, so nothing keeps running in the background.

    Parameters
    ----------
    awaitable:
        The coroutine or future to wait for.
    signal:
        Cancellation signal of the run.  ``None`` disables racing.
    what:
        Short label for log and error messages (e.g. ``"model call"``).
    """
    if signal is None:
        return await awaitable

    if signal.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RunCancelledError(f"Run cancelled before {what} started.")

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        waiter.cancel()
        raise

    if work in done:
        waiter.cancel()
        return work.result()

    work.cancel()
    await asyncio.gather(work, return_exceptions=True)
    logger.info("Cancellation signal fired during %s", what)
    raise RunCancelledError(f"Run cancelled during {what}.")
