"""
Async helpers for abortable operations.
"""
import asyncio
from typing import Awaitable, Optional, TypeVar

from ..api.exceptions import ProcessingAbortedError

T = TypeVar("T")


def check_abort(abort_signal: Optional[asyncio.Event], message: str = "Processing aborted") -> None:
    """Raise ProcessingAbortedError if the signal is already set."""
    if abort_signal is not None and abort_signal.is_set():
        raise ProcessingAbortedError(message)


async def run_abortable(
    awaitable: Awaitable[T],
    abort_signal: Optional[asyncio.Event],
    message: str = "Processing aborted"
) -> T:
    """
    Await an operation unless the abort signal fires first.

    When the signal wins, the in-flight operation is cancelled and a
    ProcessingAbortedError is raised. A result that is already available
    takes precedence over a simultaneous abort.

    Args:
        awaitable: Operation to run
        abort_signal: Event that requests cancellation (None disables it)
        message: Message of the raised error

    Returns:
        Result of the operation
    """
    if abort_signal is None:
        return await awaitable

    if abort_signal.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise ProcessingAbortedError(message)

    operation = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(abort_signal.wait())
    try:
        done, _ = await asyncio.wait({operation, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        operation.cancel()
        waiter.cancel()
        raise

    if operation in done:
        waiter.cancel()
        return operation.result()

    operation.cancel()
    await asyncio.gather(operation, return_exceptions=True)
    raise ProcessingAbortedError(message)
