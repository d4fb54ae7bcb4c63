"""Cooperative cancellation for in-flight requests.

:class:`CancellationToken` lets a caller abort a ``send`` from the outside
without holding on to the task running it. Every suspension point of the
dispatcher (transmission, backoff wait, refresh wait) races against the
token, so a cancelled request stops promptly and surfaces
:class:`~netify.models.errors.RequestCancelledError` rather than a transport
failure.

Plain ``asyncio`` task cancellation keeps working as usual; the token is an
addition, not a replacement.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from .models.errors import RequestCancelledError

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal shared between a caller and a request.

    Examples:
        >>> token = CancellationToken()
        >>> task = asyncio.create_task(client.send(request, cancellation=token))
        >>> token.cancel()
        >>> await task  # raises RequestCancelledError
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        """Signal cancellation; later calls are no-ops."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError(self._reason or "Request cancelled")


async def run_cancellable(
    awaitable: Awaitable[T], token: Optional[CancellationToken]
) -> T:
    """Await ``awaitable`` unless ``token`` fires first.

    When the token wins, the pending operation is cancelled and awaited so no
    work is left running in the background, then
    :class:`RequestCancelledError` is raised.
    """
    if token is None:
        return await awaitable

    if token.is_cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancelled()

    operation = asyncio.ensure_future(awaitable)
    cancelled = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait(
            {operation, cancelled}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        operation.cancel()
        raise
    finally:
        cancelled.cancel()

    if operation.done():
        return operation.result()

    operation.cancel()
    await asyncio.wait({operation})
    if not operation.cancelled():
        # finished while being torn down; cancellation still wins
        operation.exception()
    raise RequestCancelledError(token.reason or "Request cancelled")


async def cancellable_sleep(
    delay: float, token: Optional[CancellationToken]
) -> None:
    """``asyncio.sleep`` that also wakes up, and raises, on cancellation."""
    await run_cancellable(asyncio.sleep(delay), token)
