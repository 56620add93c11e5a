"""Wait for asynchronous updates to reach a terminal status.

Mutating calls return an `AsyncUpdateID` as soon as the service has enqueued
the work. The helpers here poll the update's status endpoint at a constant
interval until the update is ``processed`` or ``failed``, a `Deadline`
passes, or a cancellation event is set.

The loop is strictly sequential: check cancellation, check the deadline,
fetch once, return on a terminal status, otherwise sleep. The sleep is cut
short both by the deadline and by the cancellation event, so neither is
observed more than one fetch late. Fetch errors propagate unchanged.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

import structlog

from sifter.exceptions import DeadlineExceededError, UpdateCancelledError
from sifter.models import AsyncUpdateID, Update

log = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL = 0.05  # seconds

FetchStatus = Callable[[int], Awaitable[Update]]


class Deadline:
    """An absolute point on the monotonic clock."""

    __slots__ = ("at",)

    def __init__(self, at: float) -> None:
        self.at = at

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.at

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining():.3f}s)"


async def wait_for_pending_update(
    fetch_status: FetchStatus,
    update: AsyncUpdateID,
    *,
    interval: float,
    deadline: Optional[Deadline] = None,
    cancel: Optional[asyncio.Event] = None,
    index_uid: str = "",
) -> Update:
    """Poll `fetch_status` until the update reaches a terminal status.

    Parameters
    ----------
    fetch_status:
        Coroutine function fetching one update by id, e.g.
        ``Index.get_update_status``.
    update:
        Handle returned by the mutating call.
    interval:
        Seconds to sleep between fetches; must be > 0.
    deadline:
        Stop with `DeadlineExceededError` once this instant passes.
        ``None`` waits until a terminal status or a fetch error.
    cancel:
        Stop with `UpdateCancelledError` as soon as the event is set, even
        in the middle of a sleep.
    index_uid:
        Only used for log context and error attributes.

    Returns
    -------
    Update
        The terminal update. A ``failed`` update is returned, not raised;
        call `Update.raise_for_failure()` to turn it into an exception.
    """
    if interval <= 0:
        raise ValueError(f"interval must be > 0, got {interval!r}")

    update_id = update.update_id
    wait_log = log.bind(index_uid=index_uid, update_id=update_id)
    last_status: Optional[str] = None
    attempt = 0

    def deadline_exceeded() -> DeadlineExceededError:
        wait_log.warning("Stopped waiting for update: deadline exceeded", attempts=attempt, last_status=last_status)
        return DeadlineExceededError(
            f"deadline exceeded while waiting for update {update_id}",
            index_uid=index_uid,
            update_id=update_id,
            last_status=last_status,
        )

    while True:
        if cancel is not None and cancel.is_set():
            wait_log.warning("Stopped waiting for update: cancelled", attempts=attempt, last_status=last_status)
            raise UpdateCancelledError(
                f"waiting for update {update_id} was cancelled",
                index_uid=index_uid,
                update_id=update_id,
                last_status=last_status,
            )
        if deadline is not None and deadline.expired():
            raise deadline_exceeded()

        attempt += 1
        if deadline is None:
            current = await fetch_status(update_id)
        else:
            # Only the deadline firing maps to DeadlineExceededError; a TimeoutError
            # raised by the fetch itself propagates like any other fetch error.
            try:
                async with asyncio.timeout(deadline.remaining()) as scope:
                    current = await fetch_status(update_id)
            except TimeoutError as e:
                if scope.expired():
                    raise deadline_exceeded() from e
                raise

        last_status = current.status.value
        wait_log.debug("Polled update status", attempt=attempt, status=last_status)
        if current.is_terminal:
            wait_log.info("Update reached terminal status", attempts=attempt, status=last_status)
            return current

        delay = interval if deadline is None else min(interval, deadline.remaining())
        await _sleep(delay, cancel)


async def default_wait_for_pending_update(
    fetch_status: FetchStatus,
    update: AsyncUpdateID,
    *,
    index_uid: str = "",
) -> Update:
    """Wait with `DEFAULT_POLL_INTERVAL` and no deadline."""
    return await wait_for_pending_update(
        fetch_status, update, interval=DEFAULT_POLL_INTERVAL, index_uid=index_uid
    )


async def _sleep(delay: float, cancel: Optional[asyncio.Event]) -> None:
    """Sleep for `delay` seconds, returning early when `cancel` is set."""
    if cancel is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except TimeoutError:
        pass
