"""Poll the management cluster until a ManifestWork change has propagated.

The patch is applied on the service cluster; the work agent applies it to
the management cluster some time later.  ``wait_until_synced`` re-reads the
HostedCluster on a fixed cadence until the required annotations show up,
the deadline passes, or the run is cancelled.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 15.0
DEFAULT_SYNC_TIMEOUT = 300.0

T = TypeVar("T")


class CancelEvent(Protocol):
    """The subset of ``threading.Event`` the verifier relies on."""

    def is_set(self) -> bool: ...

    def wait(self, timeout: float | None = None) -> bool: ...


class SyncError(Exception):
    """Base class for verification failures."""


class SyncTimeoutError(SyncError):
    """The required state was not observed before the deadline."""


class SyncCancelledError(SyncError):
    """The run was cancelled while waiting."""


def _format_duration(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    if minutes and secs:
        return f"{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m0s"
    return f"{seconds:g}s"


def wait_until_synced(
    fetch: Callable[[], T],
    is_satisfied: Callable[[T], bool],
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    timeout: float = DEFAULT_SYNC_TIMEOUT,
    cancel_event: CancelEvent | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Block until ``is_satisfied(fetch())`` holds and return that value.

    Ticks fire every ``poll_interval`` seconds measured from the start,
    regardless of how long each fetch takes; each tick fetches once.
    A failed fetch is logged and treated as "not yet".  The deadline is
    checked after each failed or unsatisfied fetch, so a tick that starts
    before the deadline is always evaluated.

    Raises:
        SyncCancelledError: *cancel_event* was set.  Wins over a timeout
            detected on the same tick.
        SyncTimeoutError: The deadline passed without a satisfied fetch.
    """
    cancel = cancel_event if cancel_event is not None else threading.Event()
    start = clock()
    deadline = start + timeout
    next_tick = start
    attempt = 0

    while True:
        # Fixed-rate ticks; a fetch slower than one interval drops the missed ticks.
        now = clock()
        next_tick += poll_interval
        if next_tick < now:
            next_tick = now
        if cancel.wait(next_tick - now):
            raise SyncCancelledError("context cancelled")
        attempt += 1

        try:
            value = fetch()
        except Exception as exc:
            logger.warning("Attempt %d: fetch failed: %s", attempt, exc)
            _check_deadline(
                clock, deadline, cancel,
                f"timeout waiting for sync after {_format_duration(timeout)}",
            )
            continue

        if is_satisfied(value):
            logger.info("Attempt %d: required state observed", attempt)
            return value

        logger.info("Attempt %d: not yet synced", attempt)
        _check_deadline(
            clock, deadline, cancel,
            f"timeout: annotations did not sync after {_format_duration(timeout)}",
        )


def _check_deadline(
    clock: Callable[[], float],
    deadline: float,
    cancel: CancelEvent,
    message: str,
) -> None:
    if clock() < deadline:
        return
    if cancel.is_set():
        raise SyncCancelledError("context cancelled")
    raise SyncTimeoutError(message)
