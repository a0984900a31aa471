"""Caller-supplied cancellation and deadlines for blocking external calls.

A CancelToken fires either when ``cancel()`` is called or when its monotonic
deadline passes. ``run_interruptible`` executes a blocking call on a shared
executor and returns control to the caller as soon as the token fires; the
abandoned worker finishes on its own and releases whatever it holds.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Executor, wait
from typing import TypeVar

from retrieval_qa.domain.errors import CancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

POLL_INTERVAL_S = 0.05


class CancelToken:
    """Thread-safe cancellation signal with an optional deadline."""

    def __init__(
        self,
        deadline: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._deadline = deadline
        self._clock = clock
        self._event = threading.Event()
        self._reason = "cancelled by caller"

    @classmethod
    def with_timeout(
        cls, seconds: float, *, clock: Callable[[], float] = time.monotonic
    ) -> CancelToken:
        return cls(deadline=clock() + seconds, clock=clock)

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    @property
    def reason(self) -> str:
        if not self._event.is_set() and self.cancelled:
            return "deadline exceeded"
        return self._reason

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def poll_timeout(self) -> float:
        remaining = self.remaining()
        if remaining is None:
            return POLL_INTERVAL_S
        return min(POLL_INTERVAL_S, remaining)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancelledError(self.reason)

    def sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds``; wakes early and raises once the token fires."""
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        self._event.wait(max(0.0, timeout))
        self.raise_if_cancelled()


def run_interruptible(
    fn: Callable[[], T],
    cancel: CancelToken | None,
    executor: Executor | None,
) -> T:
    """Run ``fn`` so that a fired ``cancel`` token aborts the wait promptly.

    Without a token the call runs inline. Without an executor the token is only
    checked before the call starts.
    """
    if cancel is None:
        return fn()
    cancel.raise_if_cancelled()
    if executor is None:
        return fn()

    future = executor.submit(fn)
    while True:
        done, _ = wait([future], timeout=cancel.poll_timeout())
        if done:
            return future.result()
        if cancel.cancelled:
            if not future.cancel():
                logger.debug("Abandoning in-flight call after cancellation: %s", cancel.reason)
            raise CancelledError(cancel.reason)
