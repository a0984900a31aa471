"""Bounded exponential-backoff retry shared by the Embedder and the Generator."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import TypeVar

from retrieval_qa.application.cancellation import CancelToken, run_interruptible
from retrieval_qa.application.ports.clock_port import ClockPort
from retrieval_qa.domain.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry transient provider failures.

    - max_retries:   retries after the first attempt (attempts = max_retries + 1)
    - backoff_base:  delay before the first retry, doubled for every further retry
    - backoff_max:   upper bound for a single delay
    - jitter:        uniform random seconds added to every delay
    """

    max_retries: int = 2
    backoff_base: float = 0.5
    backoff_max: float = 8.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.backoff_base < 0 or self.backoff_max < 0 or self.jitter < 0:
            raise ConfigurationError("retry delays must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry: int) -> float:
        """Delay before retry number ``retry`` (1-based)."""
        delay = self._backoff(retry)
        return delay + (random.uniform(0, self.jitter) if self.jitter else 0.0)

    def worst_case_s(self, attempt_timeout: float) -> float:
        """Upper bound for ``call`` when every attempt runs into ``attempt_timeout``."""
        backoff = sum(self._backoff(retry) + self.jitter for retry in range(1, self.max_attempts))
        return self.max_attempts * attempt_timeout + backoff

    def _backoff(self, retry: int) -> float:
        return min(self.backoff_base * (2 ** (retry - 1)), self.backoff_max)

    def call(
        self,
        fn: Callable[[], T],
        *,
        operation: str,
        clock: ClockPort,
        cancel: CancelToken | None = None,
        executor: Executor | None = None,
    ) -> T:
        """Run ``fn`` until it succeeds, fails permanently, or attempts run out.

        Only ``ProviderError(transient=True)`` is retried. Exhaustion raises a
        ProviderError carrying the attempt count; any other error propagates
        unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return run_interruptible(fn, cancel, executor)
            except ProviderError as ex:
                if not ex.transient:
                    raise
                if attempt == self.max_attempts:
                    raise ProviderError(
                        f"{operation} failed after {attempt} attempt(s): {ex.message}",
                        provider=ex.provider,
                        transient=True,
                        attempts=attempt,
                    ) from ex
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d): %s. Retrying in %.2fs",
                    operation,
                    attempt,
                    self.max_attempts,
                    ex.message,
                    delay,
                )
                if cancel is not None:
                    cancel.sleep(delay)
                else:
                    clock.sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover
