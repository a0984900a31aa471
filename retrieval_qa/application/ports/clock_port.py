from __future__ import annotations

from abc import ABC, abstractmethod


class ClockPort(ABC):
    """Port for time-related operations.

    Retry back-off sleeps go through this port so tests can run without real
    sleeps. Deadlines live on CancelToken, which takes its own time source.
    """

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Block for ``seconds``."""
        ...
