"""Bounded, thread-safe connection pool with scoped acquisition.

Backed by SQLAlchemy's ``QueuePool`` over the store's ``connect``: connections
are opened lazily up to ``size`` (no overflow) and a caller that finds every
connection in use waits up to ``wait_timeout`` seconds before getting
ResourceExhaustedError. ``acquire()`` is a context manager: the connection is
returned on every exit path, and invalidated (closed) when the body raised,
since its session state is then unknown.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Generic, Protocol, TypeVar

from sqlalchemy import event
from sqlalchemy import exc as sa_exc
from sqlalchemy.pool import QueuePool

from retrieval_qa.application.cancellation import CancelToken
from retrieval_qa.domain.errors import ConfigurationError, ResourceExhaustedError

logger = logging.getLogger(__name__)


class Closeable(Protocol):
    def close(self) -> None: ...


C = TypeVar("C", bound=Closeable)


class ConnectionPool(Generic[C]):
    def __init__(
        self,
        factory: Callable[[], C],
        *,
        size: int,
        wait_timeout: float,
        name: str = "vector-store",
    ) -> None:
        if size < 1:
            raise ConfigurationError(f"pool_size must be >= 1, got {size}")
        if wait_timeout < 0:
            raise ConfigurationError(f"pool_wait_timeout must be >= 0, got {wait_timeout}")
        self._size = size
        self._wait_timeout = wait_timeout
        self._name = name
        self._closed = False
        self._opened = 0
        self._lock = threading.Lock()
        # Store connections carry no transaction state between calls.
        self._pool = QueuePool(
            factory,
            pool_size=size,
            max_overflow=0,
            timeout=wait_timeout,
            reset_on_return=None,
        )
        event.listen(self._pool, "connect", self._on_connect)
        event.listen(self._pool, "close", self._on_close)

    @property
    def size(self) -> int:
        return self._size

    @property
    def opened(self) -> int:
        """Connections currently open (idle + in use)."""
        with self._lock:
            return self._opened

    @property
    def in_use(self) -> int:
        return self._pool.checkedout()

    @contextmanager
    def acquire(self, cancel: CancelToken | None = None) -> Iterator[C]:
        if cancel is not None:
            cancel.raise_if_cancelled()
        proxied = self._checkout()
        healthy = False
        try:
            yield proxied.dbapi_connection
            healthy = True
        finally:
            if healthy and not self._closed:
                proxied.close()
            else:
                proxied.invalidate()

    def _checkout(self) -> Any:
        if self._closed:
            raise ResourceExhaustedError(f"{self._name} pool is closed")
        try:
            return self._pool.connect()
        except sa_exc.TimeoutError as ex:
            raise ResourceExhaustedError(
                f"{self._name} pool exhausted: no connection free within "
                f"{self._wait_timeout:.2f}s ({self._size} in use)"
            ) from ex

    def close(self) -> None:
        """Close idle connections; in-use ones are closed when they are returned."""
        self._closed = True
        self._pool.dispose()
        logger.info("Closed %s pool", self._name)

    def _on_connect(self, dbapi_connection: Any, connection_record: Any) -> None:
        with self._lock:
            self._opened += 1
            opened = self._opened
        logger.debug("Opened %s connection (%d/%d)", self._name, opened, self._size)

    def _on_close(self, dbapi_connection: Any, connection_record: Any) -> None:
        with self._lock:
            self._opened -= 1
