"""Vector index over a pooled store backend.

Why: Single place that enforces the index invariants (fixed dimension, k > 0,
     best-first ordering with id tie-break) regardless of which store holds the data.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import Executor

from retrieval_qa.application.cancellation import CancelToken, run_interruptible
from retrieval_qa.application.ports.vector_index_port import VectorIndexPort
from retrieval_qa.domain.errors import DimensionMismatchError, InvalidArgumentError
from retrieval_qa.domain.models import DocumentChunk, SearchHit
from retrieval_qa.domain.services.ranking import rank_hits
from retrieval_qa.domain.similarity import Metric
from retrieval_qa.domain.types import MetadataFilter
from retrieval_qa.infrastructure.vectorstore.connection_pool import ConnectionPool
from retrieval_qa.infrastructure.vectorstore.store_backend import (
    StoreConnection,
    VectorStoreBackend,
)

logger = logging.getLogger(__name__)


class PooledVectorIndex(VectorIndexPort):
    """VectorIndexPort implementation holding one pooled connection per call.

    Validation happens before any pool or store access. With an executor and a
    cancel token, the pool wait and the store call run on a worker thread so the
    caller can abandon them; the worker still returns its connection when done.
    """

    def __init__(
        self,
        store: VectorStoreBackend,
        *,
        dimension: int,
        metric: Metric = Metric.COSINE,
        pool_size: int = 8,
        wait_timeout: float = 5.0,
        executor: Executor | None = None,
    ) -> None:
        if dimension <= 0:
            raise InvalidArgumentError(f"dimension must be > 0, got {dimension}")
        self._store = store
        self._dimension = dimension
        self._metric = metric
        self._executor = executor
        self._pool: ConnectionPool[StoreConnection] = ConnectionPool(
            store.connect, size=pool_size, wait_timeout=wait_timeout, name=type(store).__name__
        )

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def metric(self) -> Metric:
        return self._metric

    @property
    def pool(self) -> ConnectionPool[StoreConnection]:
        return self._pool

    def insert(self, chunk: DocumentChunk, cancel: CancelToken | None = None) -> None:
        self._check_dimension(chunk.embedding, "insert")

        def _do() -> None:
            with self._pool.acquire(cancel) as conn:
                conn.upsert(chunk)

        run_interruptible(_do, cancel, self._executor)
        logger.debug("Upserted chunk %s", chunk.id)

    def search(
        self,
        vector: Sequence[float],
        k: int,
        where: MetadataFilter | None = None,
        cancel: CancelToken | None = None,
    ) -> list[SearchHit]:
        if k <= 0:
            raise InvalidArgumentError(f"k must be > 0, got {k}")
        self._check_dimension(vector, "search")
        query = tuple(float(x) for x in vector)

        def _do() -> list[SearchHit]:
            with self._pool.acquire(cancel) as conn:
                return conn.nearest(query, k, self._metric, where)

        hits = rank_hits(run_interruptible(_do, cancel, self._executor), self._metric)[:k]
        logger.debug("Search k=%d returned %d hit(s)", k, len(hits))
        return hits

    def verify_schema(self) -> None:
        """Fail fast when the store was created for a different dimension."""
        with self._pool.acquire() as conn:
            stored = conn.stored_dimension()
        if stored is not None and stored != self._dimension:
            raise DimensionMismatchError(self._dimension, stored, operation="schema check")

    def close(self) -> None:
        self._pool.close()

    def _check_dimension(self, vector: Sequence[float], operation: str) -> None:
        if len(vector) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(vector), operation=operation)
