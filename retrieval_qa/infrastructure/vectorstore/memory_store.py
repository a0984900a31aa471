from __future__ import annotations

import threading
from collections.abc import Sequence

from retrieval_qa.domain.models import DocumentChunk, SearchHit, metadata_matches
from retrieval_qa.domain.services.ranking import rank_hits
from retrieval_qa.domain.similarity import Metric, score
from retrieval_qa.domain.types import MetadataFilter


class InMemoryVectorStore:
    """Process-local store with exact (brute-force) nearest-neighbour search.

    All connections share one table guarded by a lock; useful for tests, demos
    and small corpora.
    """

    def __init__(self) -> None:
        self._rows: dict[str, DocumentChunk] = {}
        self._lock = threading.Lock()
        self.connections_opened = 0

    def connect(self) -> InMemoryConnection:
        with self._lock:
            self.connections_opened += 1
        return InMemoryConnection(self)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


class InMemoryConnection:
    def __init__(self, store: InMemoryVectorStore) -> None:
        self._store = store
        self.closed = False

    def upsert(self, chunk: DocumentChunk) -> None:
        with self._store._lock:
            self._store._rows[chunk.id] = chunk

    def nearest(
        self,
        vector: Sequence[float],
        k: int,
        metric: Metric,
        where: MetadataFilter | None = None,
    ) -> list[SearchHit]:
        with self._store._lock:
            rows = list(self._store._rows.values())
        hits = [
            SearchHit(chunk=row, score=score(metric, vector, row.embedding))
            for row in rows
            if metadata_matches(row.metadata, where)
        ]
        return rank_hits(hits, metric)[:k]

    def stored_dimension(self) -> int | None:
        return None

    def close(self) -> None:
        self.closed = True
