from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from retrieval_qa.domain.models import DocumentChunk, SearchHit
from retrieval_qa.domain.similarity import Metric
from retrieval_qa.domain.types import MetadataFilter


@runtime_checkable
class StoreConnection(Protocol):
    """One pooled handle onto a vector store. Used by a single thread at a time."""

    def upsert(self, chunk: DocumentChunk) -> None:
        """Insert or replace the chunk with the same id."""
        ...

    def nearest(
        self,
        vector: Sequence[float],
        k: int,
        metric: Metric,
        where: MetadataFilter | None = None,
    ) -> list[SearchHit]:
        """Up to ``k`` hits with scores in the units defined by ``metric``."""
        ...

    def stored_dimension(self) -> int | None:
        """Dimension declared by the store schema, or None if the store is schemaless."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class VectorStoreBackend(Protocol):
    def connect(self) -> StoreConnection: ...
