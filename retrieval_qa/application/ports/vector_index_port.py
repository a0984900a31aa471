from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from retrieval_qa.domain.models import DocumentChunk, SearchHit
from retrieval_qa.domain.similarity import Metric
from retrieval_qa.domain.types import MetadataFilter

if TYPE_CHECKING:
    from retrieval_qa.application.cancellation import CancelToken

__all__ = ["SearchHit", "VectorIndexPort"]


@runtime_checkable
class VectorIndexPort(Protocol):
    @property
    def dimension(self) -> int: ...

    @property
    def metric(self) -> Metric: ...

    def insert(self, chunk: DocumentChunk, cancel: CancelToken | None = None) -> None: ...

    def search(
        self,
        vector: Sequence[float],
        k: int,
        where: MetadataFilter | None = None,
        cancel: CancelToken | None = None,
    ) -> list[SearchHit]: ...

    def close(self) -> None: ...
