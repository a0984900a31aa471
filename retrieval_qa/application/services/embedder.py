"""Embedder: retrying, cancellable, dimension-checked access to an embedding provider."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import Executor

from retrieval_qa.application.cancellation import CancelToken
from retrieval_qa.application.ports.clock_port import ClockPort
from retrieval_qa.application.ports.embedding_port import EmbeddingPort
from retrieval_qa.application.services.retry import RetryPolicy
from retrieval_qa.domain.errors import ProviderError
from retrieval_qa.domain.types import Vector

logger = logging.getLogger(__name__)


class Embedder:
    """Wraps an EmbeddingPort with the bounded retry policy and output validation.

    Every call consumes provider quota; callers embed the query text once per query.
    """

    def __init__(
        self,
        port: EmbeddingPort,
        policy: RetryPolicy,
        *,
        clock: ClockPort,
        executor: Executor | None = None,
    ) -> None:
        self.port = port
        self.policy = policy
        self.clock = clock
        self.executor = executor

    @property
    def dimension(self) -> int:
        return self.port.dimension

    def embed(self, text: str, cancel: CancelToken | None = None) -> Vector:
        return self.embed_batch([text], cancel=cancel)[0]

    def embed_batch(self, texts: Sequence[str], cancel: CancelToken | None = None) -> list[Vector]:
        """Embed ``texts`` preserving order: exactly one vector per input."""
        batch = list(texts)
        if not batch:
            return []
        raw = self.policy.call(
            lambda: self.port.embed_texts(batch),
            operation="embedding",
            clock=self.clock,
            cancel=cancel,
            executor=self.executor,
        )
        return self._validate(raw, expected_count=len(batch))

    def _validate(self, raw: Sequence[Sequence[float]], expected_count: int) -> list[Vector]:
        if len(raw) != expected_count:
            raise ProviderError(
                f"embedding provider returned {len(raw)} vectors for {expected_count} inputs",
                provider=type(self.port).__name__,
            )
        vectors: list[Vector] = []
        for vec in raw:
            if len(vec) != self.dimension:
                raise ProviderError(
                    f"embedding provider returned a {len(vec)}-dimensional vector, "
                    f"expected {self.dimension}",
                    provider=type(self.port).__name__,
                )
            vectors.append(tuple(float(x) for x in vec))
        logger.debug("Embedded %d text(s)", len(vectors))
        return vectors
