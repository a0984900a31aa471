"""EngineContext: the long-lived handles a QueryEngine owns.

Built once at process startup by the composition root and torn down at shutdown.
The pool inside the vector index, the provider clients and the I/O executor are
the only state shared across concurrent ``answer`` calls.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from enum import Enum

from retrieval_qa.application.ports.telemetry_port import NullTelemetry, TelemetryPort
from retrieval_qa.application.ports.vector_index_port import VectorIndexPort
from retrieval_qa.application.services.embedder import Embedder
from retrieval_qa.application.services.generator import Generator
from retrieval_qa.domain.errors import ConfigurationError, DimensionMismatchError
from retrieval_qa.domain.services.prompting import PromptTemplate

logger = logging.getLogger(__name__)


class NoContextPolicy(str, Enum):
    """What to do when retrieval yields nothing usable."""

    FALLBACK = "fallback"  # answer without sources, explicitly marked
    FAIL = "fail"  # raise NoContextError

    @classmethod
    def parse(cls, value: str) -> NoContextPolicy:
        try:
            return cls(value.strip().lower())
        except ValueError as ex:
            raise ConfigurationError(
                f"no_context_policy must be 'fallback' or 'fail', got '{value}'"
            ) from ex


@dataclass(frozen=True)
class EngineOptions:
    top_k: int = 5
    context_budget: int = 6000
    max_output_tokens: int = 512
    no_context_policy: NoContextPolicy = NoContextPolicy.FAIL
    request_timeout_s: float = 0.0  # per-call default deadline; 0 disables it

    def __post_init__(self) -> None:
        if self.top_k <= 0:
            raise ConfigurationError(f"top_k must be > 0, got {self.top_k}")
        if self.context_budget <= 0:
            raise ConfigurationError(f"context_budget must be > 0, got {self.context_budget}")
        if self.max_output_tokens <= 0:
            raise ConfigurationError(
                f"max_output_tokens must be > 0, got {self.max_output_tokens}"
            )
        if self.request_timeout_s < 0:
            raise ConfigurationError("request_timeout_s must be >= 0")


@dataclass
class EngineContext:
    embedder: Embedder
    index: VectorIndexPort
    generator: Generator
    options: EngineOptions = field(default_factory=EngineOptions)
    template: PromptTemplate = field(default_factory=PromptTemplate)
    telemetry: TelemetryPort = field(default_factory=NullTelemetry)
    executor: Executor | None = None

    def __post_init__(self) -> None:
        # Startup-time check: the index schema and the embedding model must agree.
        if self.embedder.dimension != self.index.dimension:
            raise DimensionMismatchError(
                self.index.dimension, self.embedder.dimension, operation="engine startup"
            )

    def close(self) -> None:
        """Release the pool and the I/O executor."""
        self.index.close()
        if self.executor is not None:
            self.executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Engine context closed")

    def __enter__(self) -> EngineContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
