"""Domain errors (typed) for the query engine.

Every failure surfaced to a caller is a DomainError carrying a kind, a message
and the engine stage it originated from.
"""

from __future__ import annotations

from typing import Any

from retrieval_qa.domain.stages import Stage


class DomainError(Exception):
    """Base class for domain-specific errors."""

    def __init__(self, message: str = "", *, stage: Stage | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    @property
    def kind(self) -> str:
        return type(self).__name__

    def attach_stage(self, stage: Stage) -> DomainError:
        """Record the originating stage unless an inner layer already did."""
        if self.stage is None:
            self.stage = stage
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "stage": self.stage.value if self.stage is not None else None,
        }


class InvalidArgumentError(DomainError):
    """Invalid caller input. Never retried."""


class ConfigurationError(DomainError):
    """Settings or wiring are inconsistent; raised at startup."""


class DimensionMismatchError(DomainError):
    """A vector does not have the dimension the index was created with."""

    def __init__(
        self, expected: int, actual: int, *, operation: str = "", stage: Stage | None = None
    ) -> None:
        where = f" on {operation}" if operation else ""
        super().__init__(
            f"vector dimension mismatch{where}: expected {expected}, got {actual}", stage=stage
        )
        self.expected = expected
        self.actual = actual


class ProviderError(DomainError):
    """Embedding or generation provider failed (transient or after retries)."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        transient: bool = False,
        attempts: int = 1,
        stage: Stage | None = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.provider = provider
        self.transient = transient
        self.attempts = attempts


class ContentPolicyError(DomainError):
    """Provider rejected the request for policy reasons. Never retried."""

    def __init__(self, message: str, *, provider: str = "", stage: Stage | None = None) -> None:
        super().__init__(message, stage=stage)
        self.provider = provider


class ResourceExhaustedError(DomainError):
    """A bounded resource (connection pool, quota) had no capacity in time."""


class VectorStoreError(DomainError):
    """Vector store backend failed or is misconfigured."""


class NoResultsError(DomainError):
    """The index returned no candidates for the query."""


class NoContextError(DomainError):
    """No usable context and the engine is configured to fail instead of guessing."""


class CancelledError(DomainError):
    """The caller cancelled the call or its deadline passed."""


class UnexpectedEngineError(DomainError):
    """An exception outside the taxonomy escaped a dependency."""
