# retrieval_qa/domain/models.py
# Domain models must be pure (no I/O, no external libs)
from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, NamedTuple

from retrieval_qa.domain.errors import InvalidArgumentError
from retrieval_qa.domain.types import Metadata, Vector


@dataclass(frozen=True)
class DocumentChunk:
    """
    Immutable indexed unit of text.

    - id:         unique identifier; re-inserting the same id replaces the chunk
    - text:       passage text shown to the generator
    - embedding:  vector of the index dimension (coerced to a tuple of floats)
    - metadata:   read-only mapping of scalar values (source, page, section, ...)
    """

    id: str
    text: str
    embedding: Vector
    metadata: Metadata = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidArgumentError("chunk id must not be empty")
        object.__setattr__(self, "embedding", tuple(float(x) for x in self.embedding))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


class SearchHit(NamedTuple):
    """One (chunk, score) pair as returned by the vector index."""

    chunk: DocumentChunk
    score: float


@dataclass(frozen=True)
class RetrievedPassage:
    """A chunk selected for one query, with its score and 0-based rank."""

    chunk: DocumentChunk
    score: float
    rank: int


@dataclass(frozen=True)
class PromptContext:
    """Passages that fit the context budget, most relevant first."""

    passages: tuple[RetrievedPassage, ...]
    budget: int
    used: int = 0
    dropped: tuple[str, ...] = ()

    @classmethod
    def empty(cls, budget: int) -> PromptContext:
        return cls(passages=(), budget=budget)

    @property
    def is_empty(self) -> bool:
        return not self.passages

    def __len__(self) -> int:
        return len(self.passages)

    def __iter__(self) -> Iterator[RetrievedPassage]:
        return iter(self.passages)


@dataclass(frozen=True)
class Citation:
    """Source attribution for a generated answer."""

    chunk_id: str
    score: float


@dataclass(frozen=True)
class Usage:
    embedding_calls: int = 0
    generation_tokens: int = 0


@dataclass(frozen=True)
class Generation:
    """Raw generator output."""

    text: str
    tokens_used: int = 0
    finish_reason: str = "stop"


@dataclass(frozen=True)
class AnswerResult:
    """Complete answer with the passages that were actually sent to the generator."""

    text: str
    sources: tuple[Citation, ...]
    usage: Usage

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "sources": [{"id": c.chunk_id, "score": c.score} for c in self.sources],
            "usage": {
                "embedding_calls": self.usage.embedding_calls,
                "generation_tokens": self.usage.generation_tokens,
            },
        }


def metadata_matches(metadata: Mapping[str, Any], where: Mapping[str, Any] | None) -> bool:
    """True when every (key, value) of ``where`` is present in ``metadata``.

    Booleans only match booleans, so ``{"page": 1}`` does not match ``True``;
    other numbers compare by value (``2 == 2.0``), as JSON filters do.
    """
    if not where:
        return True
    return all(
        key in metadata and _same_value(metadata[key], value) for key, value in where.items()
    )


def _same_value(stored: Any, wanted: Any) -> bool:
    if isinstance(stored, bool) or isinstance(wanted, bool):
        return type(stored) is type(wanted) and stored == wanted
    return stored == wanted
