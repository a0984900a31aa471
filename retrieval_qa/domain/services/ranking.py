# retrieval_qa/domain/services/ranking.py
# Pure domain services: no I/O, deterministic, no external libraries.
from __future__ import annotations

from collections.abc import Iterable, Sequence

from retrieval_qa.domain.models import RetrievedPassage, SearchHit
from retrieval_qa.domain.similarity import Metric, best_first_key


def rank_hits(hits: Iterable[SearchHit], metric: Metric) -> list[SearchHit]:
    """
    Order hits best-first under ``metric``; equal scores are ordered by ascending id.

    Backends may return approximate or partially ordered results, so the index
    always re-sorts before slicing to k.
    """
    return sorted(hits, key=lambda h: best_first_key(metric, h.score, h.chunk.id))


def deduplicate_by_id(hits: Sequence[SearchHit]) -> list[SearchHit]:
    """Keep the first (best ranked) occurrence of every chunk id."""
    seen: set[str] = set()
    kept: list[SearchHit] = []
    for hit in hits:
        if hit.chunk.id in seen:
            continue
        seen.add(hit.chunk.id)
        kept.append(hit)
    return kept


def to_passages(hits: Sequence[SearchHit]) -> list[RetrievedPassage]:
    """Number hits 0..n-1 in their given order."""
    return [RetrievedPassage(chunk=h.chunk, score=h.score, rank=i) for i, h in enumerate(hits)]
