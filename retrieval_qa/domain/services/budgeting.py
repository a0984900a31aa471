# retrieval_qa/domain/services/budgeting.py
from __future__ import annotations

from collections.abc import Callable, Sequence

from retrieval_qa.domain.errors import InvalidArgumentError
from retrieval_qa.domain.models import PromptContext, RetrievedPassage

SizeFn = Callable[[str], int]


def fit_to_budget(
    passages: Sequence[RetrievedPassage],
    budget: int,
    measure: SizeFn = len,
) -> PromptContext:
    """
    Greedily take passages in rank order while the running size stays within budget.

    Stops at the first passage that does not fit: later (less relevant) passages
    are dropped even if they are small, and no passage is ever truncated.
    """
    if budget <= 0:
        raise InvalidArgumentError(f"context budget must be > 0, got {budget}")

    kept: list[RetrievedPassage] = []
    used = 0
    for idx, passage in enumerate(passages):
        size = measure(passage.chunk.text)
        if used + size > budget:
            dropped = tuple(p.chunk.id for p in passages[idx:])
            return PromptContext(passages=tuple(kept), budget=budget, used=used, dropped=dropped)
        kept.append(passage)
        used += size
    return PromptContext(passages=tuple(kept), budget=budget, used=used)
