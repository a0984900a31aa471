# retrieval_qa/application/use_cases/retrieve_passages.py
from __future__ import annotations

import logging

from retrieval_qa.application.cancellation import CancelToken
from retrieval_qa.application.ports.vector_index_port import VectorIndexPort
from retrieval_qa.application.services.embedder import Embedder
from retrieval_qa.domain.errors import InvalidArgumentError, NoResultsError
from retrieval_qa.domain.models import PromptContext
from retrieval_qa.domain.services.budgeting import SizeFn, fit_to_budget
from retrieval_qa.domain.services.ranking import deduplicate_by_id, to_passages
from retrieval_qa.domain.types import MetadataFilter

logger = logging.getLogger(__name__)


class Retriever:
    """
    Turns a query into a ranked, deduplicated, budget-trimmed PromptContext.

    Pipeline: embed (once) -> search top-k -> dedupe by id -> rank -> greedy budget fill.
    """

    def __init__(self, embedder: Embedder, index: VectorIndexPort, measure: SizeFn = len) -> None:
        self.embedder = embedder
        self.index = index
        self.measure = measure

    def retrieve(
        self,
        query: str,
        k: int,
        budget: int,
        where: MetadataFilter | None = None,
        cancel: CancelToken | None = None,
    ) -> PromptContext:
        if k <= 0:
            raise InvalidArgumentError(f"k must be > 0, got {k}")
        if budget <= 0:
            raise InvalidArgumentError(f"budget must be > 0, got {budget}")

        vector = self.embedder.embed(query, cancel=cancel)
        hits = self.index.search(vector, k, where=where, cancel=cancel)
        if not hits:
            raise NoResultsError("vector index returned no candidates")

        unique = deduplicate_by_id(hits)
        if len(unique) < len(hits):
            logger.warning("Index returned %d duplicate hit(s)", len(hits) - len(unique))

        context = fit_to_budget(to_passages(unique), budget, self.measure)
        if context.dropped:
            logger.debug(
                "Budget %d: kept %d passage(s), dropped %s", budget, len(context), context.dropped
            )
        return context
