# retrieval_qa/application/use_cases/answer_query.py
from __future__ import annotations

import logging
import time

from retrieval_qa.application.cancellation import CancelToken
from retrieval_qa.application.engine_context import EngineContext, NoContextPolicy
from retrieval_qa.application.use_cases.retrieve_passages import Retriever
from retrieval_qa.domain.errors import (
    DomainError,
    InvalidArgumentError,
    NoContextError,
    NoResultsError,
    UnexpectedEngineError,
)
from retrieval_qa.domain.models import AnswerResult, Citation, PromptContext, Usage
from retrieval_qa.domain.stages import Stage
from retrieval_qa.domain.types import MetadataFilter

logger = logging.getLogger(__name__)


class QueryEngine:
    """
    Application use case answering a question from the indexed documents.

    START -> RETRIEVING -> (NO_CONTEXT_FALLBACK | ASSEMBLING) -> GENERATING -> DONE,
    FAILED reachable from any state. All per-call state lives on the stack, so
    concurrent ``answer`` calls share nothing but the context's handles.
    """

    def __init__(self, context: EngineContext) -> None:
        self.context = context
        self.retriever = Retriever(context.embedder, context.index)

    def answer(
        self,
        query: str,
        where: MetadataFilter | None = None,
        cancel: CancelToken | None = None,
    ) -> AnswerResult:
        opts = self.context.options
        started = time.perf_counter()
        stage = Stage.START
        try:
            if not query or not query.strip():
                raise InvalidArgumentError("query must not be empty")
            if cancel is None and opts.request_timeout_s > 0:
                cancel = CancelToken.with_timeout(opts.request_timeout_s)

            stage = Stage.RETRIEVING
            try:
                prompt_context = self.retriever.retrieve(
                    query, opts.top_k, opts.context_budget, where=where, cancel=cancel
                )
            except NoResultsError:
                prompt_context = PromptContext.empty(opts.context_budget)

            if prompt_context.is_empty:
                stage = Stage.NO_CONTEXT_FALLBACK
                if opts.no_context_policy is NoContextPolicy.FAIL:
                    raise NoContextError("no indexed passage matched the query within the budget")
                logger.info("No context for query; answering without sources")
                prompt = self.context.template.fallback(query)
            else:
                stage = Stage.ASSEMBLING
                prompt = self.context.template.grounded(prompt_context, query)

            stage = Stage.GENERATING
            generation = self.context.generator.generate(
                prompt, max_output=opts.max_output_tokens, cancel=cancel
            )

            stage = Stage.DONE
            result = AnswerResult(
                text=generation.text,
                sources=tuple(Citation(chunk_id=p.chunk.id, score=p.score) for p in prompt_context),
                usage=Usage(embedding_calls=1, generation_tokens=generation.tokens_used),
            )
        except DomainError as ex:
            self._record_failure(ex.attach_stage(stage), started)
            raise
        except Exception as ex:
            err = UnexpectedEngineError(f"{type(ex).__name__}: {ex}", stage=stage)
            self._record_failure(err, started)
            raise err from ex

        self._record(started, outcome="ok", stage=stage)
        logger.info(
            "Answered query with %d source(s) in %.1fms",
            len(result.sources),
            (time.perf_counter() - started) * 1000,
        )
        return result

    def _record_failure(self, err: DomainError, started: float) -> None:
        stage = err.stage.value if err.stage is not None else Stage.FAILED.value
        logger.warning("Query failed at %s: %s: %s", stage, err.kind, err.message)
        self._record(started, outcome=err.kind, stage=err.stage or Stage.FAILED)

    def _record(self, started: float, *, outcome: str, stage: Stage) -> None:
        tags = {"outcome": outcome, "stage": stage.value}
        self.context.telemetry.incr("rqa.answer.total", tags)
        self.context.telemetry.observe(
            "rqa.answer.latency_ms", (time.perf_counter() - started) * 1000, tags
        )
