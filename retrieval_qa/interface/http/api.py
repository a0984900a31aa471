"""HTTP API for answering questions.

Why: Consumable API without business logic; pure delegation to the QueryEngine.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

try:
    from fastapi import FastAPI, Request
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel
except ImportError as err:
    raise ImportError(
        "FastAPI not installed. Install with: pip install 'retrieval-qa[http]'"
    ) from err

from retrieval_qa.application.use_cases.answer_query import QueryEngine
from retrieval_qa.domain.errors import (
    CancelledError,
    ContentPolicyError,
    DomainError,
    InvalidArgumentError,
    NoContextError,
    ProviderError,
    ResourceExhaustedError,
)

logger = logging.getLogger(__name__)

# First match wins; everything else is a 500.
_STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (InvalidArgumentError, 400),
    (NoContextError, 404),
    (ResourceExhaustedError, 503),
    (ProviderError, 502),
    (ContentPolicyError, 502),
    (CancelledError, 504),
)


def status_for(err: DomainError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(err, error_type):
            return status
    return 500


class AnswerRequestModel(BaseModel):
    """Request model for /v1/answer endpoint."""

    question: str
    filters: dict[str, str | int | float | bool] | None = None


class SourceModel(BaseModel):
    id: str
    score: float


class UsageModel(BaseModel):
    embedding_calls: int
    generation_tokens: int


class AnswerResponseModel(BaseModel):
    """Response model for /v1/answer endpoint."""

    text: str
    sources: list[SourceModel]
    usage: UsageModel


def create_app(engine_factory: Callable[[], QueryEngine] | None = None) -> FastAPI:
    """Build the FastAPI app.

    ``engine_factory`` is called once at startup; defaults to the composition
    root. The engine's context is closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if engine_factory is None:
            from retrieval_qa.config.composition import build_query_engine

            engine = build_query_engine()
        else:
            engine = engine_factory()
        app.state.engine = engine
        try:
            yield
        finally:
            engine.context.close()

    app = FastAPI(title="Retrieval QA API", version="1.0.0", lifespan=lifespan)

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error("%s %s -> %d %s", request.method, request.url.path, status, exc.kind)
        return JSONResponse(status_code=status, content={"error": exc.to_dict()})

    # Sync handler: FastAPI runs it in its threadpool, the engine blocks on I/O.
    @app.post("/v1/answer", response_model=AnswerResponseModel)
    def answer(req: AnswerRequestModel, request: Request) -> dict[str, Any]:
        """Answer a question from the indexed documents.

        Example:
            POST /v1/answer
            {"question": "What is the refund window?", "filters": {"lang": "en"}}
        """
        engine: QueryEngine = request.app.state.engine
        result = engine.answer(req.question, where=req.filters or None)
        return result.to_dict()

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "healthy", "service": "retrieval-qa"}

    return app
