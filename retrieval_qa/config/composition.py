"""Composition root: wires settings into adapters, services and the QueryEngine."""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor

from retrieval_qa.application.engine_context import EngineContext, EngineOptions, NoContextPolicy
from retrieval_qa.application.ports import (
    ClockPort,
    EmbeddingPort,
    GeneratorPort,
    NullTelemetry,
    TelemetryPort,
)
from retrieval_qa.application.services.embedder import Embedder
from retrieval_qa.application.services.generator import Generator
from retrieval_qa.application.services.retry import RetryPolicy
from retrieval_qa.application.use_cases.answer_query import QueryEngine
from retrieval_qa.config.settings import AppSettings
from retrieval_qa.domain.similarity import Metric
from retrieval_qa.infrastructure.embeddings.hf_sentence_transformers import (
    E5_QUERY_PREFIX,
    SentenceTransformerEmbeddingAdapter,
)
from retrieval_qa.infrastructure.embeddings.openai_embedding_adapter import (
    OpenAIEmbeddingAdapter,
)
from retrieval_qa.infrastructure.llm.openai_chat_adapter import OpenAIChatGeneratorAdapter
from retrieval_qa.infrastructure.time.system_clock import SystemClock
from retrieval_qa.infrastructure.vectorstore.memory_store import InMemoryVectorStore
from retrieval_qa.infrastructure.vectorstore.pgvector_store import PgVectorConfig, PgVectorStore
from retrieval_qa.infrastructure.vectorstore.pooled_vector_index import PooledVectorIndex
from retrieval_qa.infrastructure.vectorstore.qdrant_store import QdrantConfig, QdrantVectorStore
from retrieval_qa.infrastructure.vectorstore.store_backend import VectorStoreBackend

logger = logging.getLogger(__name__)


def build_embedding_port(settings: AppSettings) -> EmbeddingPort:
    if settings.embedding_backend == "sentence-transformers":
        return SentenceTransformerEmbeddingAdapter(
            model_name=settings.embedding_model,
            dimension=settings.embedding_dim,
            device=settings.embedding_device,
            prefix=query_prefix(settings),
        )
    return OpenAIEmbeddingAdapter(
        model=settings.embedding_model,
        dimension=settings.embedding_dim,
        base_url=settings.embedding_base_url or None,
        api_key=settings.embedding_api_key,
        timeout_s=settings.provider_timeout_s,
    )


def query_prefix(settings: AppSettings) -> str:
    if settings.embedding_query_prefix.strip().lower() == "e5":
        return E5_QUERY_PREFIX
    return settings.embedding_query_prefix


def build_generator_port(settings: AppSettings) -> GeneratorPort:
    return OpenAIChatGeneratorAdapter(
        base_url=settings.llm_base_url,
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        timeout_s=settings.provider_timeout_s,
    )


def build_vector_store(settings: AppSettings) -> VectorStoreBackend:
    backend = settings.vector_backend

    if backend == "qdrant":
        return QdrantVectorStore(
            QdrantConfig(
                url=settings.qdrant_url,
                collection=settings.collection,
                api_key=settings.qdrant_api_key or None,
                prefer_grpc=settings.qdrant_prefer_grpc,
                timeout_s=settings.qdrant_timeout_s,
            )
        )

    if backend == "pgvector":
        return PgVectorStore(
            PgVectorConfig(
                dsn=settings.pg_dsn,
                table=settings.collection,
                dimension=settings.embedding_dim,
            )
        )

    return InMemoryVectorStore()


def build_vector_index(
    settings: AppSettings,
    store: VectorStoreBackend | None = None,
    executor: Executor | None = None,
) -> PooledVectorIndex:
    return PooledVectorIndex(
        store if store is not None else build_vector_store(settings),
        dimension=settings.embedding_dim,
        metric=Metric.parse(settings.vector_metric),
        pool_size=settings.pool_size,
        wait_timeout=settings.pool_wait_timeout,
        executor=executor,
    )


def build_retry_policy(settings: AppSettings) -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.max_retries,
        backoff_base=settings.retry_backoff_base,
        backoff_max=settings.retry_backoff_max,
    )


def default_request_timeout_s(settings: AppSettings) -> float:
    """Deadline covering the embedding and generation retry schedules plus one pool wait."""
    per_call = build_retry_policy(settings).worst_case_s(settings.provider_timeout_s)
    return 2 * per_call + settings.pool_wait_timeout


def build_engine_options(settings: AppSettings) -> EngineOptions:
    request_timeout_s = settings.request_timeout_s
    if request_timeout_s is None:
        request_timeout_s = default_request_timeout_s(settings)
    return EngineOptions(
        top_k=settings.top_k,
        context_budget=settings.context_budget,
        max_output_tokens=settings.max_output_tokens,
        no_context_policy=NoContextPolicy.parse(settings.no_context_policy),
        request_timeout_s=request_timeout_s,
    )


def build_clock() -> ClockPort:
    """Tests inject a fake clock instead."""
    return SystemClock()


def build_telemetry(settings: AppSettings) -> TelemetryPort:
    """OpenTelemetryAdapter when enabled (degrades to no-op without the SDK)."""
    if not settings.telemetry_enabled:
        return NullTelemetry()

    from retrieval_qa.infrastructure.telemetry.otel_adapter import OpenTelemetryAdapter, OtelConfig

    return OpenTelemetryAdapter(
        OtelConfig(
            otlp_endpoint=settings.otlp_endpoint or None,
            environment=settings.telemetry_environment,
        )
    )


def build_engine_context(settings: AppSettings | None = None) -> EngineContext:
    """Create the long-lived handles once; the caller owns ``close()``.

    Raises DimensionMismatchError when the embedding model, the index or the
    existing store schema disagree on the vector dimension.
    """
    settings = settings or AppSettings()
    executor = ThreadPoolExecutor(max_workers=settings.io_workers, thread_name_prefix="rqa-io")
    clock = build_clock()
    policy = build_retry_policy(settings)
    try:
        index = build_vector_index(settings, executor=executor)
        embedder = Embedder(build_embedding_port(settings), policy, clock=clock, executor=executor)
        generator = Generator(
            build_generator_port(settings), policy, clock=clock, executor=executor
        )
        context = EngineContext(
            embedder=embedder,
            index=index,
            generator=generator,
            options=build_engine_options(settings),
            telemetry=build_telemetry(settings),
            executor=executor,
        )
    except Exception:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    try:
        index.verify_schema()
    except Exception:
        context.close()
        raise
    logger.info(
        "Engine ready: vector_backend=%s metric=%s dim=%d top_k=%d budget=%d deadline=%.1fs",
        settings.vector_backend,
        index.metric.value,
        index.dimension,
        settings.top_k,
        settings.context_budget,
        context.options.request_timeout_s,
    )
    return context


def build_query_engine(settings: AppSettings | None = None) -> QueryEngine:
    return QueryEngine(build_engine_context(settings))
