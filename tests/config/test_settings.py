"""AppSettings reads the environment once, with validated defaults."""

import pytest

from retrieval_qa.config.settings import AppSettings
from retrieval_qa.domain.errors import ConfigurationError

ENV_VARS = (
    "TOP_K",
    "CONTEXT_BUDGET",
    "MAX_RETRIES",
    "POOL_SIZE",
    "NO_CONTEXT_POLICY",
    "REQUEST_TIMEOUT_S",
    "PROVIDER_TIMEOUT_S",
    "EMBEDDING_QUERY_PREFIX",
    "EMBEDDING_BACKEND",
    "EMBEDDING_DIM",
    "VECTOR_BACKEND",
    "VECTOR_METRIC",
    "QDRANT_PREFER_GRPC",
    "LOG_LEVEL",
    "TELEMETRY_ENABLED",
    "IO_WORKERS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = AppSettings()
    assert settings.top_k == 5
    assert settings.context_budget == 6000
    assert settings.max_retries == 2
    assert settings.retry_backoff_base == 0.5
    assert settings.retry_backoff_max == 8.0
    assert settings.pool_size == 8
    assert settings.pool_wait_timeout == 5.0
    assert settings.no_context_policy == "fail"
    assert settings.request_timeout_s is None
    assert settings.provider_timeout_s == 30.0
    assert settings.embedding_query_prefix == ""
    assert settings.io_workers == 16
    assert settings.max_output_tokens == 512
    assert settings.vector_metric == "cosine"
    assert settings.telemetry_enabled is False
    assert settings.log_level == "INFO"


def test_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("TOP_K", "12")
    monkeypatch.setenv("NO_CONTEXT_POLICY", "FALLBACK")
    monkeypatch.setenv("VECTOR_BACKEND", "PgVector")
    monkeypatch.setenv("QDRANT_PREFER_GRPC", "true")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = AppSettings()
    assert settings.top_k == 12
    assert settings.no_context_policy == "fallback"
    assert settings.vector_backend == "pgvector"
    assert settings.qdrant_prefer_grpc is True
    assert settings.log_level == "DEBUG"


def test_explicit_values_override_environment(monkeypatch) -> None:
    monkeypatch.setenv("TOP_K", "12")
    assert AppSettings(top_k=3).top_k == 3


@pytest.mark.parametrize(
    "name,value",
    [
        ("TOP_K", "five"),
        ("REQUEST_TIMEOUT_S", "soon"),
        ("EMBEDDING_BACKEND", "word2vec"),
        ("VECTOR_BACKEND", "faiss"),
        ("LOG_LEVEL", "LOUD"),
        ("EMBEDDING_DIM", "0"),
        ("IO_WORKERS", "0"),
        ("REQUEST_TIMEOUT_S", "-1"),
    ],
)
def test_invalid_values_raise_configuration_error(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        AppSettings()


def test_deadline_must_outlast_provider_retries(monkeypatch) -> None:
    monkeypatch.setenv("REQUEST_TIMEOUT_S", "30")
    with pytest.raises(ConfigurationError, match="PROVIDER_TIMEOUT_S"):
        AppSettings()
    monkeypatch.setenv("PROVIDER_TIMEOUT_S", "5")
    assert AppSettings().request_timeout_s == 30.0


def test_zero_deadline_disables_it(monkeypatch) -> None:
    monkeypatch.setenv("REQUEST_TIMEOUT_S", "0")
    assert AppSettings().request_timeout_s == 0.0
