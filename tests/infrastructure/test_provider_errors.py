import pytest

from retrieval_qa.domain.errors import ContentPolicyError, ProviderError, VectorStoreError
from retrieval_qa.infrastructure.provider_errors import is_transient, translate_provider_error


# Stand-ins named like the openai-python exception classes
class APIError(Exception):
    pass


class APITimeoutError(APIError):
    pass


class RateLimitError(APIError):
    pass


class BadRequestError(APIError):
    def __init__(self, message: str, code: str | None = None, body: dict | None = None) -> None:
        super().__init__(message)
        self.status_code = 400
        self.code = code
        self.body = body


class StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


@pytest.mark.parametrize(
    "ex,expected",
    [
        (APITimeoutError("timed out"), True),
        (RateLimitError("slow down"), True),
        (TimeoutError(), True),
        (ConnectionResetError(), True),
        (StatusError(503), True),
        (StatusError(429), True),
        (StatusError(408), True),
        (StatusError(401), False),
        (BadRequestError("bad"), False),
        (ValueError("nope"), False),
    ],
)
def test_is_transient(ex: Exception, expected: bool) -> None:
    assert is_transient(ex) is expected


def test_translate_transient() -> None:
    err = translate_provider_error(APITimeoutError("timed out"), "openai-chat", "generation")
    assert isinstance(err, ProviderError)
    assert err.transient is True
    assert err.provider == "openai-chat"
    assert "generation" in err.message


def test_translate_permanent() -> None:
    err = translate_provider_error(StatusError(401), "openai-embeddings", "embedding")
    assert isinstance(err, ProviderError)
    assert err.transient is False


@pytest.mark.parametrize(
    "ex",
    [
        BadRequestError("filtered", code="content_filter"),
        BadRequestError("filtered", body={"error": {"code": "content_policy_violation"}}),
    ],
)
def test_translate_policy_rejection(ex: Exception) -> None:
    err = translate_provider_error(ex, "openai-chat", "generation")
    assert isinstance(err, ContentPolicyError)
    assert err.provider == "openai-chat"


def test_domain_errors_pass_through() -> None:
    original = VectorStoreError("down")
    assert translate_provider_error(original, "x", "y") is original
