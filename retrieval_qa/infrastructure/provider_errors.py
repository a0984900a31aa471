"""Translate provider client exceptions into domain errors.

Works on exception attributes and class names so that adapters never need the
provider library imported to classify a failure.
"""

from __future__ import annotations

from retrieval_qa.domain.errors import ContentPolicyError, DomainError, ProviderError

# openai-python exception classes that indicate a retriable condition
_TRANSIENT_CLASS_NAMES = frozenset(
    {"APITimeoutError", "APIConnectionError", "RateLimitError", "InternalServerError"}
)
_TRANSIENT_STATUS = frozenset({408, 429})
_POLICY_CODES = frozenset({"content_filter", "content_policy_violation"})


def _is_policy_rejection(ex: BaseException) -> bool:
    code = getattr(ex, "code", None)
    if isinstance(code, str) and code in _POLICY_CODES:
        return True
    body = getattr(ex, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("code") in _POLICY_CODES:
            return True
    return False


def is_transient(ex: BaseException) -> bool:
    if isinstance(ex, (TimeoutError, ConnectionError)):
        return True
    if any(cls.__name__ in _TRANSIENT_CLASS_NAMES for cls in type(ex).__mro__):
        return True
    status = getattr(ex, "status_code", None)
    return isinstance(status, int) and (status >= 500 or status in _TRANSIENT_STATUS)


def translate_provider_error(ex: BaseException, provider: str, operation: str) -> DomainError:
    """Map ``ex`` to ContentPolicyError or ProviderError (transient or permanent)."""
    if isinstance(ex, DomainError):
        return ex
    if _is_policy_rejection(ex):
        return ContentPolicyError(
            f"{provider} rejected the {operation} request: {ex}", provider=provider
        )
    return ProviderError(
        f"{provider} {operation} failed: {ex}", provider=provider, transient=is_transient(ex)
    )
