from typing import Protocol, runtime_checkable

from retrieval_qa.domain.models import Generation


@runtime_checkable
class GeneratorPort(Protocol):
    """Provider-facing text generation capability."""

    def complete(self, prompt: str, max_tokens: int = 512) -> Generation: ...
