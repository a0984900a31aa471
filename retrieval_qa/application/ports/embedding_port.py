from collections.abc import Sequence
from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingPort(Protocol):
    """Provider-facing embedding capability.

    ``dimension`` is the vector length the provider is configured to return;
    adapters raise only domain errors (ProviderError / ContentPolicyError).
    """

    @property
    def dimension(self) -> int: ...

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]: ...
