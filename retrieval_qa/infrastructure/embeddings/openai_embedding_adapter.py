from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any

from retrieval_qa.application.ports.embedding_port import EmbeddingPort
from retrieval_qa.infrastructure.provider_errors import translate_provider_error


@dataclass
class OpenAIEmbeddingAdapter(EmbeddingPort):
    """Embeddings from an OpenAI-compatible ``/embeddings`` endpoint."""

    model: str = "text-embedding-3-small"
    dimension: int = 1536
    base_url: str | None = None
    api_key: str = "EMPTY"
    timeout_s: float = 30.0

    def __post_init__(self) -> None:
        self._client: Any | None = None
        self._lock = threading.Lock()

    def _get_client(self) -> Any:
        with self._lock:
            if self._client is None:
                module = import_module("openai")
                self._client = module.OpenAI(
                    base_url=self.base_url,
                    api_key=self.api_key,
                    timeout=self.timeout_s,
                    max_retries=0,
                )
            return self._client

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        try:
            resp: Any = self._get_client().embeddings.create(model=self.model, input=list(texts))
        except Exception as ex:  # noqa: BLE001
            raise translate_provider_error(ex, "openai-embeddings", "embedding") from ex
        # The API may return items out of order; ``index`` is authoritative.
        items = sorted(resp.data, key=lambda d: d.index)
        return [list(map(float, item.embedding)) for item in items]
