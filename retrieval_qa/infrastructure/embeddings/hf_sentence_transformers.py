from __future__ import annotations

import threading
from collections.abc import Sequence
from collections.abc import Sequence as SequenceType
from dataclasses import dataclass, field
from typing import Any, cast

from retrieval_qa.application.ports.embedding_port import EmbeddingPort
from retrieval_qa.domain.errors import ProviderError

# Lazy import for testability (allow monkeypatching fake SentenceTransformer)
SentenceTransformer: Any | None
try:  # pragma: no cover - exercised via tests with monkeypatch
    from sentence_transformers import SentenceTransformer as _SentenceTransformer
except Exception:  # noqa: BLE001
    SentenceTransformer = None
else:  # pragma: no cover - exercised in integration
    SentenceTransformer = _SentenceTransformer

E5_QUERY_PREFIX = "Instruct: Retrieve relevant passages for the query.\nQuery: "


@dataclass
class SentenceTransformerEmbeddingAdapter(EmbeddingPort):
    """Local HuggingFace Sentence-Transformers embedding model.

    ``prefix`` is prepended to every input, e.g. ``E5_QUERY_PREFIX`` for the
    instruct-style E5 models.
    """

    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    dimension: int = 384
    device: str = "cpu"  # switch to "cuda" when available
    prefix: str = ""
    local_files_only: bool = False  # support offline deployments
    _model: Any | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _ensure_model(self) -> Any:
        with self._lock:
            if self._model is not None:
                return self._model
            if SentenceTransformer is None:
                raise ProviderError(
                    "sentence-transformers not installed.", provider="sentence-transformers"
                )
            try:
                self._model = SentenceTransformer(
                    self.model_name,
                    device=self.device,
                    local_files_only=self.local_files_only,
                )
            except Exception as ex:  # noqa: BLE001
                raise ProviderError(
                    f"Failed to load embedding model '{self.model_name}': {ex}",
                    provider="sentence-transformers",
                ) from ex
            return self._model

    def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        model = self._ensure_model()
        try:
            inputs = [f"{self.prefix}{t}" for t in texts]
            raw_vectors = model.encode(
                inputs,
                normalize_embeddings=True,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as ex:  # noqa: BLE001
            raise ProviderError(
                f"Embedding texts failed: {ex}", provider="sentence-transformers"
            ) from ex
        vectors = cast(SequenceType[SequenceType[float]], raw_vectors)
        return [list(map(float, vec)) for vec in vectors]
