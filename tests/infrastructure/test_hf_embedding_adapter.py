import math

import pytest

import retrieval_qa.infrastructure.embeddings.hf_sentence_transformers as hf_mod
from retrieval_qa.application.ports import EmbeddingPort
from retrieval_qa.domain.errors import ProviderError


class _FakeST:
    """Stand-in for sentence_transformers.SentenceTransformer."""

    loads: list[dict] = []

    def __init__(self, model_name, **kwargs):  # noqa: ANN001
        _FakeST.loads.append({"model_name": model_name, **kwargs})
        self.seen: list[str] = []

    def encode(
        self,
        inputs,
        normalize_embeddings=True,
        convert_to_numpy=True,
        show_progress_bar=False,
    ):
        self.seen.extend(inputs)
        vectors = []
        for text in inputs:
            vec = [float(len(text)), 1.0, 2.0, 2.0]
            if normalize_embeddings:
                norm = math.sqrt(sum(x * x for x in vec))
                vec = [x / norm for x in vec]
            vectors.append(vec)
        return vectors


class _BrokenST:
    def __init__(self, *args, **kwargs):  # noqa: ANN002, ANN003
        raise OSError("model not found")


@pytest.fixture
def fake_st(monkeypatch):
    _FakeST.loads = []
    monkeypatch.setattr(hf_mod, "SentenceTransformer", _FakeST)
    return _FakeST


def test_implements_port() -> None:
    assert isinstance(hf_mod.SentenceTransformerEmbeddingAdapter(), EmbeddingPort)


def test_embed_texts_are_normalized(fake_st) -> None:
    adapter = hf_mod.SentenceTransformerEmbeddingAdapter(model_name="mini", dimension=4)
    vectors = adapter.embed_texts(["eins", "zwei", "drei"])
    assert len(vectors) == 3
    for vec in vectors:
        assert len(vec) == 4
        assert 0.999 < math.sqrt(sum(x * x for x in vec)) < 1.001


def test_model_loaded_once_with_settings(fake_st) -> None:
    adapter = hf_mod.SentenceTransformerEmbeddingAdapter(
        model_name="mini", device="cuda", local_files_only=True
    )
    adapter.embed_texts(["a"])
    adapter.embed_texts(["b"])
    assert fake_st.loads == [{"model_name": "mini", "device": "cuda", "local_files_only": True}]


def test_prefix_is_prepended(fake_st) -> None:
    adapter = hf_mod.SentenceTransformerEmbeddingAdapter(prefix=hf_mod.E5_QUERY_PREFIX)
    adapter.embed_texts(["what is rag?"])
    assert adapter._model.seen == [hf_mod.E5_QUERY_PREFIX + "what is rag?"]


def test_missing_library(monkeypatch) -> None:
    monkeypatch.setattr(hf_mod, "SentenceTransformer", None)
    with pytest.raises(ProviderError, match="not installed"):
        hf_mod.SentenceTransformerEmbeddingAdapter().embed_texts(["x"])


def test_load_failure_is_provider_error(monkeypatch) -> None:
    monkeypatch.setattr(hf_mod, "SentenceTransformer", _BrokenST)
    with pytest.raises(ProviderError, match="Failed to load embedding model"):
        hf_mod.SentenceTransformerEmbeddingAdapter().embed_texts(["x"])
