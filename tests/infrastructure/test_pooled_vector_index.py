"""Index invariants over the in-memory store backend."""

import pytest

from retrieval_qa.application.cancellation import CancelToken
from retrieval_qa.domain.errors import (
    CancelledError,
    DimensionMismatchError,
    InvalidArgumentError,
    VectorStoreError,
)
from retrieval_qa.domain.models import DocumentChunk, SearchHit
from retrieval_qa.domain.similarity import Metric
from retrieval_qa.infrastructure.vectorstore.memory_store import InMemoryVectorStore
from retrieval_qa.infrastructure.vectorstore.pooled_vector_index import PooledVectorIndex


def chunk(id_: str, vector: list[float], text: str = "") -> DocumentChunk:
    return DocumentChunk(id=id_, text=text or id_, embedding=vector)


class SchemaConnection:
    def __init__(self, dimension: int | None) -> None:
        self.dimension = dimension

    def upsert(self, chunk) -> None:
        raise VectorStoreError("read-only")

    def nearest(self, vector, k, metric, where=None) -> list[SearchHit]:
        # deliberately unordered and longer than k
        return [
            SearchHit(chunk("b", [0.0, 1.0]), 0.2),
            SearchHit(chunk("a", [1.0, 0.0]), 0.9),
            SearchHit(chunk("c", [1.0, 1.0]), 0.5),
        ]

    def stored_dimension(self) -> int | None:
        return self.dimension

    def close(self) -> None:
        return None


class SchemaStore:
    def __init__(self, dimension: int | None) -> None:
        self.dimension = dimension

    def connect(self) -> SchemaConnection:
        return SchemaConnection(self.dimension)


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


class TestPooledVectorIndex:
    def test_round_trip_self_match(self, store: InMemoryVectorStore) -> None:
        index = PooledVectorIndex(store, dimension=3)
        chunks = [
            chunk("x", [1.0, 0.0, 0.0]),
            chunk("y", [0.0, 1.0, 0.0]),
            chunk("z", [0.0, 0.0, 1.0]),
        ]
        for c in chunks:
            index.insert(c)
        for c in chunks:
            [hit] = index.search(c.embedding, k=1)
            assert hit.chunk.id == c.id
            assert hit.score == pytest.approx(1.0)

    def test_insert_same_id_replaces(self, store: InMemoryVectorStore) -> None:
        index = PooledVectorIndex(store, dimension=2)
        index.insert(chunk("doc", [1.0, 0.0], text="old"))
        index.insert(chunk("doc", [1.0, 0.0], text="new"))
        assert len(store) == 1
        [hit] = index.search([1.0, 0.0], k=5)
        assert hit.chunk.text == "new"

    def test_returns_at_most_k_best_first(self, store: InMemoryVectorStore) -> None:
        index = PooledVectorIndex(store, dimension=2)
        for i in range(10):
            index.insert(chunk(f"c{i}", [1.0, i / 10]))
        hits = index.search([1.0, 0.0], k=4)
        assert [h.chunk.id for h in hits] == ["c0", "c1", "c2", "c3"]

    def test_k_larger_than_store(self, store: InMemoryVectorStore) -> None:
        index = PooledVectorIndex(store, dimension=2)
        index.insert(chunk("only", [1.0, 0.0]))
        assert len(index.search([1.0, 0.0], k=100)) == 1

    def test_equal_scores_ordered_by_id(self, store: InMemoryVectorStore) -> None:
        index = PooledVectorIndex(store, dimension=2)
        for id_ in ("delta", "alpha", "charlie", "bravo"):
            index.insert(chunk(id_, [1.0, 0.0]))
        first = [h.chunk.id for h in index.search([1.0, 0.0], k=4)]
        second = [h.chunk.id for h in index.search([1.0, 0.0], k=4)]
        assert first == second == ["alpha", "bravo", "charlie", "delta"]

    def test_l2_metric_lower_is_better(self, store: InMemoryVectorStore) -> None:
        index = PooledVectorIndex(store, dimension=2, metric=Metric.L2)
        index.insert(chunk("far", [10.0, 10.0]))
        index.insert(chunk("near", [1.0, 1.0]))
        hits = index.search([0.0, 0.0], k=2)
        assert [h.chunk.id for h in hits] == ["near", "far"]
        assert hits[0].score == pytest.approx(2.0)

    def test_empty_index_returns_empty(self, store: InMemoryVectorStore) -> None:
        assert PooledVectorIndex(store, dimension=2).search([1.0, 0.0], k=3) == []

    def test_dimension_mismatch_rejected_before_store_io(self, store: InMemoryVectorStore) -> None:
        index = PooledVectorIndex(store, dimension=4)
        with pytest.raises(DimensionMismatchError):
            index.search([1.0, 0.0, 0.0], k=1)
        with pytest.raises(DimensionMismatchError):
            index.insert(chunk("bad", [1.0, 0.0, 0.0]))
        assert store.connections_opened == 0

    @pytest.mark.parametrize("k", [0, -3])
    def test_invalid_k(self, store: InMemoryVectorStore, k: int) -> None:
        with pytest.raises(InvalidArgumentError):
            PooledVectorIndex(store, dimension=2).search([1.0, 0.0], k=k)
        assert store.connections_opened == 0

    def test_invalid_dimension(self, store: InMemoryVectorStore) -> None:
        with pytest.raises(InvalidArgumentError):
            PooledVectorIndex(store, dimension=0)

    def test_cancelled_search_does_not_touch_store(self, store: InMemoryVectorStore) -> None:
        token = CancelToken()
        token.cancel()
        with pytest.raises(CancelledError):
            PooledVectorIndex(store, dimension=2).search([1.0, 0.0], k=1, cancel=token)
        assert store.connections_opened == 0

    def test_backend_results_are_reranked_and_cut_to_k(self) -> None:
        index = PooledVectorIndex(SchemaStore(2), dimension=2)
        hits = index.search([1.0, 0.0], k=2)
        assert [h.chunk.id for h in hits] == ["a", "c"]

    def test_store_errors_propagate(self) -> None:
        index = PooledVectorIndex(SchemaStore(2), dimension=2)
        with pytest.raises(VectorStoreError):
            index.insert(chunk("a", [1.0, 0.0]))

    def test_verify_schema(self) -> None:
        PooledVectorIndex(SchemaStore(3), dimension=3).verify_schema()
        PooledVectorIndex(SchemaStore(None), dimension=3).verify_schema()
        with pytest.raises(DimensionMismatchError):
            PooledVectorIndex(SchemaStore(768), dimension=3).verify_schema()

    def test_close_closes_pooled_connections(self, store: InMemoryVectorStore) -> None:
        index = PooledVectorIndex(store, dimension=2)
        index.insert(chunk("a", [1.0, 0.0]))
        index.close()
        assert index.pool.opened == 0
