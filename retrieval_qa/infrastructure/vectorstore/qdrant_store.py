"""Qdrant store backend.

Why: Qdrant gives HNSW search with payload filtering; the backend encapsulates
     every qdrant-client type and raises only domain errors.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any

from retrieval_qa.domain.errors import VectorStoreError
from retrieval_qa.domain.models import DocumentChunk, SearchHit
from retrieval_qa.domain.similarity import Metric
from retrieval_qa.domain.types import MetadataFilter

# Qdrant point ids must be UUIDs or integers; chunk ids are mapped deterministically.
_POINT_NAMESPACE = uuid.UUID("6f1c2a52-3d0e-4d8b-9a57-2b7b1c3e9f10")


def point_id(chunk_id: str) -> str:
    return str(uuid.uuid5(_POINT_NAMESPACE, chunk_id))


@dataclass
class QdrantConfig:
    """Configuration for Qdrant client connection."""

    url: str
    collection: str
    api_key: str | None = None
    prefer_grpc: bool = False
    timeout_s: int = 30


class QdrantVectorStore:
    """Opens one QdrantClient per pooled connection."""

    def __init__(self, cfg: QdrantConfig) -> None:
        self._cfg = cfg

    def connect(self) -> QdrantConnection:
        try:
            qdrant_client = import_module("qdrant_client")
            client = qdrant_client.QdrantClient(
                url=self._cfg.url,
                api_key=self._cfg.api_key,
                timeout=self._cfg.timeout_s,
                prefer_grpc=self._cfg.prefer_grpc,
            )
        except Exception as ex:
            raise VectorStoreError(f"Qdrant init failed: {ex}") from ex
        return QdrantConnection(client, self._cfg.collection)


class QdrantConnection:
    def __init__(self, client: Any, collection: str) -> None:
        self._client = client
        self._collection = collection

    def upsert(self, chunk: DocumentChunk) -> None:
        try:
            models = import_module("qdrant_client.models")
            point = models.PointStruct(
                id=point_id(chunk.id),
                vector=list(chunk.embedding),
                payload={
                    "chunk_id": chunk.id,
                    "text": chunk.text,
                    "metadata": dict(chunk.metadata),
                },
            )
            self._client.upsert(collection_name=self._collection, points=[point], wait=True)
        except Exception as ex:
            raise VectorStoreError(f"upsert: {ex}") from ex

    def nearest(
        self,
        vector: Sequence[float],
        k: int,
        metric: Metric,
        where: MetadataFilter | None = None,
    ) -> list[SearchHit]:
        try:
            models = import_module("qdrant_client.models")

            # Simple filter support: {"key": "value"} -> must match
            query_filter = None
            if where:
                query_filter = models.Filter(
                    must=[
                        models.FieldCondition(
                            key=f"metadata.{key}", match=models.MatchValue(value=value)
                        )
                        for key, value in where.items()
                    ]
                )

            response = self._client.query_points(
                collection_name=self._collection,
                query=list(vector),
                limit=k,
                query_filter=query_filter,
                with_payload=True,
                with_vectors=True,
            )
            return [self._to_hit(p, metric) for p in response.points]
        except Exception as ex:
            raise VectorStoreError(f"search: {ex}") from ex

    @staticmethod
    def _to_hit(point: Any, metric: Metric) -> SearchHit:
        payload = dict(point.payload or {})
        score = float(point.score)
        if metric is Metric.L2:
            # Qdrant reports plain Euclidean distance.
            score = score * score
        chunk = DocumentChunk(
            id=str(payload.get("chunk_id", point.id)),
            text=str(payload.get("text", "")),
            embedding=tuple(point.vector or ()),
            metadata=payload.get("metadata") or {},
        )
        return SearchHit(chunk=chunk, score=score)

    def stored_dimension(self) -> int | None:
        try:
            info = self._client.get_collection(self._collection)
        except Exception as ex:
            raise VectorStoreError(f"collection '{self._collection}' unavailable: {ex}") from ex
        return int(info.config.params.vectors.size)

    def close(self) -> None:
        self._client.close()
