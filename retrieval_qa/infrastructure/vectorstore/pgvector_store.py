"""PostgreSQL + pgvector store backend.

Expected table layout (one row per chunk)::

    CREATE TABLE <table> (
        id        TEXT PRIMARY KEY,
        text      TEXT NOT NULL,
        metadata  JSONB NOT NULL DEFAULT '{}'::jsonb,
        embedding VECTOR(<dimension>) NOT NULL
    );
"""

from __future__ import annotations

import json
import re
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from importlib import import_module
from typing import Any

from retrieval_qa.domain.errors import ConfigurationError, VectorStoreError
from retrieval_qa.domain.models import DocumentChunk, SearchHit
from retrieval_qa.domain.similarity import Metric
from retrieval_qa.domain.types import MetadataFilter

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

# pgvector distance operator and the conversion from its distance to our score
_OPERATORS: dict[Metric, tuple[str, Callable[[float], float]]] = {
    Metric.COSINE: ("<=>", lambda d: 1.0 - d),
    Metric.L2: ("<->", lambda d: d * d),
    Metric.INNER_PRODUCT: ("<#>", lambda d: -d),  # <#> returns the negative inner product
}


@dataclass
class PgVectorConfig:
    dsn: str
    table: str
    dimension: int


class PgVectorStore:
    """Hands out raw SQLAlchemy connections.

    The engine uses NullPool: pooling and wait timeouts are owned by the
    QueuePool-backed ConnectionPool in front of this backend. Every statement
    runs inside its own ``begin()`` block, so a pooled connection never sits
    idle in a transaction between calls.
    """

    def __init__(self, cfg: PgVectorConfig) -> None:
        if not _IDENTIFIER.match(cfg.table):
            raise ConfigurationError(f"invalid table name: {cfg.table!r}")
        self._cfg = cfg
        self._engine: Any | None = None
        self._lock = threading.Lock()

    def _ensure_engine(self) -> Any:
        with self._lock:
            if self._engine is None:
                sa = import_module("sqlalchemy")
                sa_pool = import_module("sqlalchemy.pool")
                self._engine = sa.create_engine(self._cfg.dsn, poolclass=sa_pool.NullPool)
            return self._engine

    def connect(self) -> PgVectorConnection:
        try:
            conn = self._ensure_engine().connect()
        except Exception as ex:
            raise VectorStoreError(f"PostgreSQL connect failed: {ex}") from ex
        return PgVectorConnection(conn, self._cfg)


class PgVectorConnection:
    def __init__(self, conn: Any, cfg: PgVectorConfig) -> None:
        self._conn = conn
        self._cfg = cfg

    def _vector_param(self, name: str) -> Any:
        sa = import_module("sqlalchemy")
        vector_type = import_module("pgvector.sqlalchemy").Vector
        return sa.bindparam(name, type_=vector_type(self._cfg.dimension))

    def upsert(self, chunk: DocumentChunk) -> None:
        try:
            sa = import_module("sqlalchemy")
            stmt = sa.text(
                f"INSERT INTO {self._cfg.table} (id, text, metadata, embedding) "
                "VALUES (:id, :text, CAST(:metadata AS jsonb), :embedding) "
                "ON CONFLICT (id) DO UPDATE SET text = EXCLUDED.text, "
                "metadata = EXCLUDED.metadata, embedding = EXCLUDED.embedding"
            ).bindparams(self._vector_param("embedding"))
            with self._conn.begin():
                self._conn.execute(
                    stmt,
                    {
                        "id": chunk.id,
                        "text": chunk.text,
                        "metadata": json.dumps(dict(chunk.metadata)),
                        "embedding": list(chunk.embedding),
                    },
                )
        except Exception as ex:
            raise VectorStoreError(f"upsert: {ex}") from ex

    def nearest(
        self,
        vector: Sequence[float],
        k: int,
        metric: Metric,
        where: MetadataFilter | None = None,
    ) -> list[SearchHit]:
        operator, to_score = _OPERATORS[metric]
        params: dict[str, Any] = {"query": list(vector), "k": k}
        clause = ""
        if where:
            clause = "WHERE metadata @> CAST(:where AS jsonb) "
            params["where"] = json.dumps(dict(where))
        try:
            sa = import_module("sqlalchemy")
            stmt = sa.text(
                f"SELECT id, text, metadata, embedding, embedding {operator} :query AS distance "
                f"FROM {self._cfg.table} {clause}"
                "ORDER BY distance, id LIMIT :k"
            ).bindparams(self._vector_param("query"))
            with self._conn.begin():
                rows = self._conn.execute(stmt, params).fetchall()
        except Exception as ex:
            raise VectorStoreError(f"search: {ex}") from ex

        return [
            SearchHit(
                chunk=DocumentChunk(
                    id=str(row.id),
                    text=row.text,
                    embedding=tuple(float(x) for x in row.embedding),
                    metadata=row.metadata or {},
                ),
                score=to_score(float(row.distance)),
            )
            for row in rows
        ]

    def stored_dimension(self) -> int | None:
        """Dimension declared on the embedding column (pgvector stores it in atttypmod)."""
        try:
            sa = import_module("sqlalchemy")
            stmt = sa.text(
                "SELECT atttypmod FROM pg_attribute "
                "WHERE attrelid = to_regclass(:table) AND attname = 'embedding'"
            )
            with self._conn.begin():
                value = self._conn.execute(stmt, {"table": self._cfg.table}).scalar()
        except Exception as ex:
            raise VectorStoreError(f"schema lookup: {ex}") from ex
        if value is None:
            raise VectorStoreError(f"table '{self._cfg.table}' has no embedding column")
        return int(value) if int(value) > 0 else None

    def close(self) -> None:
        self._conn.close()
