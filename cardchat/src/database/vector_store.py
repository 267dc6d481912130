"""
CardChat - PgVectorStore
=========================
Async wrapper around a Postgres table with a pgvector column, providing
read-only similarity search over the card price catalog.

Design decisions:
  • **Shared connection pool** — ``_get_pool()`` caches one
    ``AsyncConnectionPool`` per connection string, so every store
    instance (and every request) reuses the same connections.
  • **Dependency Injection** — the embedder is injected, never
    hard-coded.  ``search`` also accepts a per-call embedder because
    each request authenticates with its own credential.
  • **Configurable mapping** — table name, the four column names and
    the distance strategy all come from settings.  The content column
    is cast to ``text`` so a JSONB column can serve as content.
  • **No silent failures** — embedding and SQL errors are raised as
    ``RetrievalFailure`` with the upstream message.  An empty table is
    *not* an error: it yields an empty list.

Usage:
    from langchain_openai import OpenAIEmbeddings
    from cardchat.src.database.vector_store import PgVectorStore

    store = PgVectorStore(embedder=OpenAIEmbeddings(model=settings.EMBEDDING_MODEL))
    docs = await store.search("Base Set Charizard PSA 10", k=10)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Protocol, runtime_checkable

import numpy as np
import psycopg
from pgvector.psycopg import register_vector_async
from psycopg import sql
from psycopg.conninfo import make_conninfo
from psycopg_pool import AsyncConnectionPool
from pydantic import BaseModel, ConfigDict, Field

from cardchat.config.settings import DistanceStrategy, settings
from cardchat.src.core.exceptions import RetrievalFailure
from cardchat.src.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_K = 10

# pgvector operators; smaller is always nearer (<#> is the negated inner product)
_DISTANCE_OPERATORS: dict[str, str] = {
    "cosine": "<=>",
    "euclidean": "<->",
    "innerProduct": "<#>",
}


# ── Models & Protocols ─────────────────────────────────────────────────

class RetrievedDocument(BaseModel):
    """A single search hit: its text payload and metadata."""

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_query(self, text: str) -> list[float]: ...

    async def aembed_query(self, text: str) -> list[float]: ...


class ColumnMapping(BaseModel):
    """Names of the columns the store reads."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: settings.PG_ID_COLUMN)
    vector: str = Field(default_factory=lambda: settings.PG_VECTOR_COLUMN)
    content: str = Field(default_factory=lambda: settings.PG_CONTENT_COLUMN)
    metadata: str = Field(default_factory=lambda: settings.PG_METADATA_COLUMN)


# ── Connection pool cache ──────────────────────────────────────────────
_POOL_LOCK = asyncio.Lock()
_pool_cache: dict[str, AsyncConnectionPool] = {}


async def _get_pool(conninfo: str) -> AsyncConnectionPool:
    """
    Return a **shared** ``AsyncConnectionPool`` for *conninfo*.

    The pool is opened on first use and registers the pgvector type
    adapters on every new connection.
    """
    if conninfo not in _pool_cache:
        async with _POOL_LOCK:
            if conninfo not in _pool_cache:
                logger.info("[STORE] Opening Postgres connection pool (host=%s, db=%s).", settings.PG_HOST, settings.PG_DATABASE)
                pool = AsyncConnectionPool(conninfo, min_size=settings.PG_POOL_MIN_SIZE, max_size=settings.PG_POOL_MAX_SIZE, configure=register_vector_async, open=False)
                await pool.open()
                _pool_cache[conninfo] = pool
    return _pool_cache[conninfo]


async def close_pools() -> None:
    """Close every cached pool (application shutdown)."""
    while _pool_cache:
        _, pool = _pool_cache.popitem()
        await pool.close()
    logger.info("[STORE] All connection pools closed.")


class PgVectorStore:
    """
    Read-only similarity search over a pgvector table.

    Parameters
    ----------
    embedder
        Default embedder used when ``search`` is not given one.
    conninfo
        libpq connection string.  Defaults to one built from settings.
    table_name
        Override the table name (``schema.table`` is accepted).
        Defaults to ``settings.PG_TABLE_NAME``.
    columns
        Override the column mapping.  Defaults to settings.
    distance_strategy
        ``cosine``, ``euclidean`` or ``innerProduct``.
        Defaults to ``settings.DISTANCE_STRATEGY``.
    pool
        Inject a ready pool (tests, custom lifecycles).
    """

    __slots__ = ("embedder", "_conninfo", "_table_name", "_columns", "_distance", "_pool")

    def __init__(self, embedder: Embedder | None = None, conninfo: str | None = None, table_name: str | None = None, columns: ColumnMapping | None = None, distance_strategy: DistanceStrategy | None = None, pool: AsyncConnectionPool | None = None) -> None:
        self.embedder = embedder
        self._conninfo = conninfo or make_conninfo(**settings.pg_connection_kwargs())
        self._table_name = table_name or settings.PG_TABLE_NAME
        self._columns = columns or ColumnMapping()
        self._distance = distance_strategy or settings.DISTANCE_STRATEGY
        self._pool = pool

        if self._distance not in _DISTANCE_OPERATORS:
            raise ValueError(f"Unknown distance strategy '{self._distance}'.")


    async def _connection_pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            self._pool = await _get_pool(self._conninfo)
        return self._pool


    def _table(self) -> sql.Identifier:
        return sql.Identifier(*self._table_name.split("."))


    def _search_query(self) -> sql.Composed:
        """Build the nearest-neighbour query for the configured mapping."""
        return sql.SQL(
            "SELECT {id}, {content}::text, {metadata}, {vector} {op} %s AS distance "
            "FROM {table} ORDER BY distance LIMIT %s"
        ).format(
            id=sql.Identifier(self._columns.id),
            content=sql.Identifier(self._columns.content),
            metadata=sql.Identifier(self._columns.metadata),
            vector=sql.Identifier(self._columns.vector),
            op=sql.SQL(_DISTANCE_OPERATORS[self._distance]),
            table=self._table(),
        )


    async def search(self, query_text: str, k: int = DEFAULT_K, embedder: Embedder | None = None) -> list[RetrievedDocument]:
        """
        Embed *query_text* and return the *k* nearest documents.

        Parameters
        ----------
        query_text
            Natural-language question.
        k
            Maximum number of documents (default 10).
        embedder
            Per-call embedder; falls back to the store's default.

        Returns
        -------
        list[RetrievedDocument]
            Nearest first.  Empty when the table holds no rows.

        Raises
        ------
        RetrievalFailure
            If embedding, connecting, or querying fails.
        """
        active = embedder or self.embedder
        if active is None:
            raise RetrievalFailure("No embedder configured for vector search.")

        t_embed = time.perf_counter()
        try:
            query_vector = await active.aembed_query(query_text)
        except Exception as exc:
            logger.error("[STORE] Failed to embed query: %s", exc)
            raise RetrievalFailure(f"Embedding request failed: {exc}") from exc
        logger.debug("[STORE] Query embedded (%d dims) in %.1fms", len(query_vector), (time.perf_counter() - t_embed) * 1000)

        return await self.search_by_vector(query_vector, k=k)


    async def search_by_vector(self, vector: list[float], k: int = DEFAULT_K) -> list[RetrievedDocument]:
        """Return the *k* rows nearest to *vector* (see ``search``)."""
        if k < 1:
            raise ValueError(f"k must be ≥ 1, got {k}")

        t_query = time.perf_counter()
        try:
            pool = await self._connection_pool()
            async with pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(self._search_query(), (np.asarray(vector, dtype=np.float32), k))
                    rows = await cur.fetchall()
        except psycopg.Error as exc:
            logger.error("[STORE] Similarity query on '%s' failed: %s", self._table_name, exc)
            raise RetrievalFailure(f"Database query failed: {exc}") from exc

        documents = [self._to_document(row) for row in rows]
        logger.info("[STORE] Search returned %d result(s) in %.1fms (k=%d, metric=%s).", len(documents), (time.perf_counter() - t_query) * 1000, k, self._distance)
        if rows:
            logger.debug("[STORE] Distances: %s", ", ".join("null" if row[3] is None else f"{row[3]:.4f}" for row in rows))
        return documents


    @staticmethod
    def _to_document(row: tuple[Any, ...]) -> RetrievedDocument:
        doc_id, content, metadata, _distance = row
        if not isinstance(metadata, dict):
            metadata = {}
        if doc_id is not None and "id" not in metadata:
            metadata = {**metadata, "id": str(doc_id)}
        return RetrievedDocument(content=content or "", metadata=metadata)


    async def count(self) -> int:
        """Return the total number of rows in the table."""
        query = sql.SQL("SELECT count(*) FROM {table}").format(table=self._table())
        try:
            pool = await self._connection_pool()
            async with pool.connection() as conn:
                cur = await conn.execute(query)
                row = await cur.fetchone()
        except psycopg.Error as exc:
            logger.error("[STORE] Row count on '%s' failed: %s", self._table_name, exc)
            raise RetrievalFailure(f"Database query failed: {exc}") from exc
        return int(row[0]) if row else 0


    async def close(self) -> None:
        """Close this store's pool and drop it from the shared cache."""
        if self._pool is None:
            return
        for key, cached in list(_pool_cache.items()):
            if cached is self._pool:
                del _pool_cache[key]
        await self._pool.close()
        self._pool = None


    def __repr__(self) -> str:
        return f"PgVectorStore(table='{self._table_name}', metric='{self._distance}')"
