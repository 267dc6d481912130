"""Tests for PgVectorStore against an in-memory fake connection pool."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import numpy as np
import psycopg
import pytest

from cardchat.src.core.exceptions import RetrievalFailure
from cardchat.src.database.vector_store import ColumnMapping, PgVectorStore, RetrievedDocument
from tests.conftest import FakeEmbedder

COLUMNS = ColumnMapping(id="document_id", vector="embedding", content="metadata", metadata="metadata")


class FakeCursor:
    def __init__(self, rows: list[tuple[Any, ...]], error: Exception | None = None) -> None:
        self.rows = rows
        self.executed: list[tuple[Any, Any]] = []
        self._error = error

    async def __aenter__(self) -> FakeCursor:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def execute(self, query: Any, params: Any = None) -> FakeCursor:
        self.executed.append((query, params))
        if self._error is not None:
            raise self._error
        return self

    async def fetchall(self) -> list[tuple[Any, ...]]:
        return self.rows

    async def fetchone(self) -> tuple[Any, ...] | None:
        return self.rows[0] if self.rows else None


class FakeConnection:
    def __init__(self, cursor: FakeCursor) -> None:
        self._cursor = cursor

    def cursor(self) -> FakeCursor:
        return self._cursor

    async def execute(self, query: Any, params: Any = None) -> FakeCursor:
        return await self._cursor.execute(query, params)


class FakePool:
    def __init__(self, rows: list[tuple[Any, ...]] | None = None, error: Exception | None = None) -> None:
        self.cursor = FakeCursor(rows or [], error)
        self.checkouts = 0

    @asynccontextmanager
    async def connection(self):
        self.checkouts += 1
        yield FakeConnection(self.cursor)


def _store(pool: FakePool, embedder: FakeEmbedder | None = None, **kwargs: Any) -> PgVectorStore:
    return PgVectorStore(embedder=embedder, conninfo="dbname=test", table_name="cards", columns=COLUMNS, pool=pool, **kwargs)


ROWS = [
    ("card-1", '{"name": "Charizard", "price": 420}', {"name": "Charizard", "price": 420}, 0.12),
    ("card-2", '{"name": "Blastoise", "price": 150}', {"name": "Blastoise", "price": 150}, 0.31),
]


class TestSearch:
    @pytest.mark.asyncio()
    async def test_rows_become_documents_in_order(self) -> None:
        pool = FakePool(ROWS)
        docs = await _store(pool, FakeEmbedder()).search("Charizard")
        assert [doc.metadata["name"] for doc in docs] == ["Charizard", "Blastoise"]
        assert docs[0].content == '{"name": "Charizard", "price": 420}'
        assert docs[0].metadata["id"] == "card-1"

    @pytest.mark.asyncio()
    async def test_embedding_and_k_are_bound_as_parameters(self) -> None:
        pool = FakePool(ROWS)
        embedder = FakeEmbedder()
        await _store(pool, embedder).search("Charizard", k=7)
        assert embedder.queries == ["Charizard"]
        _, params = pool.cursor.executed[0]
        vector, k = params
        assert isinstance(vector, np.ndarray)
        assert vector.dtype == np.float32
        assert k == 7

    @pytest.mark.asyncio()
    async def test_default_k_is_ten(self) -> None:
        pool = FakePool(ROWS)
        await _store(pool, FakeEmbedder()).search("Charizard")
        assert pool.cursor.executed[0][1][1] == 10

    @pytest.mark.asyncio()
    async def test_per_call_embedder_wins(self) -> None:
        default, per_call = FakeEmbedder(), FakeEmbedder()
        await _store(FakePool(ROWS), default).search("Charizard", embedder=per_call)
        assert default.queries == []
        assert per_call.queries == ["Charizard"]

    @pytest.mark.asyncio()
    async def test_empty_table_returns_empty_list(self) -> None:
        assert await _store(FakePool([]), FakeEmbedder()).search("Charizard") == []

    @pytest.mark.asyncio()
    async def test_existing_id_in_metadata_is_kept(self) -> None:
        rows = [("row-9", "text", {"id": "custom"}, 0.2)]
        docs = await _store(FakePool(rows), FakeEmbedder()).search("q")
        assert docs == [RetrievedDocument(content="text", metadata={"id": "custom"})]

    @pytest.mark.asyncio()
    async def test_non_dict_metadata_and_null_content(self) -> None:
        rows = [(None, None, "not a dict", None)]
        docs = await _store(FakePool(rows), FakeEmbedder()).search("q")
        assert docs == [RetrievedDocument(content="", metadata={})]


class TestSearchFailures:
    @pytest.mark.asyncio()
    async def test_no_embedder(self) -> None:
        pool = FakePool(ROWS)
        with pytest.raises(RetrievalFailure, match="No embedder"):
            await _store(pool).search("Charizard")
        assert pool.checkouts == 0

    @pytest.mark.asyncio()
    async def test_embedding_error(self) -> None:
        pool = FakePool(ROWS)
        with pytest.raises(RetrievalFailure, match="Embedding request failed: invalid api key"):
            await _store(pool, FakeEmbedder(error=RuntimeError("invalid api key"))).search("Charizard")
        assert pool.checkouts == 0

    @pytest.mark.asyncio()
    async def test_database_error(self) -> None:
        pool = FakePool(error=psycopg.OperationalError("connection refused"))
        with pytest.raises(RetrievalFailure, match="Database query failed: connection refused"):
            await _store(pool, FakeEmbedder()).search("Charizard")

    @pytest.mark.asyncio()
    async def test_k_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="k must be"):
            await _store(FakePool(ROWS), FakeEmbedder()).search("Charizard", k=0)


class TestConstruction:
    def test_unknown_distance_strategy(self) -> None:
        with pytest.raises(ValueError, match="Unknown distance strategy"):
            _store(FakePool(), distance_strategy="manhattan")

    def test_repr(self) -> None:
        assert repr(_store(FakePool())) == "PgVectorStore(table='cards', metric='cosine')"


class TestClose:
    @pytest.mark.asyncio()
    async def test_close_closes_injected_pool(self) -> None:
        pool = FakePool()
        closed: list[bool] = []

        async def _close() -> None:
            closed.append(True)

        pool.close = _close
        store = _store(pool)
        await store.close()
        await store.close()
        assert closed == [True]


class TestCount:
    @pytest.mark.asyncio()
    async def test_count(self) -> None:
        assert await _store(FakePool([(42,)])).count() == 42

    @pytest.mark.asyncio()
    async def test_count_failure(self) -> None:
        pool = FakePool(error=psycopg.OperationalError("timeout"))
        with pytest.raises(RetrievalFailure, match="timeout"):
            await _store(pool).count()
