"""Shared fakes and fixtures for CardChat tests."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage, BaseMessage

from cardchat.config.settings import Settings
from cardchat.src.core.memory import SessionMemory
from cardchat.src.core.rag_engine import RAGPipeline
from cardchat.src.database.vector_store import RetrievedDocument
from cardchat.src.main import create_app


class FakeEmbedder:
    """Deterministic embedder that records every query it embeds."""

    def __init__(self, error: Exception | None = None) -> None:
        self.queries: list[str] = []
        self._error = error

    def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        if self._error is not None:
            raise self._error
        return [float(len(text)), 0.5, 0.25]

    async def aembed_query(self, text: str) -> list[float]:
        return self.embed_query(text)


class FakeChatModel:
    """Chat model returning canned replies in order; the last one repeats."""

    def __init__(self, replies: list[str] | None = None, error: Exception | None = None) -> None:
        self.replies = replies or ["A stubbed answer."]
        self.prompts: list[str] = []
        self._error = error

    async def ainvoke(self, input: list[BaseMessage], **kwargs: Any) -> AIMessage:
        self.prompts.append(str(input[-1].content))
        if self._error is not None:
            raise self._error
        index = min(len(self.prompts) - 1, len(self.replies) - 1)
        return AIMessage(content=self.replies[index])


class FakeVectorStore:
    """Vector store returning a fixed ranked list and recording its calls."""

    def __init__(self, documents: list[RetrievedDocument] | None = None, error: Exception | None = None) -> None:
        self.documents = documents or []
        self.calls: list[tuple[str, int]] = []
        self._error = error

    async def search(self, query_text: str, k: int = 10, embedder: Any = None) -> list[RetrievedDocument]:
        self.calls.append((query_text, k))
        if embedder is not None:
            await embedder.aembed_query(query_text)
        if self._error is not None:
            raise self._error
        return self.documents[:k]


class FakeClientFactory:
    """Hands out the given fakes and records which credentials were used."""

    def __init__(self, embedder: FakeEmbedder | None = None, chat: FakeChatModel | None = None) -> None:
        self.embedder_instance = embedder or FakeEmbedder()
        self.chat_instance = chat or FakeChatModel()
        self.embedder_credentials: list[str] = []
        self.chat_credentials: list[str] = []

    def embedder(self, credential: str) -> FakeEmbedder:
        self.embedder_credentials.append(credential)
        return self.embedder_instance

    def chat_model(self, credential: str) -> FakeChatModel:
        self.chat_credentials.append(credential)
        return self.chat_instance


def make_documents(count: int = 3) -> list[RetrievedDocument]:
    return [
        RetrievedDocument(content=f'{{"name": "Card {i}", "price": {100 + i}}}', metadata={"name": f"Card {i}", "price": 100 + i})
        for i in range(count)
    ]


@pytest.fixture()
def documents() -> list[RetrievedDocument]:
    return make_documents(5)


@pytest.fixture()
def store(documents: list[RetrievedDocument]) -> FakeVectorStore:
    return FakeVectorStore(documents)


@pytest.fixture()
def chat_model() -> FakeChatModel:
    return FakeChatModel(["**Card 0** sold for [$100](https://x.test/card-0)."])


@pytest.fixture()
def clients(chat_model: FakeChatModel) -> FakeClientFactory:
    return FakeClientFactory(chat=chat_model)


@pytest.fixture()
def memory() -> SessionMemory:
    return SessionMemory()


@pytest.fixture()
def pipeline(store: FakeVectorStore, memory: SessionMemory, clients: FakeClientFactory) -> RAGPipeline:
    return RAGPipeline(vector_store=store, memory=memory, client_factory=clients, k=10, preview=2)


@pytest.fixture()
def configured_settings() -> Settings:
    return Settings(_env_file=None, PG_HOST="db.test", PG_PASSWORD="secret")


@pytest.fixture()
def client(pipeline: RAGPipeline, configured_settings: Settings) -> TestClient:
    return TestClient(create_app(pipeline=pipeline, app_settings=configured_settings))
