"""
CardChat - Model Clients
=========================
Builds the embedding and chat-completion clients for a single request.

Neither client is shared between requests: both are authenticated with
the bearer credential the caller forwarded, which is never stored or
logged.  Retries are disabled so upstream failures surface immediately.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from cardchat.config.settings import settings
from cardchat.src.database.vector_store import Embedder
from cardchat.src.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class ChatModel(Protocol):
    """Anything with LangChain's async chat interface."""

    async def ainvoke(self, input: list[BaseMessage], **kwargs: Any) -> Any: ...


@runtime_checkable
class ClientFactory(Protocol):
    """Creates per-request model clients from a credential."""

    def embedder(self, credential: str) -> Embedder: ...

    def chat_model(self, credential: str) -> ChatModel: ...


class OpenAIClientFactory:
    """
    ``ClientFactory`` backed by ``langchain-openai``.

    Parameters
    ----------
    embedding_model
        Defaults to ``settings.EMBEDDING_MODEL``.
    llm_model
        Defaults to ``settings.LLM_MODEL``.
    temperature
        Defaults to ``settings.LLM_TEMPERATURE``.
    base_url
        Defaults to ``settings.OPENAI_BASE_URL`` (None → api.openai.com).
    """

    __slots__ = ("_embedding_model", "_llm_model", "_temperature", "_base_url")

    def __init__(self, embedding_model: str | None = None, llm_model: str | None = None, temperature: float | None = None, base_url: str | None = None) -> None:
        self._embedding_model = embedding_model or settings.EMBEDDING_MODEL
        self._llm_model = llm_model or settings.LLM_MODEL
        self._temperature = temperature if temperature is not None else settings.LLM_TEMPERATURE
        self._base_url = base_url or settings.OPENAI_BASE_URL


    def embedder(self, credential: str) -> OpenAIEmbeddings:
        return OpenAIEmbeddings(model=self._embedding_model, api_key=credential, base_url=self._base_url, max_retries=0)


    def chat_model(self, credential: str) -> ChatOpenAI:
        llm = ChatOpenAI(model=self._llm_model, temperature=self._temperature, api_key=credential, base_url=self._base_url, max_retries=0)
        logger.debug("LLM client created: %s (temperature=%.1f)", self._llm_model, self._temperature)
        return llm


    def __repr__(self) -> str:
        return f"OpenAIClientFactory(embedding='{self._embedding_model}', llm='{self._llm_model}')"
