"""
CardChat - RAG Engine
======================
Orchestrates the Retrieval-Augmented Generation pipeline that answers
questions about Pokémon card prices.

Architecture
------------
``PromptFormatter``
    Pure substitution of question, retrieved context and conversation
    history into ``RAG_PROMPT_TEMPLATE``.

``RAGPipeline``
    Two-stage orchestrator.  Flow:
        1. RETRIEVE → vector search (k=10) with a per-request embedder.
        2. GENERATE
             • no documents → fixed apology, the LLM is never called.
             • otherwise    → join documents (blank-line separated,
               ranking order kept) → load session history → render
               prompt → call the chat model → clean Markdown → save
               the turn to session memory.
        3. END → answer + the first ``CONTEXT_PREVIEW`` documents.

    Each session's run holds that session's memory lock, so concurrent
    requests in one conversation cannot interleave their history.

Usage:
    from cardchat.src.core.rag_engine import RAGPipeline
    pipeline = RAGPipeline(vector_store, SessionMemory(), OpenAIClientFactory())
    result = await pipeline.run("What is a PSA 10 Charizard worth?", session_id, api_key)
"""

from __future__ import annotations

import time
from typing import Any, Protocol, runtime_checkable

from langchain_core.messages import HumanMessage
from pydantic import BaseModel, Field

from cardchat.config.prompt_templates import NO_CONTEXT_RESPONSE, RAG_PROMPT_TEMPLATE
from cardchat.config.settings import settings
from cardchat.src.core.clients import ClientFactory, OpenAIClientFactory
from cardchat.src.core.exceptions import GenerationFailure, ValidationError
from cardchat.src.core.memory import ConversationTurn, SessionMemory
from cardchat.src.database.vector_store import Embedder, RetrievedDocument
from cardchat.src.utils.logger import get_logger
from cardchat.src.utils.text_utils import clean_markdown

logger = get_logger(__name__)

_CONTEXT_SEPARATOR = "\n\n"


# ══════════════════════════════════════════════════════════════════════
#  STATE
# ══════════════════════════════════════════════════════════════════════


class PipelineState(BaseModel):
    """Per-request state threaded through RETRIEVE and GENERATE."""

    question: str
    chat_history: str = ""
    context: list[RetrievedDocument] = Field(default_factory=list)
    answer: str = ""


class PipelineResult(BaseModel):
    """What the caller receives: the answer and a short context preview."""

    answer: str
    context: list[RetrievedDocument]


@runtime_checkable
class VectorStore(Protocol):
    """Anything that can rank documents against a question."""

    async def search(self, query_text: str, k: int = ..., embedder: Embedder | None = None) -> list[RetrievedDocument]: ...


# ══════════════════════════════════════════════════════════════════════
#  PROMPT FORMATTER
# ══════════════════════════════════════════════════════════════════════


class PromptFormatter:
    """Renders the fixed RAG template.  Deterministic and side-effect free."""

    __slots__ = ("_template",)

    def __init__(self, template: str = RAG_PROMPT_TEMPLATE) -> None:
        self._template = template


    def render(self, question: str, context_text: str, history_text: str) -> str:
        return self._template.format(chat_history=history_text, context=context_text, question=question)


# ══════════════════════════════════════════════════════════════════════
#  RAG PIPELINE
# ══════════════════════════════════════════════════════════════════════


class RAGPipeline:
    """
    Retrieve-then-generate orchestrator.

    Parameters
    ----------
    vector_store
        A ``VectorStore`` (normally ``PgVectorStore``).
    memory
        Session-keyed conversation memory.
    client_factory
        Builds the embedder and chat model from the request credential.
        Defaults to ``OpenAIClientFactory``.
    formatter
        Optional custom ``PromptFormatter``.
    k
        Documents retrieved per question.  Defaults to ``settings.SEARCH_K``.
    preview
        Documents returned to the caller.  Defaults to ``settings.CONTEXT_PREVIEW``.

    Raises
    ------
    ValueError
        If *k* or *preview* is below 1.
    """

    __slots__ = ("_store", "_memory", "_clients", "_formatter", "_k", "_preview")

    def __init__(self, vector_store: VectorStore, memory: SessionMemory, client_factory: ClientFactory | None = None, formatter: PromptFormatter | None = None, k: int | None = None, preview: int | None = None) -> None:
        self._store = vector_store
        self._memory = memory
        self._clients = client_factory or OpenAIClientFactory()
        self._formatter = formatter or PromptFormatter()
        self._k = k if k is not None else settings.SEARCH_K
        self._preview = preview if preview is not None else settings.CONTEXT_PREVIEW

        if self._k < 1 or self._preview < 1:
            raise ValueError(f"k and preview must be ≥ 1, got k={self._k}, preview={self._preview}")


    @property
    def memory(self) -> SessionMemory:
        return self._memory


    async def run(self, question: str, session_id: str, credential: str) -> PipelineResult:
        """
        Answer *question* within *session_id*.

        Raises
        ------
        ValidationError
            If the question is blank.
        RetrievalFailure
            If embedding or the vector search fails.
        GenerationFailure
            If the chat model fails.
        """
        if not question or not question.strip():
            raise ValidationError("No question provided in request", error="Question is required")

        t_start = time.perf_counter()

        async with self._memory.lock(session_id):
            state = PipelineState(question=question)
            state = await self.retrieve(state, credential)
            state = await self.generate(state, session_id, credential)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Pipeline total: %.1fms (session=%s, docs=%d)", total_ms, session_id, len(state.context))
        return PipelineResult(answer=state.answer, context=state.context[: self._preview])


    async def retrieve(self, state: PipelineState, credential: str) -> PipelineState:
        """RETRIEVE: rank documents for the question (possibly none)."""
        logger.info("[RAG] Starting retrieval for question: %.80s", state.question)
        t_search = time.perf_counter()

        embedder = self._clients.embedder(credential)
        documents = await self._store.search(state.question, k=self._k, embedder=embedder)

        search_ms = (time.perf_counter() - t_search) * 1000
        logger.info("[RAG] Retrieved %d document(s) in %.1fms", len(documents), search_ms)
        return state.model_copy(update={"context": list(documents)})


    async def generate(self, state: PipelineState, session_id: str, credential: str) -> PipelineState:
        """GENERATE: answer from context, or apologise when there is none."""
        if not state.context:
            logger.warning("[RAG] No documents retrieved, returning fixed response without calling the LLM.")
            return state.model_copy(update={"answer": NO_CONTEXT_RESPONSE})

        logger.info("[RAG] Starting generation with %d context document(s).", len(state.context))

        context_text = _CONTEXT_SEPARATOR.join(doc.content for doc in state.context)
        history_text = self._memory.load(session_id)
        prompt = self._formatter.render(state.question, context_text, history_text)

        t_llm = time.perf_counter()
        llm = self._clients.chat_model(credential)
        try:
            response = await llm.ainvoke([HumanMessage(content=prompt)])
        except Exception as exc:
            logger.exception("[RAG] LLM call failed.")
            raise GenerationFailure(str(exc) or type(exc).__name__) from exc

        answer = clean_markdown(self._response_text(response))
        llm_ms = (time.perf_counter() - t_llm) * 1000
        logger.info("[RAG] LLM response: %.1fms (%d chars)", llm_ms, len(answer))

        self._memory.save(session_id, ConversationTurn(question=state.question, answer=answer))
        return state.model_copy(update={"chat_history": history_text, "answer": answer})


    @staticmethod
    def _response_text(response: Any) -> str:
        """Extract plain text from a chat-model response."""
        content = response.content if hasattr(response, "content") else response
        if isinstance(content, list):
            parts = [block if isinstance(block, str) else block.get("text", "") for block in content]
            return "".join(parts)
        return str(content)
