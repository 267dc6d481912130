"""
CardChat - Session Memory
==========================
In-process conversation memory, isolated by ``session_id``.

Every read and write is keyed by session, so two conversations never
see each other's history.  Turns are appended in chronological order
and never truncated or summarized; ``HISTORY_MAX_TURNS`` only limits
how many of the most recent turns are *rendered* into the prompt.

History text uses LangChain's buffer format::

    Human: What is a PSA 10 Base Set Charizard worth?
    AI: Around $300,000 according to the latest sale.

The store lives for the lifetime of the process and is reset on
restart.  A per-session ``asyncio.Lock`` lets the pipeline serialize
one session's load → generate → save sequence.  Locks are held weakly:
an entry lives only while a run holds or awaits it, so one-shot
sessions leave nothing behind.  ``clear`` takes the same lock and
therefore waits for an in-flight turn to be saved before dropping it.

Usage:
    from cardchat.src.core.memory import SessionMemory
    memory = SessionMemory()
    memory.save("abc", ConversationTurn(question="...", answer="..."))
    history = memory.load("abc")
"""

from __future__ import annotations

import asyncio
import weakref
from collections import defaultdict

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, get_buffer_string
from pydantic import BaseModel, ConfigDict

from cardchat.config.prompt_templates import AI_PREFIX, HUMAN_PREFIX
from cardchat.config.settings import settings
from cardchat.src.utils.logger import get_logger

logger = get_logger(__name__)


class ConversationTurn(BaseModel):
    """One question/answer exchange."""

    model_config = ConfigDict(frozen=True)

    question: str
    answer: str


class SessionMemory:
    """
    Mapping of session id → ordered list of ``ConversationTurn``.

    Parameters
    ----------
    max_turns
        Render window for ``load``.  Defaults to
        ``settings.HISTORY_MAX_TURNS``; *None* renders everything.
    """

    __slots__ = ("_turns", "_locks", "_max_turns")

    def __init__(self, max_turns: int | None = None) -> None:
        self._turns: defaultdict[str, list[ConversationTurn]] = defaultdict(list)
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._max_turns = max_turns if max_turns is not None else settings.HISTORY_MAX_TURNS


    def load(self, session_id: str) -> str:
        """Return the rendered history for *session_id* (``""`` when empty)."""
        turns = self._turns.get(session_id, [])
        if self._max_turns is not None:
            turns = turns[-self._max_turns:]
        if not turns:
            return ""

        messages: list[BaseMessage] = []
        for turn in turns:
            messages.append(HumanMessage(content=turn.question))
            messages.append(AIMessage(content=turn.answer))
        return get_buffer_string(messages, human_prefix=HUMAN_PREFIX, ai_prefix=AI_PREFIX)


    def save(self, session_id: str, turn: ConversationTurn) -> None:
        """Append *turn* to the session's transcript."""
        self._turns[session_id].append(turn)
        logger.debug("[MEMORY] Session '%s' now holds %d turn(s).", session_id, len(self._turns[session_id]))


    def turns(self, session_id: str) -> list[ConversationTurn]:
        """Return a copy of the stored turns for *session_id*."""
        return list(self._turns.get(session_id, []))


    async def clear(self, session_id: str) -> bool:
        """Forget a session once any in-flight turn is saved.  Returns True if it existed."""
        async with self.lock(session_id):
            existed = self._turns.pop(session_id, None) is not None
        if existed:
            logger.info("[MEMORY] Session '%s' cleared.", session_id)
        return existed


    def sessions(self) -> list[str]:
        """Return the ids of all sessions with at least one turn."""
        return [sid for sid, turns in self._turns.items() if turns]


    def lock(self, session_id: str) -> asyncio.Lock:
        """Return the lock guarding *session_id*'s turn sequence."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock


    def lock_count(self) -> int:
        """Number of sessions whose lock is currently held or awaited."""
        return len(self._locks)


    def __repr__(self) -> str:
        return f"SessionMemory(sessions={len(self.sessions())}, max_turns={self._max_turns})"
