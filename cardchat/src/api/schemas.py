"""
CardChat - API Schemas
=======================
Pydantic v2 models for the chat endpoint's request and response bodies.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from cardchat.src.database.vector_store import RetrievedDocument
from cardchat.src.utils.text_utils import normalize_question


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ChatRequest(BaseModel):
    question: str

    @field_validator("question")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        v = normalize_question(v)
        if not v:
            raise ValueError("question must not be blank")
        return v


class ChatResponse(BaseModel):
    context: list[RetrievedDocument]
    answer: str


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None
    timestamp: str | None = Field(default=None)
