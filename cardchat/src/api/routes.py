"""
CardChat - API Routes
======================
REST endpoints for the card price assistant:

  - POST   /api/chat          → answer a question (bearer credential required)
  - DELETE /api/chat/session  → forget the caller's conversation

Each handler is a thin controller: it validates the request, delegates
to ``RAGPipeline`` and formats the response.  Checks run in a fixed
order so that nothing external is touched for a bad request:

    auth (401) → body (400) → configuration (500) → pipeline

Sessions
--------
Conversation memory is keyed by the ``X-Session-ID`` header.  When the
header is absent a new id is generated; it is always echoed back in the
response header so the client can continue the conversation.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Header, Request, Response, status
from pydantic import ValidationError as PydanticValidationError

from cardchat.config.settings import Settings
from cardchat.src.api.schemas import ChatRequest, ChatResponse
from cardchat.src.core.exceptions import AuthError, CardChatError, ConfigurationError, ValidationError
from cardchat.src.core.rag_engine import RAGPipeline
from cardchat.src.utils.logger import get_logger

logger = get_logger(__name__)

SESSION_HEADER = "X-Session-ID"
_BEARER_PREFIX = "Bearer "

router = APIRouter(prefix="/api")


# ── Dependencies ───────────────────────────────────────────────────────

def get_pipeline(request: Request) -> RAGPipeline:
    return request.app.state.pipeline


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_credential(authorization: str | None = Header(default=None)) -> str:
    """Extract the bearer token; raise ``AuthError`` if absent or malformed."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        raise AuthError("Authorization header must be 'Bearer <api key>'")
    credential = authorization[len(_BEARER_PREFIX):].strip()
    if not credential:
        raise AuthError("Authorization header must be 'Bearer <api key>'")
    return credential


def _parse_question(raw: bytes) -> str:
    if not raw.strip():
        raise ValidationError("No request body found", error="Request body is required")
    try:
        return ChatRequest.model_validate_json(raw).question
    except PydanticValidationError as exc:
        if any(err["type"] == "json_invalid" for err in exc.errors()):
            raise ValidationError("Could not parse request body", error="Invalid JSON") from exc
        raise ValidationError("No question provided in request", error="Question is required") from exc


# ── Routes ─────────────────────────────────────────────────────────────

@router.post("/chat", response_model=ChatResponse)
async def chat(request: Request, response: Response, credential: str = Depends(require_credential), pipeline: RAGPipeline = Depends(get_pipeline), app_settings: Settings = Depends(get_settings), session_id: str | None = Header(default=None, alias=SESSION_HEADER)) -> ChatResponse:
    """Answer a question about card prices from the vector store."""
    question = _parse_question(await request.body())

    missing = app_settings.missing_required()
    if missing:
        logger.error("[API] Missing environment variables: %s", missing)
        raise ConfigurationError(missing)

    session_id = session_id or uuid.uuid4().hex
    response.headers[SESSION_HEADER] = session_id
    logger.info("[API] Question received (session=%s, %d chars).", session_id, len(question))

    try:
        result = await pipeline.run(question, session_id, credential)
    except CardChatError:
        raise
    except Exception as exc:
        logger.exception("[API] Unhandled pipeline error.")
        raise CardChatError(str(exc) or "Unknown error occurred") from exc

    return ChatResponse(context=result.context, answer=result.answer)


@router.delete("/chat/session", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_credential)])
async def clear_session(pipeline: RAGPipeline = Depends(get_pipeline), session_id: str | None = Header(default=None, alias=SESSION_HEADER)) -> Response:
    """Forget the conversation identified by the session header."""
    if not session_id:
        raise ValidationError(f"Header '{SESSION_HEADER}' is required", error="Session id is required")
    await pipeline.memory.clear(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
