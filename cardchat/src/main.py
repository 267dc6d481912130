"""
CardChat - Application Entry Point
===================================
FastAPI application factory.  Builds the shared ``RAGPipeline``
(vector store + session memory + OpenAI client factory), registers the
API routes and the error handlers, and closes the Postgres pool on
shutdown.

Run locally:
    uvicorn cardchat.src.main:app --reload --port 8000

Error Responses
---------------
Every ``CardChatError`` becomes a JSON body:

    401 → {"error"}
    400 → {"error", "details"}
    500 → {"error", "details", "timestamp"}
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cardchat.config.settings import Settings, settings
from cardchat.src.api.routes import router
from cardchat.src.api.schemas import ErrorResponse, utc_timestamp
from cardchat.src.core.exceptions import AuthError, CardChatError, ValidationError
from cardchat.src.core.memory import SessionMemory
from cardchat.src.core.rag_engine import RAGPipeline
from cardchat.src.database.vector_store import PgVectorStore, close_pools
from cardchat.src.utils.logger import get_logger

logger = get_logger(__name__)


# ── Lifespan: startup / shutdown ───────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    missing = app.state.settings.missing_required()
    if missing:
        logger.warning("Starting without %s; /api/chat will answer 500 until they are set.", ", ".join(missing))
    logger.info("CardChat API ready (table=%s, metric=%s).", app.state.settings.PG_TABLE_NAME, app.state.settings.DISTANCE_STRATEGY)
    yield
    await close_pools()
    logger.info("CardChat API shut down.")


# ── Error handlers ─────────────────────────────────────────────────────

async def _cardchat_error_handler(request: Request, exc: CardChatError) -> JSONResponse:
    if isinstance(exc, AuthError):
        body = ErrorResponse(error=exc.error)
    elif isinstance(exc, ValidationError):
        body = ErrorResponse(error=exc.error, details=exc.details)
    else:
        logger.error("[API] %s: %s", exc.error, exc.details)
        body = ErrorResponse(error=exc.error, details=exc.details, timestamp=utc_timestamp())
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


# ── App factory ────────────────────────────────────────────────────────

def create_app(pipeline: RAGPipeline | None = None, app_settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters
    ----------
    pipeline
        Inject a ready pipeline (tests).  Defaults to one backed by
        ``PgVectorStore`` and a fresh ``SessionMemory``.
    app_settings
        Defaults to the module-level ``settings`` singleton.
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="CardChat API",
        description="Retrieval-augmented answers about Pokémon card prices.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.pipeline = pipeline or RAGPipeline(vector_store=PgVectorStore(), memory=SessionMemory())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Session-ID"],
    )

    app.add_exception_handler(CardChatError, _cardchat_error_handler)
    app.include_router(router)

    @app.get("/ping")
    async def ping():
        """Health check endpoint."""
        return {"message": "pong"}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    from uvicorn import run as uvicorn_run

    uvicorn_run("cardchat.src.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.ENV == "dev")
