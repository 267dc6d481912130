"""
CardChat - Centralized Configuration
=====================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``PG_PASSWORD`` is typed as ``SecretStr``.  The raw value is never
  exposed in repr, logs, or tracebacks.
- There is no server-side OpenAI key.  Every request forwards its own
  bearer credential to the embedding and chat endpoints.

Required Variables
------------------
``PG_HOST`` and ``PG_PASSWORD`` have no usable default but are typed as
optional so that the HTTP layer can answer with a structured
``ConfigurationError`` (500) instead of crashing at import time.
``Settings.missing_required()`` lists whatever is absent.

Distance Strategy
-----------------
``DISTANCE_STRATEGY`` selects the pgvector operator used for ranking:
``cosine`` (``<=>``), ``euclidean`` (``<->``) or ``innerProduct`` (``<#>``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DistanceStrategy = Literal["cosine", "euclidean", "innerProduct"]


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).

    Attributes
    ----------
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    PG_HOST, PG_PORT, PG_USER, PG_PASSWORD, PG_DATABASE
        Postgres connection parameters.  ``PG_HOST`` and ``PG_PASSWORD``
        are required at request time.
    PG_TABLE_NAME : str
        Table holding the card documents and their embeddings.
    PG_ID_COLUMN, PG_VECTOR_COLUMN, PG_CONTENT_COLUMN, PG_METADATA_COLUMN
        Column mapping.  The content column is cast to text, so a JSONB
        column may double as content (the card catalog does exactly that).
    PG_POOL_MIN_SIZE, PG_POOL_MAX_SIZE : int
        Bounds of the shared async connection pool.
    DISTANCE_STRATEGY : DistanceStrategy
        Similarity metric used for ranking.
    EMBEDDING_MODEL : str
        Model identifier passed to ``OpenAIEmbeddings``.
    LLM_MODEL : str
        Model identifier passed to ``ChatOpenAI``.
    LLM_TEMPERATURE : float
        Sampling temperature of the chat model.
    OPENAI_BASE_URL : str | None
        Optional override of the OpenAI-compatible endpoint.
    SEARCH_K : int
        Number of documents retrieved per question.
    CONTEXT_PREVIEW : int
        Number of retrieved documents surfaced to the caller.
    HISTORY_MAX_TURNS : int | None
        When set, only the most recent N turns are rendered into the
        prompt.  Stored history is never truncated.
    API_HOST, API_PORT
        Bind address of the uvicorn server.
    CORS_ORIGINS : list[str]
        Origins allowed by the CORS middleware.
    """

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── Postgres / pgvector ────────────────────────────────────────────
    PG_HOST: str | None = None
    PG_PORT: int = 5432
    PG_USER: str = "postgres"
    PG_PASSWORD: SecretStr | None = None
    PG_DATABASE: str = "postgres"
    PG_TABLE_NAME: str = "cards"
    PG_ID_COLUMN: str = "document_id"
    PG_VECTOR_COLUMN: str = "embedding"
    PG_CONTENT_COLUMN: str = "metadata"
    PG_METADATA_COLUMN: str = "metadata"
    PG_POOL_MIN_SIZE: int = 1
    PG_POOL_MAX_SIZE: int = 10
    DISTANCE_STRATEGY: DistanceStrategy = "cosine"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    LLM_MODEL: str = "gpt-3.5-turbo"
    LLM_TEMPERATURE: float = 0.7
    OPENAI_BASE_URL: str | None = None

    # ── Retrieval / Memory ─────────────────────────────────────────────
    SEARCH_K: int = 10
    CONTEXT_PREVIEW: int = 2
    HISTORY_MAX_TURNS: int | None = None

    # ── HTTP ───────────────────────────────────────────────────────────
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8000
    CORS_ORIGINS: list[str] = ["*"]

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("SEARCH_K", "CONTEXT_PREVIEW")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("HISTORY_MAX_TURNS")
    @classmethod
    def _history_window(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError(f"HISTORY_MAX_TURNS must be ≥ 1 when set, got {v}")
        return v


    @field_validator("LLM_TEMPERATURE")
    @classmethod
    def _temperature_range(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"LLM_TEMPERATURE must be 0–2, got {v}")
        return v

    # ── Helpers ────────────────────────────────────────────────────────

    def missing_required(self) -> list[str]:
        """Return the names of required variables that are not set."""
        missing: list[str] = []
        if not self.PG_HOST:
            missing.append("PG_HOST")
        if self.PG_PASSWORD is None or not self.PG_PASSWORD.get_secret_value():
            missing.append("PG_PASSWORD")
        return missing


    def pg_connection_kwargs(self) -> dict[str, str | int | None]:
        """Keyword arguments for ``psycopg.conninfo.make_conninfo``.  Contains the password."""
        return {
            "host": self.PG_HOST,
            "port": self.PG_PORT,
            "dbname": self.PG_DATABASE,
            "user": self.PG_USER,
            "password": self.PG_PASSWORD.get_secret_value() if self.PG_PASSWORD else None,
        }

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from cardchat.config.settings import settings
settings = Settings()
