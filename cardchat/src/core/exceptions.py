"""
CardChat - Exception Hierarchy
===============================
Every error the service raises on purpose derives from ``CardChatError``.
Each class carries the HTTP status it maps to and the public ``error``
label used in the JSON body; ``details`` holds the specific message.

    AuthError           → 401  missing / malformed bearer credential
    ValidationError     → 400  bad or missing request body / question
    ConfigurationError  → 500  required settings absent
    RetrievalFailure    → 500  embedding or vector-store failure
    GenerationFailure   → 500  chat-completion failure
"""

from __future__ import annotations

__all__ = [
    "AuthError",
    "CardChatError",
    "ConfigurationError",
    "GenerationFailure",
    "RetrievalFailure",
    "ValidationError",
]


class CardChatError(Exception):
    """Base exception for all CardChat errors."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, details: str, error: str | None = None) -> None:
        super().__init__(details)
        self.details = details
        if error is not None:
            self.error = error


class AuthError(CardChatError):
    """Raised when the bearer credential is missing or malformed."""

    status_code = 401
    error = "Missing or invalid API key"


class ValidationError(CardChatError):
    """Raised when the request body or question is invalid."""

    status_code = 400
    error = "Invalid request"


class ConfigurationError(CardChatError):
    """Raised when required settings are not configured."""

    error = "Configuration Error"

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Missing environment variables: {', '.join(missing)}")
        self.missing = missing


class RetrievalFailure(CardChatError):
    """Raised when the embedding call or the similarity query fails."""


class GenerationFailure(CardChatError):
    """Raised when the chat-completion call fails."""
