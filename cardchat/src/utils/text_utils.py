"""
CardChat - Text Utilities
==========================
Helper functions for normalising incoming questions and cleaning
model output before it is returned to the chat UI.

These utilities are stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata


# ── Non-printable character pattern ────────────────────────────────────
# Control characters (C0/C1) except \n, \r, \t, plus BOM, zero-width
# characters, soft hyphens and directional marks.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")

# ── Markdown patterns ──────────────────────────────────────────────────
# [label](url) or ![alt](url), with an optional "title" after the url.
# The url may hold one level of balanced parentheses (wiki page titles).
_MD_LINK_RE = re.compile(r"!?\[([^\[\]]+)\]\(\s*<?((?:[^()\s<>]|\([^()\s<>]*\))+)>?(?:\s+\"[^\"]*\")?\s*\)")
_MD_STRIKE_RE = re.compile(r"~~")
_MD_EMPHASIS_RE = re.compile(r"[*`]")


# ── Public API ─────────────────────────────────────────────────────────

def normalize_question(text: str) -> str:
    """
    Normalise a user question before it is embedded.

    Steps:
        1. Unicode NFC normalisation (é, Pokémon, etc. get one form).
        2. Strip non-printable / zero-width characters.
        3. Collapse every whitespace run into a single space.

    Args:
        text: Raw question from the request body.

    Returns:
        The normalised question, possibly empty.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    return re.sub(r"\s+", " ", text).strip()


def clean_markdown(text: str) -> str:
    """
    Remove Markdown markup from model output, keeping the information.

    The chat UI renders plain text and auto-links bare URLs, so:
        • ``[label](url)`` becomes ``label: url``.
        • emphasis, strike-through and code markers (asterisks, ``~~``
          and backticks) are dropped, their inner text kept.

    Links are rewritten first; markers inside a label are stripped
    by the later passes.

    Examples::

        "**bold** [PSA 10](https://x.test/card)" → "bold PSA 10: https://x.test/card"
        "`Charizard` is *rare*"                  → "Charizard is rare"

    Args:
        text: Raw completion text.

    Returns:
        Cleaned text.
    """
    text = _MD_LINK_RE.sub(r"\1: \2", text)
    text = _MD_STRIKE_RE.sub("", text)
    return _MD_EMPHASIS_RE.sub("", text)
