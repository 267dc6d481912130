"""
CardChat - Vector Store Verification Script
=============================================
CLI entry point that orchestrates:
    1. Load settings and report missing variables (fail-fast).
    2. Build the embedder from the supplied OpenAI key.
    3. Connect to the pgvector table and print its row count.
    4. Either print the ranked search results for a query, or (``--ask``)
       run the full RAG pipeline and print the answer.
    5. Print a timing summary.

Flags:
    --k N        Number of documents to retrieve (default: settings.SEARCH_K).
    --ask        Run the full pipeline instead of a bare similarity search.
    --api-key    OpenAI key; defaults to the ``OPENAI_API_KEY`` variable.

Usage:
    cardchat-verify "Base Set Charizard PSA 10"
    cardchat-verify --k 3 "Pikachu Illustrator"
    cardchat-verify --ask "What is the cheapest Umbreon VMAX alt art?"
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="cardchat-verify", description="CardChat — check the vector store and run a test query.")
    parser.add_argument("query", help="Question or search text.")
    parser.add_argument("--k", type=int, default=None, help="Number of documents to retrieve.")
    parser.add_argument("--ask", action="store_true", default=False, help="Run the full RAG pipeline and print the answer.")
    parser.add_argument("--api-key", default=None, help="OpenAI API key (defaults to $OPENAI_API_KEY).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

async def _verify(args: argparse.Namespace, api_key: str) -> int:
    from cardchat.config.settings import settings
    from cardchat.src.core.clients import OpenAIClientFactory
    from cardchat.src.core.exceptions import CardChatError
    from cardchat.src.core.memory import SessionMemory
    from cardchat.src.core.rag_engine import RAGPipeline
    from cardchat.src.database.vector_store import PgVectorStore, close_pools
    from cardchat.src.utils.logger import get_logger

    logger = get_logger(__name__)
    k = args.k or settings.SEARCH_K
    clients = OpenAIClientFactory()
    store = PgVectorStore(embedder=clients.embedder(api_key))

    try:
        # ── 1. Connect + count (timed) ─────────────────────────────────
        t_connect = time.perf_counter()
        rows = await store.count()
        connect_ms = (time.perf_counter() - t_connect) * 1000
        logger.info("Table '%s' has %d rows (%.1fms).", settings.PG_TABLE_NAME, rows, connect_ms)

        # ── 2. Query (timed) ───────────────────────────────────────────
        t_query = time.perf_counter()
        if args.ask:
            pipeline = RAGPipeline(vector_store=store, memory=SessionMemory(), client_factory=clients, k=k)
            result = await pipeline.run(args.query, "cli", api_key)
            query_ms = (time.perf_counter() - t_query) * 1000
            _print_answer(args.query, result.answer)
        else:
            documents = await store.search(args.query, k=k)
            query_ms = (time.perf_counter() - t_query) * 1000
            _print_results(args.query, documents)

    except CardChatError as exc:
        logger.error("%s: %s", exc.error, exc.details)
        return 1
    finally:
        await close_pools()

    _print_footer(rows, connect_ms, query_ms)
    return 0


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    # OPENAI_API_KEY is read from os.environ, which pydantic-settings does not populate
    load_dotenv(_PROJECT_ROOT / ".env")

    try:
        from cardchat.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        sys.exit(1)

    missing = settings.missing_required()
    if missing:
        print(f"\n[FATAL] Missing environment variables: {', '.join(missing)}\n")
        sys.exit(1)

    api_key = args.api_key or os.getenv("OPENAI_API_KEY", "")
    if not api_key:
        print("\n[FATAL] No OpenAI key — pass --api-key or set OPENAI_API_KEY.\n")
        sys.exit(1)

    _print_header(settings, api_key)
    sys.exit(asyncio.run(_verify(args, api_key)))


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, api_key: str) -> None:
    from cardchat.src.utils.logger import mask_secret

    masked = mask_secret(api_key)

    print()
    print("=" * 60)
    print("  CARDCHAT — Vector Store Verification")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                                          # type: ignore[attr-defined]
    print(f"  Postgres     : {settings.PG_HOST}:{settings.PG_PORT}/{settings.PG_DATABASE}")  # type: ignore[attr-defined]
    print(f"  Table        : {settings.PG_TABLE_NAME}")                                # type: ignore[attr-defined]
    print(f"  Metric       : {settings.DISTANCE_STRATEGY}")                            # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")                              # type: ignore[attr-defined]
    print(f"  LLM          : {settings.LLM_MODEL}")                                    # type: ignore[attr-defined]
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_results(query: str, documents: list) -> None:
    print(f"Query: {query}")
    print("=" * 60)
    if not documents:
        print("\n  (no documents returned)")
    for i, doc in enumerate(documents, 1):
        print(f"\n--- Result {i} ---")
        print(f"  Metadata: {doc.metadata}")
        print("  Content:")
        print(f"    {doc.content[:500]}")


def _print_answer(query: str, answer: str) -> None:
    print(f"Question: {query}")
    print("=" * 60)
    print(answer)


def _print_footer(rows: int, connect_ms: float, query_ms: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Rows in table        : {rows}")
    print(f"  Connect + count      : {connect_ms:>8.1f}ms")
    print(f"  Query                : {query_ms:>8.1f}ms")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
