"""
Montreal RAG - Database Setup & Ingestion Script
==================================================
CLI entry point that orchestrates:
    1. Validate settings (``OPENAI_API_KEY`` must be set; fail-fast).
    2. Connect to LanceDB (optionally drop the existing table).
    3. Run the ``IngestionPipeline``.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --drop         Drop the table before ingesting.
    --drop-only    Drop the table and exit immediately (no ingestion).
    --source DIR   Read records from DIR instead of ``settings.DATA_RAW_DIR``.
    --uri URI      Write to URI instead of ``settings.LANCEDB_URI``.

Usage:
    python -m montreal_rag.scripts.setup_db
    python -m montreal_rag.scripts.setup_db --drop --source ./data/raw --uri /tmp/lancedb
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Montreal RAG — Load open-data records into the LanceDB vector table.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the table before ingesting.")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the table and exit (no ingestion).")
    parser.add_argument("--source", type=Path, default=None, help="Directory of .json/.jsonl/.csv record files.")
    parser.add_argument("--uri", default=None, help="LanceDB URI (defaults to LANCEDB_URI).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env ────────────────────────────────────────
    try:
        from montreal_rag.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your environment / .env file:\n")
        print(f"  {exc}")
        print()
        return 1

    # Now that settings is loaded, we can safely import the logger
    from montreal_rag.src.utils.logger import get_logger
    logger = get_logger(__name__)

    uri = args.uri or settings.LANCEDB_URI
    source_dir = args.source or settings.DATA_RAW_DIR
    _print_header(settings, uri, source_dir)

    # ── 1. Embedder + connection ───────────────────────────────────────
    from montreal_rag.src.core.rag_engine import OpenAIClient
    from montreal_rag.src.core.ingestor import IngestionPipeline
    from montreal_rag.src.database.vector_store import get_connection

    embedder = OpenAIClient(settings.OPENAI_API_KEY.get_secret_value()).embedding_model(settings.EMBEDDING_MODEL)
    db = get_connection(uri)

    if args.drop or args.drop_only:
        logger.warning("Dropping table '%s' as requested.", settings.LANCEDB_TABLE_NAME)
        db.drop_table(settings.LANCEDB_TABLE_NAME, ignore_missing=True)

        if args.drop_only:
            logger.info("--drop-only: Table dropped. Exiting.")
            return 0

    # ── 2. Run IngestionPipeline ───────────────────────────────────────
    pipeline = IngestionPipeline(db, embedder, source_dir=source_dir)
    summary = pipeline.run()

    _print_footer(summary, time.perf_counter() - t_start)
    return 1 if summary["files_failed"] else 0


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, uri: str, source_dir: Path) -> None:
    api_key_val = settings.OPENAI_API_KEY.get_secret_value()  # type: ignore[attr-defined]
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    print()
    print("=" * 60)
    print("  MONTREAL RAG — Vector Table Setup & Ingestion")
    print("=" * 60)
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")       # type: ignore[attr-defined]
    print(f"  LanceDB URI  : {uri}")
    print(f"  Table        : {settings.LANCEDB_TABLE_NAME}")    # type: ignore[attr-defined]
    print(f"  Source dir   : {source_dir}")
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(summary: dict, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Total files scanned  : {summary['total_files']}")
    print(f"  Files ingested       : {summary['files_processed']}")
    print(f"  Files failed         : {summary['files_failed']}")
    print(f"  Total records stored : {summary['total_records']}")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
