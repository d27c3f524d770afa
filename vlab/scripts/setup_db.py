"""
Virtual Lab Assistant - Database Setup & Ingestion Script
==========================================================
CLI entry point that orchestrates:
    1. Load settings (fail-fast on a missing API key).
    2. Build the configured embedder and ``LabVectorStore``
       (optionally dropping the existing table).
    3. Run the ``IngestionPipeline`` over ``DOCS_DIR``.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --drop       Drop the LanceDB table before ingesting (cache preserved).
    --purge      Drop table AND clear the hash cache (full re-ingestion).
    --drop-only  Drop the table and exit immediately (no ingestion).

Usage:
    python -m vlab.scripts.setup_db
    python -m vlab.scripts.setup_db --purge
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from dotenv import load_dotenv  # noqa: E402

load_dotenv(_PROJECT_ROOT / ".env")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Virtual Lab Assistant — initialise the vector database and ingest the experiment documents.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the LanceDB table before ingesting (hash cache preserved).")
    parser.add_argument("--purge", action="store_true", default=False, help="Drop the LanceDB table AND clear the hash cache (full clean re-ingestion).")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the LanceDB table and exit (no ingestion).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from vlab.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from vlab.src.utils.logger import get_logger
    logger = get_logger(__name__)

    _print_header(settings)

    # ── 1. Embedder (timed) ────────────────────────────────────────────
    from vlab.src.core.embeddings import build_embedder

    t_embedder = time.perf_counter()
    try:
        spec = build_embedder()
    except Exception:
        logger.exception("Failed to initialise embedding provider '%s'.", settings.EMBED_PROVIDER)
        return 1
    embedder_ms = (time.perf_counter() - t_embedder) * 1000

    # ── 2. Vector store (timed) ────────────────────────────────────────
    from vlab.src.database.vector_store import LabVectorStore

    t_lancedb = time.perf_counter()
    store = LabVectorStore(spec.embedder, spec.dimension, table_name=spec.table_name)
    lancedb_ms = (time.perf_counter() - t_lancedb) * 1000
    startup_ms = settings_ms + embedder_ms + lancedb_ms

    if args.drop or args.purge or args.drop_only:
        logger.warning("Dropping table '%s' as requested.", spec.table_name)
        store.drop_table()

        if args.purge:
            from vlab.src.core.ingestor import HASH_CACHE_FILENAME

            cache_path = settings.DATA_PROCESSED_DIR / HASH_CACHE_FILENAME
            if cache_path.exists():
                cache_path.unlink()
                logger.warning("Hash cache deleted: %s", cache_path)

        if args.drop_only:
            logger.info("--drop-only: table dropped. Exiting.")
            _print_footer({"total_files": 0, "files_skipped": 0, "total_chunks": 0}, time.perf_counter() - t_start, startup_ms)
            return 0

        store = LabVectorStore(spec.embedder, spec.dimension, table_name=spec.table_name)

    logger.info("VectorStore ready — table '%s' (%d existing rows), startup %.1fms.", spec.table_name, store.count(), startup_ms)

    # ── 3. Ingest ──────────────────────────────────────────────────────
    from vlab.src.core.ingestor import IngestionPipeline

    summary = IngestionPipeline(vector_store=store).run()

    # ── 4. Summary ─────────────────────────────────────────────────────
    _print_footer(summary, time.perf_counter() - t_start, startup_ms)
    return 0


def _print_header(settings: object) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()  # type: ignore[attr-defined]
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    print()
    print("=" * 60)
    print("  VIRTUAL LAB ASSISTANT — Vector Database Setup & Ingestion")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                 # type: ignore[attr-defined]
    print(f"  Embeddings   : {settings.EMBED_PROVIDER}")      # type: ignore[attr-defined]
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")        # type: ignore[attr-defined]
    print(f"  Source dir   : {settings.DOCS_DIR}")            # type: ignore[attr-defined]
    print(f"  Chunking     : {settings.CHUNK_SIZE} chars / {settings.CHUNK_OVERLAP} overlap")  # type: ignore[attr-defined]
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(summary: dict, elapsed: float, startup_ms: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Total files scanned  : {summary['total_files']}")
    print(f"  Files skipped (cache): {summary['files_skipped']}")
    print(f"  Total chunks stored  : {summary['total_chunks']}")
    print("-" * 60)
    print(f"  Startup time         : {startup_ms:>8.1f}ms")
    print(f"  Processing time      : {elapsed - startup_ms / 1000:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


if __name__ == "__main__":
    sys.exit(main())
