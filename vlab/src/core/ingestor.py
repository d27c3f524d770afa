"""
Virtual Lab Assistant - IngestionPipeline
==========================================
Reads the experiment documents, cleans and chunks them, and persists
the chunks into the ``LabVectorStore``.

Key design decisions:
    • **Dependency Injection** – receives an initialised ``LabVectorStore``.
    • **DOCX sniffing** – a file is parsed with ``python-docx`` only when
      it starts with the ZIP signature (``PK``); anything else is read
      as plain text, so mislabelled exports still ingest.
    • **Chunking** – LangChain's ``RecursiveCharacterTextSplitter`` with
      ``CHUNK_SIZE`` / ``CHUNK_OVERLAP`` from settings.
    • **Caching** – MD5 file hashes, kept per LanceDB table, skip files
      already stored in that table.

Usage:
    from vlab.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(vector_store)
    result   = pipeline.run()
"""

from __future__ import annotations

import hashlib
import json
import time
from pathlib import Path
from typing import Any

from langchain_text_splitters import RecursiveCharacterTextSplitter

from vlab.config.settings import settings
from vlab.src.database.vector_store import LabVectorStore
from vlab.src.utils.logger import get_logger
from vlab.src.utils.text_utils import clean_text

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = {".docx", ".txt", ".md"}
_ZIP_SIGNATURE = b"PK"
HASH_CACHE_FILENAME = "ingestion_hashes.json"


class IngestionPipeline:
    """
    End-to-end document ingestion: read → clean → chunk → embed → store.

    Parameters
    ----------
    vector_store
        An initialised ``LabVectorStore`` instance (injected).
    source_dir
        Override the source directory. Defaults to ``settings.DOCS_DIR``.
    cache_dir
        Override where the hash cache lives. Defaults to ``settings.DATA_PROCESSED_DIR``.
    """

    def __init__(self, vector_store: LabVectorStore, source_dir: Path | None = None, cache_dir: Path | None = None) -> None:
        self._store = vector_store
        self._source_dir = Path(source_dir or settings.DOCS_DIR)
        self._splitter = RecursiveCharacterTextSplitter(chunk_size=settings.CHUNK_SIZE, chunk_overlap=settings.CHUNK_OVERLAP)

        # Cache layout: {table_name: {file_name: md5}}
        self._hash_cache_path: Path = Path(cache_dir or settings.DATA_PROCESSED_DIR) / HASH_CACHE_FILENAME
        self._hash_cache: dict[str, dict[str, str]] = self._load_hash_cache()
        self._table_hashes: dict[str, str] = self._hash_cache.setdefault(vector_store.table_name, {})

        # A fresh or dropped table holds none of the cached files.
        if self._table_hashes and vector_store.count() == 0:
            logger.warning("Table '%s' is empty — ignoring %d cached hash(es).", vector_store.table_name, len(self._table_hashes))
            self._table_hashes.clear()

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    def run(self) -> dict[str, Any]:
        """
        Ingest every supported file in the source directory.

        Returns
        -------
        dict
            ``total_files``, ``files_processed``, ``files_skipped``,
            ``total_chunks``, ``elapsed_seconds``.
        """
        t_start = time.perf_counter()

        if not self._source_dir.exists():
            logger.warning("Source directory does not exist: %s", self._source_dir)
            return self._summary(0, 0, 0, 0, time.perf_counter() - t_start)

        files = sorted(f for f in self._source_dir.iterdir() if f.is_file() and f.suffix.lower() in _SUPPORTED_EXTENSIONS)
        if not files:
            logger.warning("No supported files found in %s", self._source_dir)
            return self._summary(0, 0, 0, 0, time.perf_counter() - t_start)

        logger.info("Starting ingestion — %d file(s) found in %s", len(files), self._source_dir)

        total_chunks = 0
        files_processed = 0
        files_skipped = 0

        for filepath in files:
            try:
                result = self._ingest_file(filepath)
            except Exception:
                logger.exception("Failed to ingest file: %s", filepath.name)
                continue
            if result == -1:
                files_skipped += 1
            else:
                total_chunks += result
                files_processed += 1

        self._save_hash_cache()

        elapsed = time.perf_counter() - t_start
        logger.info("Ingestion complete — %d file(s) processed, %d skipped, %d chunk(s) stored in %.2fs.", files_processed, files_skipped, total_chunks, elapsed)
        return self._summary(len(files), files_processed, files_skipped, total_chunks, elapsed)

    # ══════════════════════════════════════════════════════════════════
    #  PER-FILE PROCESSING
    # ══════════════════════════════════════════════════════════════════

    def _ingest_file(self, filepath: Path) -> int:
        """Return the number of chunks added, or ``-1`` on a cache hit."""
        file_hash = self.compute_file_hash(filepath)
        if self._table_hashes.get(filepath.name) == file_hash:
            logger.info("CACHE_HIT — Skipping unchanged file: %s", filepath.name)
            return -1

        t_file = time.perf_counter()
        raw_text = self.read_document(filepath)
        if not raw_text.strip():
            logger.warning("Skipping empty file: %s", filepath.name)
            return 0

        chunks = self.chunk(clean_text(raw_text))
        logger.info("File '%s' → %d chunk(s).", filepath.name, len(chunks))

        metadatas = [{"source_file": filepath.name, "chunk_index": idx} for idx in range(len(chunks))]
        added = self._store.add_documents(chunks, metadatas)

        logger.info("File '%s' complete in %.1fms.", filepath.name, (time.perf_counter() - t_file) * 1000)
        self._table_hashes[filepath.name] = file_hash
        return added


    def chunk(self, text: str) -> list[str]:
        """Split *text* into overlapping chunks of at most ``CHUNK_SIZE`` characters."""
        return [c.strip() for c in self._splitter.split_text(text) if c.strip()]

    # ══════════════════════════════════════════════════════════════════
    #  FILE READING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def read_document(filepath: Path) -> str:
        """
        Return the text of *filepath*.

        ZIP-signed files are parsed as DOCX (paragraphs, then table
        cells); everything else is decoded as UTF-8 text.
        """
        with open(filepath, "rb") as f:
            header = f.read(len(_ZIP_SIGNATURE))

        if header == _ZIP_SIGNATURE:
            from docx import Document

            document = Document(str(filepath))
            parts = [p.text for p in document.paragraphs]
            for table in document.tables:
                for row in table.rows:
                    parts.append(" | ".join(cell.text.strip() for cell in row.cells))
            return "\n".join(parts)

        return filepath.read_text(encoding="utf-8", errors="replace")

    # ══════════════════════════════════════════════════════════════════
    #  MD5 CACHING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def compute_file_hash(filepath: Path) -> str:
        """Return the MD5 hex digest of a file's contents."""
        hasher = hashlib.md5()
        with open(filepath, "rb") as f:
            for block in iter(lambda: f.read(8192), b""):
                hasher.update(block)
        return hasher.hexdigest()


    def _load_hash_cache(self) -> dict[str, dict[str, str]]:
        if not self._hash_cache_path.exists():
            return {}
        try:
            data = json.loads(self._hash_cache_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Corrupt hash cache — starting fresh.")
            return {}
        if not isinstance(data, dict):
            logger.warning("Unexpected hash cache layout — starting fresh.")
            return {}
        # Entries that are not per-table mappings predate table keying.
        return {table: hashes for table, hashes in data.items() if isinstance(hashes, dict)}


    def _save_hash_cache(self) -> None:
        self._hash_cache_path.parent.mkdir(parents=True, exist_ok=True)
        self._hash_cache_path.write_text(json.dumps(self._hash_cache, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Hash cache saved to %s", self._hash_cache_path)


    @staticmethod
    def _summary(total: int, processed: int, skipped: int, chunks: int, elapsed: float) -> dict[str, Any]:
        return {
            "total_files": total,
            "files_processed": processed,
            "files_skipped": skipped,
            "total_chunks": chunks,
            "elapsed_seconds": round(elapsed, 2),
        }
