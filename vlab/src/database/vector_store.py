"""
Virtual Lab Assistant - LabVectorStore
=======================================
OOP wrapper around LanceDB providing a clean interface for:
  • Table creation with a strict PyArrow schema
  • Document insertion (embedding + metadata) with batching
  • Vector similarity search

Design decisions:
  • **Singleton DB connection** — ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per path to avoid file-lock issues.
  • **Dependency Injection** — the embedder is injected, never
    hard-coded, so tests can use a deterministic fake.
  • **Fixed-width vectors** — the schema pins the vector width to the
    embedder's dimension; the google (768-d) and local (384-d)
    providers therefore live in separate tables.

Usage:
    from vlab.src.core.embeddings import build_embedder
    from vlab.src.database.vector_store import LabVectorStore

    spec = build_embedder()
    store = LabVectorStore(spec.embedder, spec.dimension, table_name=spec.table_name)
    store.add_documents(texts=[...], metadatas=[...])
    results = store.search("list the apparatus", limit=8)
"""

from __future__ import annotations

import threading

import lancedb
import pyarrow as pa

from vlab.config.settings import settings
from vlab.src.core.embeddings import Embedder
from vlab.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
DocumentMetadata = dict[str, str | int]
DocumentRecord = dict[str, str | int | list[float]]
SearchResult = dict[str, str | int | float | list[float]]

# ── Constants ──────────────────────────────────────────────────────────
_EMBED_BATCH_SIZE = 64
_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def build_schema(dimension: int) -> pa.Schema:
    """LanceDB table schema with a *dimension*-wide float32 vector column."""
    return pa.schema([
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("text", pa.utf8()),
        pa.field("source_file", pa.utf8()),
        pa.field("chunk_index", pa.int32()),
    ])


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """Return a **singleton** ``lancedb.DBConnection`` for *db_path* (thread-safe)."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


class LabVectorStore:
    """
    High-level abstraction over a LanceDB vector table.

    Parameters
    ----------
    embedder : Embedder
        Any object exposing ``embed_documents`` and ``embed_query``.
    dimension
        Width of the embedder's vectors.
    db_path
        Override the database directory.  Defaults to ``settings.LANCEDB_PATH``.
    table_name
        Override the table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.
    """

    __slots__ = ("embedder", "dimension", "_db_path", "_table_name", "db", "table")

    def __init__(self, embedder: Embedder, dimension: int, db_path: str | None = None, table_name: str | None = None) -> None:
        self.embedder: Embedder = embedder
        self.dimension = dimension
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self.db: lancedb.DBConnection | None = None
        self.table: lancedb.table.Table | None = None
        self._connect()


    @property
    def table_name(self) -> str:
        return self._table_name


    def _connect(self) -> None:
        """Open (or re-use) the LanceDB connection and initialise the table."""
        try:
            self.db = _get_connection(self._db_path)

            if self._table_name in self.db.table_names():
                self.table = self.db.open_table(self._table_name)
                logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())
            else:
                self.table = self.db.create_table(self._table_name, schema=build_schema(self.dimension))
                logger.info("Created new table '%s' (dimension=%d).", self._table_name, self.dimension)

        except OSError as exc:
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise


    def add_documents(self, texts: list[str], metadatas: list[DocumentMetadata]) -> int:
        """
        Embed a batch of text chunks and persist them with metadata.

        Returns
        -------
        int
            Number of rows added.

        Raises
        ------
        ValueError
            If ``texts`` and ``metadatas`` have mismatched lengths.
        RuntimeError
            If the table has not been initialised.
        """
        if len(texts) != len(metadatas):
            raise ValueError(f"Length mismatch: {len(texts)} texts vs {len(metadatas)} metadatas.")
        if self.table is None:
            raise RuntimeError("Vector table is not initialised.")
        if not texts:
            return 0

        logger.info("Embedding %d chunks in batches of %d …", len(texts), _EMBED_BATCH_SIZE)

        all_vectors: list[list[float]] = []
        for i in range(0, len(texts), _EMBED_BATCH_SIZE):
            batch = texts[i : i + _EMBED_BATCH_SIZE]
            try:
                all_vectors.extend(self.embedder.embed_documents(batch))
            except Exception as exc:
                logger.error("Embedding batch %d–%d failed: %s", i, i + len(batch) - 1, exc)
                raise

        records: list[DocumentRecord] = [
            {"vector": vec, "text": txt, "source_file": str(meta.get("source_file", "unknown")), "chunk_index": int(meta.get("chunk_index", 0))}
            for txt, vec, meta in zip(texts, all_vectors, metadatas)
        ]

        try:
            self.table.add(records)
        except OSError as exc:
            logger.error("Failed to write records to LanceDB: %s", exc)
            raise

        logger.info("Added %d chunks. Table '%s' now has %d total rows.", len(records), self._table_name, self.table.count_rows())
        return len(records)


    def search(self, query_text: str, limit: int = 5) -> list[SearchResult]:
        """
        Embed *query_text* and return the *limit* nearest rows.

        Each row carries ``text``, ``source_file``, ``chunk_index`` and
        LanceDB's ``_distance``.
        """
        if self.table is None:
            raise RuntimeError("Vector table is not initialised.")

        try:
            query_vector = self.embedder.embed_query(query_text)
        except Exception as exc:
            logger.error("Failed to embed query: %s", exc)
            raise

        results: list[SearchResult] = self.table.search(query_vector).limit(limit).to_list()
        logger.info("Search returned %d results (limit=%d).", len(results), limit)
        return results


    def count(self) -> int:
        """Return the total number of rows in the table."""
        if self.table is None:
            return 0
        return self.table.count_rows()


    def drop_table(self) -> None:
        """Drop the vector table (used before a full re-ingestion)."""
        if self.db is None:
            logger.warning("No database connection; nothing to drop.")
            return
        try:
            self.db.drop_table(self._table_name)
            self.table = None
            logger.info("Dropped table '%s'.", self._table_name)
        except (ValueError, FileNotFoundError):
            logger.warning("Table '%s' does not exist — nothing to drop.", self._table_name)


    def __repr__(self) -> str:
        return f"LabVectorStore(db='{self._db_path}', table='{self._table_name}', rows={self.count()})"
