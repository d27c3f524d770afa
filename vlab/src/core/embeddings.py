"""
Virtual Lab Assistant - Embedding Provider Selection
=====================================================
Builds the embedder used by both ingestion and retrieval, driven by
``settings.EMBED_PROVIDER``:

  • ``"google"`` → ``GoogleGenerativeAIEmbeddings`` (hosted, 768-d).
  • ``"local"``  → ``LocalEmbedder`` around a sentence-transformers
    MiniLM model (mean-pooled, L2-normalised, 384-d, no API key).

The two providers produce vectors of different widths, so each one
reads and writes its own LanceDB table (the local one gets a
``_local`` suffix).

Usage:
    from vlab.src.core.embeddings import build_embedder
    spec = build_embedder()
    store = LabVectorStore(spec.embedder, spec.dimension, table_name=spec.table_name)
"""

from __future__ import annotations

from typing import NamedTuple, Protocol, runtime_checkable

from vlab.config.settings import settings
from vlab.src.utils.logger import get_logger

logger = get_logger(__name__)

GOOGLE_DIMENSION = 768
LOCAL_DIMENSION = 384
LOCAL_TABLE_SUFFIX = "_local"


@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


class EmbedderSpec(NamedTuple):
    embedder: Embedder
    dimension: int
    table_name: str


class LocalEmbedder:
    """
    sentence-transformers model behind the ``Embedder`` protocol.

    The model is loaded on first use so that importing this module (or
    building the app with the google provider) stays cheap.
    """

    __slots__ = ("_model_name", "_model")

    def __init__(self, model_name: str | None = None) -> None:
        self._model_name = model_name or settings.LOCAL_EMBEDDING_MODEL
        self._model = None


    def _get_model(self) -> object:
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading local embedding model: %s", self._model_name)
            self._model = SentenceTransformer(self._model_name)
        return self._model


    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = self._get_model().encode(texts, normalize_embeddings=True, convert_to_numpy=True)  # type: ignore[attr-defined]
        return [vector.tolist() for vector in vectors]


    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]


    def __repr__(self) -> str:
        return f"LocalEmbedder(model='{self._model_name}')"


def build_embedder(provider: str | None = None) -> EmbedderSpec:
    """
    Create the embedder for *provider* (defaults to ``settings.EMBED_PROVIDER``).

    Raises
    ------
    ValueError
        If the provider name is unknown.
    """
    provider = (provider or settings.EMBED_PROVIDER).strip().lower()
    base_table = settings.LANCEDB_TABLE_NAME

    if provider in ("local", "xenova"):
        logger.info("Embedding provider: local (%s, %d-d).", settings.LOCAL_EMBEDDING_MODEL, LOCAL_DIMENSION)
        return EmbedderSpec(LocalEmbedder(), LOCAL_DIMENSION, base_table + LOCAL_TABLE_SUFFIX)

    if provider == "google":
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
        logger.info("Embedding provider: google (%s, %d-d).", settings.EMBEDDING_MODEL, GOOGLE_DIMENSION)
        return EmbedderSpec(embedder, GOOGLE_DIMENSION, base_table)

    raise ValueError(f"Unknown EMBED_PROVIDER '{provider}'. Use 'google' or 'local'.")
