"""
Virtual Lab Assistant - Centralized Configuration
==================================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  ``GEMINI_API_KEY`` is accepted as an alias for deployments that already
  export it.  If neither is present, Pydantic raises a ``ValidationError``
  at import time.
- ``TAVILY_API_KEY`` and ``MONGO_URI`` are optional ``SecretStr`` values;
  when unset, restricted web search and session history are disabled.

Providers
---------
``EMBED_PROVIDER`` selects the embedding backend:
  • ``"google"`` → Gemini embeddings (768-d, hosted, needs the API key)
  • ``"local"``  → sentence-transformers MiniLM (384-d, no key).
    ``"xenova"`` is accepted as a legacy alias.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini chat + embeddings).  **Required.**
    GEMINI_MODEL : str | None
        Preferred chat model; tried before ``LLM_FALLBACK_MODELS``.
    EMBED_PROVIDER : Literal["google", "local"]
        Embedding backend.  Also decides the LanceDB table suffix.
    ALLOW_GENERAL_FALLBACK : bool
        Let the first generation pass use general domain knowledge.
    WEB_SEARCH_DOMAINS : list[str]
        The only domains the restricted web search may return.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DOCS_DIR: Path = BASE_DIR / "data" / "docs"
    DATA_PROCESSED_DIR: Path = BASE_DIR / "data" / "processed"
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"
    IMAGES_DIR: Path = BASE_DIR / "images"
    PUBLIC_IMAGES_DIR: Path = BASE_DIR / "public" / "images"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    # Overrides the ENV-derived log level when set.
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] | None = None

    # ── API Keys ───────────────────────────────────────────────────────
    GOOGLE_API_KEY: SecretStr = Field(validation_alias=AliasChoices("GOOGLE_API_KEY", "GEMINI_API_KEY"))
    TAVILY_API_KEY: SecretStr | None = None

    # ── Model Configuration ────────────────────────────────────────────
    GEMINI_MODEL: str | None = None
    LLM_FALLBACK_MODELS: list[str] = ["gemini-2.0-flash", "gemini-1.5-flash", "gemini-1.5-flash-8b", "gemini-1.5-pro"]
    LLM_TEMPERATURE: float = 0.2
    EMBED_PROVIDER: Literal["google", "local"] = "google"
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    LOCAL_EMBEDDING_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"

    # ── LanceDB ────────────────────────────────────────────────────────
    LANCEDB_TABLE_NAME: str = "experiment_docs"

    # ── Ingestion Parameters ───────────────────────────────────────────
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200

    # ── Retrieval ──────────────────────────────────────────────────────
    SEARCH_RESULTS_LIMIT: int = 5
    FOCUSED_SEARCH_LIMIT: int = 20
    DEFAULT_SEARCH_LIMIT: int = 8
    SPARSE_CONTEXT_CHARS: int = 200
    ALLOW_GENERAL_FALLBACK: bool = True

    # ── Restricted Web Search ──────────────────────────────────────────
    WEB_SEARCH_ENABLED: bool = True
    WEB_SEARCH_DOMAINS: list[str] = ["vlab.co.in", "iitr.ac.in", "electronics-tutorials.ws", "allaboutcircuits.com"]
    WEB_SEARCH_MAX_RESULTS: int = 3

    # ── MongoDB (optional session history) ─────────────────────────────
    MONGO_URI: SecretStr | None = None
    MONGO_DB_NAME: str = "vlab"
    SESSION_HISTORY_LIMIT: int = 6

    # ── HTTP ───────────────────────────────────────────────────────────
    CORS_ORIGINS: list[str] = ["*"]

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("EMBED_PROVIDER", mode="before")
    @classmethod
    def _normalise_provider(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "xenova":
                return "local"
        return v


    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalise_log_level(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().upper() or None
        return v


    @field_validator("LLM_TEMPERATURE")
    @classmethod
    def _temperature_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"LLM_TEMPERATURE must be 0.0–1.0, got {v}")
        return v


    @field_validator("CHUNK_SIZE")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 100:
            raise ValueError(f"CHUNK_SIZE must be ≥ 100, got {v}")
        return v


    @model_validator(mode="after")
    def _overlap_below_size(self) -> Settings:
        if not 0 <= self.CHUNK_OVERLAP < self.CHUNK_SIZE:
            raise ValueError(f"CHUNK_OVERLAP must be in [0, CHUNK_SIZE), got {self.CHUNK_OVERLAP}")
        return self


    @property
    def web_search_active(self) -> bool:
        return self.WEB_SEARCH_ENABLED and self.TAVILY_API_KEY is not None


    @property
    def sessions_active(self) -> bool:
        return self.MONGO_URI is not None

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True)


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from vlab.config.settings import settings
settings = Settings()
