"""
Shared fixtures and fakes.

The environment is seeded *before* any ``vlab`` module is imported:
``vlab.config.settings`` builds its singleton at import time and the
API key is required.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TMP_ROOT = Path(tempfile.mkdtemp(prefix="vlab-tests-"))

os.environ.setdefault("GOOGLE_API_KEY", "test-key-1234")
os.environ["ENV"] = "dev"
os.environ["EMBED_PROVIDER"] = "google"
os.environ["LANCEDB_PATH"] = str(_TMP_ROOT / "lancedb")
os.environ["DATA_PROCESSED_DIR"] = str(_TMP_ROOT / "processed")
os.environ["DOCS_DIR"] = str(_TMP_ROOT / "docs")
os.environ["PUBLIC_IMAGES_DIR"] = str(_TMP_ROOT / "public-images-missing")
os.environ.pop("TAVILY_API_KEY", None)
os.environ.pop("MONGO_URI", None)
os.environ.pop("GEMINI_MODEL", None)
os.environ.pop("LOG_LEVEL", None)

import pytest  # noqa: E402


# ══════════════════════════════════════════════════════════════════════
#  FAKES
# ══════════════════════════════════════════════════════════════════════


class FakeVectorStore:
    """Returns canned rows and records every search call."""

    def __init__(self, texts: list[str] | None = None, table_name: str = "experiment_docs") -> None:
        self.rows = [{"text": t, "source_file": "doc.txt", "chunk_index": i} for i, t in enumerate(texts or [])]
        self.table_name = table_name
        self.calls: list[dict] = []
        self.added: list[tuple[list[str], list[dict]]] = []

    def count(self) -> int:
        return len(self.rows) + sum(len(texts) for texts, _ in self.added)

    def search(self, query_text: str, limit: int = 5) -> list[dict]:
        self.calls.append({"query_text": query_text, "limit": limit})
        return self.rows[:limit]

    def add_documents(self, texts: list[str], metadatas: list[dict]) -> int:
        self.added.append((list(texts), list(metadatas)))
        return len(texts)


class FakeGenerator:
    """Replays scripted answers (the last one repeats) and records calls."""

    def __init__(self, *answers: str, error: Exception | None = None) -> None:
        self.answers = list(answers) or ["A grounded answer."]
        self.error = error
        self.calls: list[dict] = []

    async def generate(self, question: str, context: str, history: str = "", allow_general: bool = False) -> str:
        self.calls.append({"question": question, "context": context, "history": history, "allow_general": allow_general})
        if self.error is not None:
            raise self.error
        if len(self.answers) > 1:
            return self.answers.pop(0)
        return self.answers[0]


class FakeWebSearch:
    def __init__(self, results: list[dict] | None = None) -> None:
        self.results = results or []
        self.queries: list[str] = []

    def search(self, query: str) -> list[dict]:
        self.queries.append(query)
        return list(self.results)


class InMemorySessionManager:
    def __init__(self, sessions: dict[str, list[dict]] | None = None) -> None:
        self.sessions: dict[str, list[dict]] = sessions or {}

    async def get_history(self, session_id: str, limit: int | None = None) -> list[dict]:
        messages = self.sessions.get(session_id, [])
        return messages[-limit:] if limit else list(messages)

    async def add_message(self, session_id: str, role: str, content: str) -> None:
        self.sessions.setdefault(session_id, []).append({"role": role, "content": content})

    async def clear_session(self, session_id: str) -> bool:
        return self.sessions.pop(session_id, None) is not None


# ══════════════════════════════════════════════════════════════════════
#  FIXTURES
# ══════════════════════════════════════════════════════════════════════


@pytest.fixture
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def sessions() -> InMemorySessionManager:
    return InMemorySessionManager()
