"""
Virtual Lab Assistant - Chat Pipeline
======================================
Orchestrates question answering for the virtual-lab portal: routing,
retrieval over the lab documents, restricted web augmentation, Gemini
generation and image linking.

Architecture (OOP)
------------------
``MongoSessionManager``
    Optional async chat-history store backed by ``motor``.  Only built
    when ``MONGO_URI`` is configured.

``GeminiGenerator``
    Prompt assembly + LangChain ``ChatGoogleGenerativeAI`` invocation.
    Walks a deduplicated list of candidate models and returns the first
    successful answer.

``LabAssistant``
    Stateless pipeline orchestrator.  Flow:
        1. Greeting → fixed welcome text (no retrieval)
        2. Color-code request → deterministic answer (no LLM)
        3. Fetch history → refine follow-up questions
        4. Retrieve → augmented vector search, focus-aware ordering
        5. Sparse context → restricted web search
        6. Generate → first pass, refusal retry with general knowledge
        7. Images → collect + rewrite image references as embeds
        8. Save → persist the turn (when sessions are enabled)

Usage:
    from vlab.src.core.rag_engine import LabAssistant
    assistant = LabAssistant(vector_store)
    result = await assistant.answer("List the apparatus for this experiment.")
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TypedDict

import motor.motor_asyncio

from vlab.config.prompt_templates import AUGMENT_RULES, BASE_AUGMENT_TERMS, GREETING_RESPONSE, INSTRUCTION_CONTEXT_ONLY, INSTRUCTION_THEORY_ONLY, INSTRUCTION_THEORY_WITH_FALLBACK, INSTRUCTION_WITH_FALLBACK, NO_ANSWER_RESPONSE, RAG_PROMPT_TEMPLATE, UNKNOWN_ANSWER_PATTERNS
from vlab.config.settings import settings
from vlab.src.core.color_code import color_code, extract_ohm_values, format_color_code_line
from vlab.src.core.web_search import RestrictedWebSearch, format_web_context
from vlab.src.utils.logger import get_logger
from vlab.src.utils.text_utils import find_image_references, list_image_paths, match_images, normalize_image_links

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
ChatMessage = dict[str, str]
SearchResult = dict[str, str | int | float | list[float]]


class ChatResponse(TypedDict):
    answer: str
    sources: list[str]
    images: list[str]


class RetrievedContext(TypedDict):
    context: str
    sources: list[str]
    is_sparse: bool
    focused: bool


# ── Routing patterns ───────────────────────────────────────────────────
_GREETING_RE = re.compile(r"^(hi|hello|hey|hlo|hola|namaste|good\s*(morning|afternoon|evening)|yo|sup)[!.?,\s]*$", re.IGNORECASE)
_COLOR_CODE_RE = re.compile(r"\bcolou?r[\s-]*(code|coding|bands?)\b|\bbands?\s+colou?rs?\b|\bresistor\s+colou?rs?\b", re.IGNORECASE)
_FOCUS_RE = re.compile(r"(procedure|precaution|apparatus|equipment|objective|aim|theory|definition|principle)s?", re.IGNORECASE)
_THEORY_RE = re.compile(r"(theory|definition|principle)", re.IGNORECASE)
_AUGMENT_RULES = [(re.compile(pattern, re.IGNORECASE), terms) for pattern, terms in AUGMENT_RULES]
_RE_WHITESPACE = re.compile(r"\s+")

_CONTEXT_SEPARATOR = "\n\n---\n\n"

# ── Follow-up detection ────────────────────────────────────────────────
_FOLLOW_UP_FILLERS: set[str] = {"what", "about", "and", "the", "it", "its", "is", "are", "of", "for", "how", "this", "that", "please", "tell", "me", "more", "then", "why"}
_FOLLOW_UP_MIN_TOKENS = 3


# ══════════════════════════════════════════════════════════════════════
#  ROUTING & QUERY HELPERS
# ══════════════════════════════════════════════════════════════════════


def is_greeting(question: str) -> bool:
    return bool(_GREETING_RE.match(question.strip()))


def is_color_code_request(question: str) -> bool:
    return bool(_COLOR_CODE_RE.search(question))


def build_color_code_answer(question: str) -> str:
    """
    Answer a color-code question deterministically.

    One line per extracted value that has a code; values outside the
    representable range are left out.  ``NO_ANSWER_RESPONSE`` when no
    value produced a code.
    """
    lines: list[str] = []
    for ohms in extract_ohm_values(question):
        bands = color_code(ohms)
        if bands is None:
            logger.info("[COLOR] %s Ω is outside the representable range — skipped.", ohms)
            continue
        lines.append(format_color_code_line(ohms, bands))

    if not lines:
        logger.info("[COLOR] No representable value in question — answering with fallback.")
        return NO_ANSWER_RESPONSE
    return "\n".join(lines)


def augment_query(query: str) -> str:
    """Append the base lab terms plus every matching topic's search terms."""
    terms: list[str] = list(BASE_AUGMENT_TERMS)
    for pattern, extra in _AUGMENT_RULES:
        if pattern.search(query):
            terms.extend(extra)
    return f"{query} {' '.join(terms)}".strip()


def refine_query(query: str, history: list[ChatMessage]) -> str:
    """
    Expand short follow-up questions with the previous user question.

    ``"and the precautions?"`` after ``"procedure for the DC motor test"``
    becomes ``"procedure for the DC motor test and the precautions?"``.
    """
    normalised = _RE_WHITESPACE.sub(" ", query).strip()
    if not history:
        return normalised

    meaningful = [t for t in normalised.split() if t.lower().strip("?.,!") not in _FOLLOW_UP_FILLERS and len(t) > 1]
    if len(meaningful) >= _FOLLOW_UP_MIN_TOKENS:
        return normalised

    previous = [m["content"] for m in history if m.get("role") == "user"]
    if not previous:
        return normalised
    return f"{previous[-1]} {normalised}"


def select_instruction(question: str, allow_general: bool) -> str:
    if _THEORY_RE.search(question):
        return INSTRUCTION_THEORY_WITH_FALLBACK if allow_general else INSTRUCTION_THEORY_ONLY
    return INSTRUCTION_WITH_FALLBACK if allow_general else INSTRUCTION_CONTEXT_ONLY


def looks_unknown(answer: str) -> bool:
    lowered = (answer or "").lower()
    return any(pattern in lowered for pattern in UNKNOWN_ANSWER_PATTERNS)


def format_history(messages: list[ChatMessage]) -> str:
    lines = [f"{'User' if m.get('role') == 'user' else 'Assistant'}: {m.get('content', '')}" for m in messages]
    return "\n".join(lines)


# ══════════════════════════════════════════════════════════════════════
#  MONGODB SINGLETON CLIENT
# ══════════════════════════════════════════════════════════════════════

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def _get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        if settings.MONGO_URI is None:
            raise RuntimeError("MONGO_URI is not configured; session history is unavailable.")
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value())
        logger.info("MongoDB async client created (singleton).")
    return _mongo_client


# ══════════════════════════════════════════════════════════════════════
#  MONGO SESSION MANAGER
# ══════════════════════════════════════════════════════════════════════


class MongoSessionManager:
    """
    Async chat-history store backed by MongoDB via ``motor``.

    Every query filters by ``session_id``, so one user can never read
    another's history.

    Collection schema (``sessions``)::

        {
            "session_id": str,
            "messages": [{"role": str, "content": str}, ...],
            "created_at": datetime,
            "updated_at": datetime
        }
    """

    __slots__ = ("_collection",)

    def __init__(self, collection: object | None = None, collection_name: str = "sessions") -> None:
        if collection is None:
            collection = _get_mongo_client()[settings.MONGO_DB_NAME][collection_name]
        self._collection = collection


    async def get_history(self, session_id: str, limit: int | None = None) -> list[ChatMessage]:
        """Retrieve the last *limit* messages for a session."""
        limit = limit or settings.SESSION_HISTORY_LIMIT
        doc = await self._collection.find_one({"session_id": session_id}, {"messages": {"$slice": -limit}})  # type: ignore[attr-defined]
        if doc is None:
            return []
        return doc.get("messages", [])


    async def add_message(self, session_id: str, role: str, content: str) -> None:
        """Append a message (upsert on first write)."""
        now = datetime.now(timezone.utc)
        message: ChatMessage = {"role": role, "content": content}
        await self._collection.update_one({"session_id": session_id}, {"$push": {"messages": message}, "$set": {"updated_at": now}, "$setOnInsert": {"created_at": now}}, upsert=True)  # type: ignore[attr-defined]


    async def clear_session(self, session_id: str) -> bool:
        """Delete a session entirely.  Returns True if removed."""
        result = await self._collection.delete_one({"session_id": session_id})  # type: ignore[attr-defined]
        return result.deleted_count > 0


# ══════════════════════════════════════════════════════════════════════
#  GEMINI GENERATOR
# ══════════════════════════════════════════════════════════════════════


def _content_text(response: object) -> str:
    """Extract plain text from a LangChain message (string or list-of-parts content)."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [p.get("text", "") if isinstance(p, dict) else str(p) for p in content]
        return "".join(parts)
    return str(content)


class GeminiGenerator:
    """
    Grounded answer generation with model fallback.

    Parameters
    ----------
    preferred_model
        Tried first.  Defaults to ``settings.GEMINI_MODEL``.
    fallback_models
        Tried in order after the preferred one.  Defaults to
        ``settings.LLM_FALLBACK_MODELS``.
    model_factory
        ``name -> chat model`` callable.  Defaults to building
        ``ChatGoogleGenerativeAI`` instances.
    """

    __slots__ = ("_candidates", "_model_factory", "_models")

    def __init__(self, preferred_model: str | None = None, fallback_models: list[str] | None = None, model_factory: Callable[[str], object] | None = None) -> None:
        preferred = preferred_model if preferred_model is not None else settings.GEMINI_MODEL
        fallbacks = fallback_models if fallback_models is not None else settings.LLM_FALLBACK_MODELS
        ordered = ([preferred] if preferred else []) + list(fallbacks)
        self._candidates: list[str] = list(dict.fromkeys(m for m in ordered if m))
        self._model_factory = model_factory or self._build_chat_model
        self._models: dict[str, object] = {}


    @property
    def candidates(self) -> list[str]:
        return list(self._candidates)


    @staticmethod
    def _build_chat_model(model_name: str) -> object:
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(model=model_name, temperature=settings.LLM_TEMPERATURE, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())


    def _get_model(self, model_name: str) -> object:
        if model_name not in self._models:
            self._models[model_name] = self._model_factory(model_name)
            logger.info("[LLM] Model initialised: %s (temperature=%.1f)", model_name, settings.LLM_TEMPERATURE)
        return self._models[model_name]


    @staticmethod
    def build_prompt(question: str, context: str, history: str = "", allow_general: bool = False) -> str:
        return RAG_PROMPT_TEMPLATE.format(instruction=select_instruction(question, allow_general), context=context, history=history, question=question)


    async def generate(self, question: str, context: str, history: str = "", allow_general: bool = False) -> str:
        """
        Generate a Markdown answer for *question* grounded in *context*.

        Raises
        ------
        RuntimeError
            When every candidate model fails.
        """
        from langchain_core.messages import HumanMessage

        messages = [HumanMessage(content=self.build_prompt(question, context, history, allow_general))]
        last_error: Exception | None = None

        for model_name in self._candidates:
            t_llm = time.perf_counter()
            try:
                response = await self._get_model(model_name).ainvoke(messages)  # type: ignore[attr-defined]
            except Exception as exc:
                last_error = exc
                logger.warning("[LLM] %s failed: %s — trying next candidate.", model_name, exc)
                continue
            answer = _content_text(response)
            logger.info("[LLM] %s answered in %.1fms (%d chars, allow_general=%s).", model_name, (time.perf_counter() - t_llm) * 1000, len(answer), allow_general)
            return answer

        tried = ", ".join(self._candidates)
        raise RuntimeError(f"Failed to call Gemini. Tried: {tried}. Last error: {last_error}")


# ══════════════════════════════════════════════════════════════════════
#  LAB ASSISTANT
# ══════════════════════════════════════════════════════════════════════


class LabAssistant:
    """
    Orchestrates the chat pipeline: route → retrieve → augment → generate.

    Parameters
    ----------
    vector_store
        An initialised ``LabVectorStore`` (anything with ``search(query_text, limit)``).
    generator
        Optional custom ``GeminiGenerator``.
    web_search
        Optional ``RestrictedWebSearch``; None disables web augmentation.
    session_manager
        Optional ``MongoSessionManager``; None disables history.
    available_images
        Web paths of the published images.  Defaults to the contents of
        ``settings.PUBLIC_IMAGES_DIR``.
    """

    __slots__ = ("_store", "_generator", "_web_search", "_session", "_images")

    def __init__(self, vector_store: object, generator: GeminiGenerator | None = None, web_search: RestrictedWebSearch | None = None, session_manager: MongoSessionManager | None = None, available_images: list[str] | None = None) -> None:
        self._store = vector_store
        self._generator = generator or GeminiGenerator()
        self._web_search = web_search
        self._session = session_manager
        self._images = available_images if available_images is not None else list_image_paths(settings.PUBLIC_IMAGES_DIR)


    async def answer(self, question: str, session_id: str | None = None) -> ChatResponse:
        """
        Full pipeline for one question.

        Raises
        ------
        RuntimeError
            If generation fails on every candidate model.
        """
        t_start = time.perf_counter()
        question = question.strip()

        # ── 1. Greeting ───────────────────────────────────────────────
        if is_greeting(question):
            logger.info("[RAG] Greeting detected.")
            return {"answer": GREETING_RESPONSE, "sources": [], "images": []}

        # ── 2. Deterministic color-code answer ────────────────────────
        if is_color_code_request(question):
            logger.info("[RAG] Color-code request detected.")
            answer = build_color_code_answer(question)
            await self._save_turn(session_id, question, answer)
            return {"answer": answer, "sources": [], "images": []}

        # ── 3. History + query refinement ─────────────────────────────
        history = await self._get_history(session_id)
        search_query = refine_query(question, history)
        if search_query != question:
            logger.info("[RAG] Follow-up refined: '%s' → '%s'", question[:50], search_query[:80])

        # ── 4. Retrieve ───────────────────────────────────────────────
        t_search = time.perf_counter()
        retrieved = await asyncio.to_thread(self.retrieve_context, search_query)
        search_ms = (time.perf_counter() - t_search) * 1000
        context = retrieved["context"]
        sources = list(retrieved["sources"])

        # ── 5. Restricted web search on sparse context ────────────────
        if retrieved["is_sparse"] and self._web_search is not None:
            web_results = await asyncio.to_thread(self._web_search.search, search_query)
            web_block = format_web_context(web_results)
            if web_block:
                context = f"{context}{_CONTEXT_SEPARATOR}{web_block}" if context else web_block
                sources.extend(r["url"] for r in web_results)

        # ── 6. Generate (with refusal retry) ──────────────────────────
        history_str = format_history(history)
        allow_general = settings.ALLOW_GENERAL_FALLBACK or retrieved["is_sparse"]
        answer = await self._generator.generate(question, context, history_str, allow_general)

        if looks_unknown(answer):
            logger.info("[RAG] First pass looks like a refusal — retrying with general knowledge.")
            answer = await self._generator.generate(question, context, history_str, True)

        # ── 7. Images ─────────────────────────────────────────────────
        images = self._collect_images(question, retrieved["sources"], answer)
        answer = normalize_image_links(answer)

        # ── 8. Save ───────────────────────────────────────────────────
        await self._save_turn(session_id, question, answer)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Pipeline total: %.1fms (search=%.1f, sources=%d, images=%d)", total_ms, search_ms, len(sources), len(images))
        return {"answer": answer, "sources": sources, "images": images}

    # ══════════════════════════════════════════════════════════════════
    #  RETRIEVAL
    # ══════════════════════════════════════════════════════════════════

    def retrieve_context(self, query: str) -> RetrievedContext:
        """
        Vector search with query augmentation and focus-aware ordering.

        Steps:
            1. Detect focus keywords (procedure, apparatus, theory …).
            2. Augment the query with lab and per-topic search terms.
            3. Over-fetch (``FOCUSED_SEARCH_LIMIT`` or ``DEFAULT_SEARCH_LIMIT``).
            4. Drop empty and duplicate passages; focused queries put
               focus-matching passages first, order otherwise kept.
            5. Keep ``SEARCH_RESULTS_LIMIT`` snippets.
        """
        focused = bool(_FOCUS_RE.search(query))
        augmented = augment_query(query)
        limit = settings.FOCUSED_SEARCH_LIMIT if focused else settings.DEFAULT_SEARCH_LIMIT

        results: list[SearchResult] = self._store.search(query_text=augmented, limit=limit)  # type: ignore[attr-defined]

        seen: set[str] = set()
        prioritized: list[str] = []
        tail: list[str] = []
        for result in results:
            text = str(result.get("text", "")).strip()
            if not text or text in seen:
                continue
            seen.add(text)
            if focused and _FOCUS_RE.search(text):
                prioritized.append(text)
            else:
                tail.append(text)

        snippets = (prioritized + tail)[: settings.SEARCH_RESULTS_LIMIT]
        context = _CONTEXT_SEPARATOR.join(snippets)
        found_focused = focused and bool(prioritized)
        is_sparse = not found_focused and len(context) < settings.SPARSE_CONTEXT_CHARS

        logger.info("[RETRIEVE] %d raw → %d snippet(s), focused=%s (matched=%d), sparse=%s", len(results), len(snippets), focused, len(prioritized), is_sparse)
        return {"context": context, "sources": snippets, "is_sparse": is_sparse, "focused": found_focused}

    # ══════════════════════════════════════════════════════════════════
    #  IMAGES
    # ══════════════════════════════════════════════════════════════════

    def _collect_images(self, question: str, snippets: list[str], answer: str) -> list[str]:
        """Images cited by the answer, then published or passage images named in the question."""
        candidates = list(self._images)
        for snippet in snippets:
            candidates.extend(p for p in find_image_references(snippet) if p not in candidates)

        images = find_image_references(answer)
        images.extend(p for p in match_images(question, candidates) if p not in images)
        return images

    # ══════════════════════════════════════════════════════════════════
    #  SESSION HELPERS
    # ══════════════════════════════════════════════════════════════════

    async def _get_history(self, session_id: str | None) -> list[ChatMessage]:
        if self._session is None or not session_id:
            return []
        return await self._session.get_history(session_id)


    async def _save_turn(self, session_id: str | None, question: str, answer: str) -> None:
        if self._session is None or not session_id:
            return
        await self._session.add_message(session_id, "user", question)
        await self._session.add_message(session_id, "assistant", answer)


    async def clear_session(self, session_id: str) -> bool:
        """Forget a session's history.  False when sessions are disabled or unknown."""
        if self._session is None:
            return False
        return await self._session.clear_session(session_id)
