"""
Virtual Lab Assistant - API Routes
===================================
Thin controllers: validate the request, delegate to ``LabAssistant``,
shape the JSON response.  No retrieval or prompt logic lives here.

Endpoints:
    POST   /api/chat               → answer a question
    DELETE /api/chat/{session_id}  → forget a session's history
    GET    /api/health             → liveness + active providers
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from vlab.config.settings import settings
from vlab.src.core.rag_engine import LabAssistant
from vlab.src.utils.logger import get_logger

logger = get_logger(__name__)

MISSING_QUESTION_ERROR = "Missing 'question' in JSON body"

router = APIRouter(prefix="/api")


async def get_assistant(request: Request) -> LabAssistant:
    """
    Return the app's ``LabAssistant``, building it on first use.

    The factory opens LanceDB and the model clients, so it runs in a
    worker thread; the lock keeps concurrent first requests from
    building twice.
    """
    state = request.app.state
    if state.assistant is None:
        async with state.assistant_lock:
            if state.assistant is None:
                state.assistant = await asyncio.to_thread(state.assistant_factory)
                logger.info("[API] LabAssistant initialised.")
    return state.assistant


@router.post("/chat")
async def chat(request: Request) -> JSONResponse:
    """
    Body: ``{"question": str}`` (``"message"`` accepted too) and an
    optional ``"session_id"``.  Invalid JSON counts as an empty body.
    """
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    question = body.get("question")
    if question is None:
        question = body.get("message", "")
    if not isinstance(question, str) or not question.strip():
        return JSONResponse({"error": MISSING_QUESTION_ERROR}, status_code=400)

    session_id = body.get("session_id")
    if not isinstance(session_id, str) or not session_id.strip():
        session_id = None

    try:
        assistant = await get_assistant(request)
        result = await assistant.answer(question, session_id=session_id)
    except Exception as exc:
        logger.exception("[API] Chat request failed.")
        return JSONResponse({"error": str(exc) or "Unexpected error"}, status_code=500)

    return JSONResponse(dict(result))


@router.delete("/chat/{session_id}")
async def clear_chat(session_id: str, request: Request) -> JSONResponse:
    try:
        assistant = await get_assistant(request)
        cleared = await assistant.clear_session(session_id)
    except Exception as exc:
        logger.exception("[API] Clearing session '%s' failed.", session_id)
        return JSONResponse({"error": str(exc) or "Unexpected error"}, status_code=500)
    return JSONResponse({"cleared": cleared})


@router.get("/health")
async def health() -> dict[str, str | bool]:
    return {"status": "ok", "embed_provider": settings.EMBED_PROVIDER, "web_search": settings.web_search_active, "sessions": settings.sessions_active}
