"""
Virtual Lab Assistant - Application Entry Point
================================================
FastAPI application factory.  Registers the API routes, configures CORS
and serves the published experiment images under ``/images``.

The ``LabAssistant`` (embedder, LanceDB store, web search, sessions) is
built lazily on the first chat request, so the app starts even while
the vector database is still being populated.

Usage:
    uvicorn vlab.src.main:create_app --factory
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from vlab.config.settings import settings
from vlab.src.api.routes import router
from vlab.src.core.embeddings import build_embedder
from vlab.src.core.rag_engine import LabAssistant, MongoSessionManager
from vlab.src.core.web_search import build_web_search
from vlab.src.database.vector_store import LabVectorStore
from vlab.src.utils.logger import get_logger

logger = get_logger(__name__)


def build_assistant() -> LabAssistant:
    """Wire the production ``LabAssistant`` from settings."""
    spec = build_embedder()
    store = LabVectorStore(spec.embedder, spec.dimension, table_name=spec.table_name)
    session_manager = MongoSessionManager() if settings.sessions_active else None
    return LabAssistant(store, web_search=build_web_search(), session_manager=session_manager)


def create_app(assistant_factory: Callable[[], LabAssistant] | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters
    ----------
    assistant_factory
        Zero-argument callable returning a ``LabAssistant``.  Defaults to
        ``build_assistant``; tests pass a factory wired with fakes.
    """
    app = FastAPI(title="Virtual Lab Assistant", description="Retrieval-augmented chat for the virtual-lab portal.")
    app.add_middleware(CORSMiddleware, allow_origins=settings.CORS_ORIGINS, allow_methods=["*"], allow_headers=["*"])

    app.state.assistant = None
    app.state.assistant_lock = asyncio.Lock()
    app.state.assistant_factory = assistant_factory or build_assistant
    app.include_router(router)

    if settings.PUBLIC_IMAGES_DIR.is_dir():
        app.mount("/images", StaticFiles(directory=str(settings.PUBLIC_IMAGES_DIR)), name="images")
        logger.info("Serving images from %s", settings.PUBLIC_IMAGES_DIR)
    else:
        logger.info("No public images directory at %s — /images not mounted.", settings.PUBLIC_IMAGES_DIR)

    return app
