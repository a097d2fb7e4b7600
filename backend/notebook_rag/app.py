from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from .config import AppConfig, get_settings
from .routes import documents, health, notebooks, rag
from .services.chunk_store import create_chunk_store
from .services.document_summary import NotebookSummaryService
from .services.embeddings import create_embedding_client
from .services.ingestion import IngestionService
from .services.notebook_store import NotebookStore
from .services.rag import RAGService
from .services.retrieval import Retriever


def create_app() -> FastAPI:
    """Create the FastAPI application for the notebook ingestion and retrieval backend."""
    settings: AppConfig = get_settings()
    settings.ensure_directories()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Let in-flight summary tasks finish before the loop closes
        await app.state.ingestion_service.wait_for_background()

    app = FastAPI(
        title="Notebook RAG",
        version="0.1.0",
        description="Document ingestion and grounded retrieval for notebooks.",
        lifespan=lifespan,
    )

    # Bootstrap services
    notebook_store = NotebookStore(settings)
    chunk_store = create_chunk_store(settings, registry=notebook_store)
    embedding_client = create_embedding_client(settings)
    retriever = Retriever(settings, chunk_store, embedding_client)

    app.state.settings = settings
    app.state.notebook_store = notebook_store
    app.state.chunk_store = chunk_store
    app.state.retriever = retriever
    app.state.rag_service = RAGService(settings, retriever)
    app.state.ingestion_service = IngestionService(
        settings,
        chunk_store,
        embedding_client,
        registry=notebook_store,
        summary_service=NotebookSummaryService(settings),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api")
    app.include_router(notebooks.router, prefix="/api")
    app.include_router(documents.router, prefix="/api")
    app.include_router(rag.router, prefix="/api")

    return app
