from __future__ import annotations

import uuid
from pathlib import Path

import chromadb
import pytest
from chromadb.config import Settings as ChromaSettings

from notebook_rag.config import AppConfig
from notebook_rag.services.chunk_store import ChromaChunkStore
from notebook_rag.services.embeddings import EmbeddingClient, HashEmbeddingBackend
from notebook_rag.services.notebook_store import NotebookStore


def build_settings(tmp_path: Path, **overrides) -> AppConfig:
    values = {
        "workspace_root": tmp_path / "workspace",
        "data_dir": tmp_path / "workspace" / "data",
        "index_dir": tmp_path / "workspace" / "indexes",
        "embedding_backend": "hash",
        "llm_provider": "none",
    }
    values.update(overrides)
    config = AppConfig(**values)
    config.ensure_directories()
    return config


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers every requested delay."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def make_settings(tmp_path):
    def factory(**overrides) -> AppConfig:
        return build_settings(tmp_path, **overrides)

    return factory


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def registry(settings):
    return NotebookStore(settings)


@pytest.fixture
def chunk_store(settings, registry):
    client = chromadb.PersistentClient(
        path=str(settings.index_dir),
        settings=ChromaSettings(anonymized_telemetry=False),
    )
    return ChromaChunkStore(client=client, registry=registry)


@pytest.fixture
def embedding_client(settings):
    return EmbeddingClient(HashEmbeddingBackend(dimension=settings.embedding_dimension))


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def owner_id():
    return str(uuid.uuid4())


@pytest.fixture
def notebook(registry, owner_id):
    return registry.create_notebook(user_id=owner_id, title="Biology notes")


@pytest.fixture
def api_client(tmp_path, monkeypatch):
    from fastapi.testclient import TestClient

    from notebook_rag.app import create_app
    from notebook_rag.config import reset_settings_cache

    workspace = tmp_path / "api"
    monkeypatch.setenv("NOTEBOOKRAG_WORKSPACE_ROOT", str(workspace))
    monkeypatch.setenv("NOTEBOOKRAG_DATA_DIR", str(workspace / "data"))
    monkeypatch.setenv("NOTEBOOKRAG_INDEX_DIR", str(workspace / "indexes"))
    monkeypatch.setenv("NOTEBOOKRAG_EMBEDDING_BACKEND", "hash")
    monkeypatch.setenv("NOTEBOOKRAG_LLM_PROVIDER", "none")
    monkeypatch.setenv("NOTEBOOKRAG_INTER_BATCH_DELAY_SECONDS", "0")
    reset_settings_cache()
    with TestClient(create_app()) as client:
        yield client
    reset_settings_cache()
