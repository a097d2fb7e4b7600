from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    workspace_root: Path = Path.home() / "NotebookRAG"
    data_dir: Path = Path.home() / "NotebookRAG" / "data"
    index_dir: Path = Path.home() / "NotebookRAG" / "indexes"
    log_level: str = "INFO"

    embedding_backend: Literal["gemini", "ollama", "hash"] = "gemini"
    embedding_model: str = "text-embedding-004"
    embedding_dimension: int = 768
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    ollama_base_url: str = "http://127.0.0.1:11434"
    ollama_embedding_model: str = "nomic-embed-text"

    # Rate-limit backoff: wait base * 2**attempt (6s, 12s, 24s, 48s, 96s)
    embedding_max_retries: int = 5
    embedding_retry_base_seconds: float = 6.0
    embedding_timeout_seconds: float = 30.0

    # Background notebook summary
    llm_provider: Literal["none", "ollama"] = "none"
    ollama_model: str = "llama3.2:1b"
    summary_chunk_count: int = 3

    # Ingestion
    chunk_size: int = 2000
    chunk_overlap: int = 200
    embed_batch_size: int = 5
    inter_batch_delay_seconds: float = 6.5  # keeps a 10 RPM provider budget
    max_text_chars: int = 100_000

    # Per-type upload ceilings, enforced before extraction
    max_pdf_bytes: int = 5 * 1024 * 1024
    max_docx_bytes: int = 10 * 1024 * 1024
    max_image_bytes: int = 5 * 1024 * 1024
    max_text_bytes: int = 500 * 1024

    # Retrieval
    match_count: int = 8
    similarity_threshold: float = 0.3
    dedupe_threshold: float = 0.9
    full_context_char_limit: int = 30_000

    model_config = SettingsConfigDict(env_file=".env", env_prefix="NOTEBOOKRAG_", extra="ignore")

    @property
    def registry_path(self) -> Path:
        return self.workspace_root / "registry.db"

    def ensure_directories(self) -> None:
        for directory in (self.workspace_root, self.data_dir, self.index_dir):
            Path(directory).mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> AppConfig:
    return AppConfig()


def reset_settings_cache() -> None:
    get_settings.cache_clear()
