from __future__ import annotations

import logging

from ..config import AppConfig
from ..models.rag import RetrievedSource
from .chunk_store import ChunkStore
from .embeddings import EmbeddingClient
from .errors import RetrievalFailed
from .normalizer import ensure_uuid

logger = logging.getLogger(__name__)

PASSAGE_SEPARATOR = "\n\n"


class Retriever:
    """Query-time access to a notebook's passages."""

    def __init__(self, settings: AppConfig, chunk_store: ChunkStore, embedding_client: EmbeddingClient) -> None:
        self.settings = settings
        self.chunk_store = chunk_store
        self.embedding_client = embedding_client

    async def retrieve(self, query: str, notebook_id: str, caller_id: str) -> list[RetrievedSource]:
        """Nearest passages owned by the caller, most similar first."""
        return await self._retrieve(query, notebook_id, caller_id, shared=False)

    async def retrieve_shared(self, query: str, notebook_id: str, caller_id: str) -> list[RetrievedSource]:
        """Like ``retrieve``, but also serves notebook members."""
        return await self._retrieve(query, notebook_id, caller_id, shared=True)

    async def _retrieve(self, query: str, notebook_id: str, caller_id: str, shared: bool) -> list[RetrievedSource]:
        ensure_uuid(notebook_id, "notebookId")
        ensure_uuid(caller_id, "userId")

        try:
            query_embedding = await self.embedding_client.embed(query)
            matches = self.chunk_store.match_passages(
                query_embedding,
                notebook_id=notebook_id,
                user_id=caller_id,
                match_count=self.settings.match_count,
                threshold=self.settings.similarity_threshold,
                shared=shared,
            )
        except Exception as e:
            logger.error(f"Vector search failed for notebook={notebook_id}: {e}")
            raise RetrievalFailed("Failed to retrieve document context") from e

        return [
            RetrievedSource(
                chunk_id=match.passage_id,
                content=match.content,
                similarity=match.similarity,
                file_name=match.metadata.get("file_name"),
            )
            for match in matches
        ]

    def get_all_passages(self, notebook_id: str, caller_id: str, shared: bool = False) -> str:
        """
        Concatenate every passage of a notebook in ingestion order, for callers
        that need whole-document context rather than query-scoped retrieval.
        The result is cut at ``full_context_char_limit`` characters.
        """
        ensure_uuid(notebook_id, "notebookId")
        ensure_uuid(caller_id, "userId")

        try:
            passages = self.chunk_store.list_passages(notebook_id, caller_id, shared=shared)
        except Exception as e:
            logger.exception(f"Failed to load passages for notebook={notebook_id}")
            raise RetrievalFailed("Failed to load document content") from e

        limit = self.settings.full_context_char_limit
        parts: list[str] = []
        length = 0
        for passage in passages:
            if length >= limit:
                break
            parts.append(passage.content)
            length += len(passage.content) + len(PASSAGE_SEPARATOR)
        return PASSAGE_SEPARATOR.join(parts)[:limit]
