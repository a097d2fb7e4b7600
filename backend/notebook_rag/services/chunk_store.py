from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import chromadb
from chromadb import Collection
from chromadb.config import Settings as ChromaSettings

from ..config import AppConfig
from .errors import PersistenceFailure
from .notebook_store import NotebookStore

logger = logging.getLogger(__name__)


@dataclass
class PassageRow:
    passage_id: str
    notebook_id: str
    user_id: str
    content: str
    embedding: list[float]
    chunk_index: int
    document_id: str | None = None
    file_name: str | None = None
    ingested_at: float = 0.0


@dataclass
class PassageMatch:
    passage_id: str
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StoredPassage:
    passage_id: str
    content: str
    chunk_index: int
    document_id: str | None
    file_name: str | None
    ingested_at: float


class ChunkStore(Protocol):
    def insert_passages(self, rows: Sequence[PassageRow]) -> None:
        ...

    def delete_by_document(self, notebook_id: str, document_id: str) -> None:
        ...

    def delete_by_notebook(self, notebook_id: str) -> None:
        ...

    def count_passages(self, notebook_id: str, document_id: str | None = None) -> int:
        ...

    def match_passages(
        self,
        query_embedding: list[float],
        notebook_id: str,
        user_id: str,
        match_count: int,
        threshold: float,
        shared: bool = False,
    ) -> list[PassageMatch]:
        ...

    def list_passages(self, notebook_id: str, user_id: str, shared: bool = False) -> list[StoredPassage]:
        ...


@dataclass
class ChromaChunkStore:
    """
    Passage storage on top of chromadb, one cosine-space collection per notebook.

    The shared-access variants resolve notebook membership through the registry
    inside the same call that filters the collection, so callers never see
    whether passages they cannot read exist.
    """

    client: Any
    registry: NotebookStore | None = None

    def _collection_name(self, notebook_id: str) -> str:
        return f"notebook_{notebook_id}"

    def get_collection(self, notebook_id: str) -> Collection:
        return self.client.get_or_create_collection(
            name=self._collection_name(notebook_id),
            metadata={"hnsw:space": "cosine"},
        )

    def insert_passages(self, rows: Sequence[PassageRow]) -> None:
        if not rows:
            return
        notebook_ids = {row.notebook_id for row in rows}
        if len(notebook_ids) != 1:
            raise PersistenceFailure("A passage batch must belong to exactly one notebook")

        try:
            collection = self.get_collection(rows[0].notebook_id)
            collection.add(
                ids=[row.passage_id for row in rows],
                documents=[row.content for row in rows],
                embeddings=[row.embedding for row in rows],
                metadatas=[self._metadata(row) for row in rows],
            )
        except Exception as e:
            raise PersistenceFailure(f"Failed to store document chunks: {e}") from e

    def delete_by_document(self, notebook_id: str, document_id: str) -> None:
        try:
            self.get_collection(notebook_id).delete(where={"document_id": document_id})
        except Exception as e:
            raise PersistenceFailure(f"Failed to delete document chunks: {e}") from e
        logger.debug(f"Deleted passages of document {document_id} in notebook {notebook_id}")

    def delete_by_notebook(self, notebook_id: str) -> None:
        try:
            self.get_collection(notebook_id).delete(where={"notebook_id": notebook_id})
        except Exception as e:
            raise PersistenceFailure(f"Failed to delete notebook chunks: {e}") from e
        logger.debug(f"Deleted all passages of notebook {notebook_id}")

    def count_passages(self, notebook_id: str, document_id: str | None = None) -> int:
        where = {"document_id": document_id} if document_id else {"notebook_id": notebook_id}
        result = self.get_collection(notebook_id).get(where=where, include=["metadatas"])
        return len(result.get("ids") or [])

    def match_passages(
        self,
        query_embedding: list[float],
        notebook_id: str,
        user_id: str,
        match_count: int,
        threshold: float,
        shared: bool = False,
    ) -> list[PassageMatch]:
        collection = self.get_collection(notebook_id)
        if collection.count() == 0:
            return []

        result = collection.query(
            query_embeddings=[query_embedding],
            n_results=min(match_count, collection.count()),
            where=self._access_filter(notebook_id, user_id, shared),
            include=["documents", "metadatas", "distances"],
        )
        ids = (result.get("ids") or [[]])[0]
        documents = (result.get("documents") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]

        matches: list[PassageMatch] = []
        for passage_id, document, metadata, distance in zip(ids, documents, metadatas, distances):
            # Cosine space: distance = 1 - cosine similarity
            similarity = min(1.0, max(0.0, 1.0 - float(distance)))
            if similarity < threshold:
                continue
            matches.append(
                PassageMatch(
                    passage_id=passage_id,
                    content=document or "",
                    similarity=similarity,
                    metadata=dict(metadata or {}),
                )
            )
        matches.sort(key=lambda match: match.similarity, reverse=True)
        return matches

    def list_passages(self, notebook_id: str, user_id: str, shared: bool = False) -> list[StoredPassage]:
        result = self.get_collection(notebook_id).get(
            where=self._access_filter(notebook_id, user_id, shared),
            include=["documents", "metadatas"],
        )
        passages = [
            StoredPassage(
                passage_id=passage_id,
                content=document or "",
                chunk_index=int(metadata.get("chunk_index", 0)),
                document_id=metadata.get("document_id"),
                file_name=metadata.get("file_name"),
                ingested_at=float(metadata.get("ingested_at", 0.0)),
            )
            for passage_id, document, metadata in zip(
                result.get("ids") or [],
                result.get("documents") or [],
                result.get("metadatas") or [],
            )
        ]
        passages.sort(key=lambda p: (p.ingested_at, p.document_id or "", p.chunk_index))
        return passages

    def _access_filter(self, notebook_id: str, user_id: str, shared: bool) -> dict[str, Any]:
        owner_filter = {"$and": [{"notebook_id": notebook_id}, {"user_id": user_id}]}
        if not shared or self.registry is None:
            return owner_filter
        if self.registry.is_member(notebook_id, user_id):
            return {"notebook_id": notebook_id}
        return owner_filter

    @staticmethod
    def _metadata(row: PassageRow) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "notebook_id": row.notebook_id,
            "user_id": row.user_id,
            "chunk_index": row.chunk_index,
            "ingested_at": row.ingested_at,
        }
        # chromadb rejects None metadata values
        if row.document_id:
            metadata["document_id"] = row.document_id
        if row.file_name:
            metadata["file_name"] = row.file_name
        return metadata


def create_chunk_store(settings: AppConfig, registry: NotebookStore | None = None) -> ChromaChunkStore:
    client = chromadb.PersistentClient(
        path=str(settings.index_dir),
        settings=ChromaSettings(anonymized_telemetry=False),
    )
    return ChromaChunkStore(client=client, registry=registry)
