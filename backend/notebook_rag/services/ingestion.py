from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from ..config import AppConfig
from ..models.notebook import DocumentRecord, FileType
from .chunk_store import ChunkStore, PassageRow
from .chunking import split_text
from .document_summary import NotebookSummaryService
from .embeddings import EmbeddingClient
from .errors import NoContentExtracted, PipelineError
from .extractors import detect_file_type, extract
from .normalizer import ensure_uuid, normalize_text
from .notebook_store import NotebookStore
from .status import StatusAggregator

logger = logging.getLogger(__name__)

DEFAULT_NOTEBOOK_TITLE = "Untitled notebook"
PREVIEW_CHARS = 200


@dataclass
class ProcessResult:
    unit_count: int
    chunk_count: int
    preview_text: str


class IngestionService:
    """
    Drives extract -> normalize -> chunk -> embed -> persist for one document.

    Chunks are embedded in fixed-size batches, concurrently within a batch and
    strictly one batch after another, with an unconditional pause between
    batches to stay inside the embedding provider's requests-per-minute budget.
    A document's passages are replaced wholesale: existing ones are deleted up
    front and anything written by a failed run is deleted before the error is
    re-raised.
    """

    def __init__(
        self,
        settings: AppConfig,
        chunk_store: ChunkStore,
        embedding_client: EmbeddingClient,
        registry: NotebookStore | None = None,
        summary_service: NotebookSummaryService | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.chunk_store = chunk_store
        self.embedding_client = embedding_client
        self.registry = registry
        self.status = StatusAggregator(registry) if registry is not None else None
        self.summary_service = summary_service
        self._sleep = sleep
        self._background_tasks: set[asyncio.Task] = set()

    async def ingest(
        self,
        notebook_id: str,
        user_id: str,
        data: bytes,
        document_id: str | None = None,
        file_name: str | None = None,
        file_type: FileType | None = None,
        mime_type: str | None = None,
    ) -> ProcessResult:
        ensure_uuid(notebook_id, "notebookId")
        ensure_uuid(user_id, "userId")
        if document_id is not None:
            ensure_uuid(document_id, "documentId")

        # Existing passages go first so that a failed run leaves none behind
        self._delete_passages(notebook_id, document_id)
        try:
            if file_type is None:
                file_type = detect_file_type(file_name, mime_type) if (file_name or mime_type) else FileType.PDF

            extracted = extract(data, file_type, mime_type=mime_type, settings=self.settings)
            text = normalize_text(extracted.text, max_chars=self.settings.max_text_chars)
            chunks = split_text(
                text, chunk_size=self.settings.chunk_size, chunk_overlap=self.settings.chunk_overlap
            )
            if not chunks:
                raise NoContentExtracted("No content could be extracted. This may be an image-only document.")

            await self._embed_and_store(notebook_id, user_id, chunks, document_id, file_name)
        except (Exception, asyncio.CancelledError) as e:
            logger.error(
                f"Ingestion failed for notebook={notebook_id} document={document_id}: {e}; rolling back passages"
            )
            self._rollback(notebook_id, document_id)
            raise

        self._schedule_summary(notebook_id, file_name, chunks)
        return ProcessResult(
            unit_count=extracted.unit_count,
            chunk_count=len(chunks),
            preview_text=chunks[0][:PREVIEW_CHARS],
        )

    async def process_document(self, document: DocumentRecord, data: bytes) -> ProcessResult:
        """
        Ingest an uploaded document and keep the registry in step.

        The document goes to ``processing`` first, then ``ready`` or ``error``;
        the notebook status is recomputed after every attempt.
        """
        if self.registry is None or self.status is None:
            raise RuntimeError("process_document requires a notebook registry")

        self.registry.set_document_status(document.document_id, "processing")
        self.status.recompute(document.notebook_id)
        try:
            result = await self.ingest(
                notebook_id=document.notebook_id,
                user_id=document.user_id,
                data=data,
                document_id=document.document_id,
                file_name=document.file_name,
                file_type=document.file_type,
                mime_type=document.mime_type,
            )
        except (Exception, asyncio.CancelledError) as e:
            message = str(e) if isinstance(e, PipelineError) else "Processing failed"
            self.registry.set_document_status(document.document_id, "error", error=message)
            raise
        else:
            self.registry.set_document_status(document.document_id, "ready", page_count=result.unit_count)
            return result
        finally:
            self.status.recompute(document.notebook_id)

    async def wait_for_background(self) -> None:
        """Wait for outstanding summary tasks; used on shutdown and in tests."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def _embed_and_store(
        self,
        notebook_id: str,
        user_id: str,
        chunks: Sequence[str],
        document_id: str | None,
        file_name: str | None,
    ) -> None:
        batch_size = self.settings.embed_batch_size
        ingested_at = time.time()

        for start in range(0, len(chunks), batch_size):
            batch = chunks[start : start + batch_size]
            embeddings = await self._embed_batch(batch)
            rows = [
                PassageRow(
                    passage_id=str(uuid.uuid4()),
                    notebook_id=notebook_id,
                    user_id=user_id,
                    content=content,
                    embedding=embedding,
                    chunk_index=start + idx,
                    document_id=document_id,
                    file_name=file_name,
                    ingested_at=ingested_at,
                )
                for idx, (content, embedding) in enumerate(zip(batch, embeddings))
            ]
            self.chunk_store.insert_passages(rows)
            logger.debug(
                f"Stored batch {start // batch_size} ({len(rows)} passages) for notebook={notebook_id}"
            )

            if start + batch_size < len(chunks):
                await self._sleep(self.settings.inter_batch_delay_seconds)

    async def _embed_batch(self, batch: Sequence[str]) -> list[list[float]]:
        tasks = [asyncio.ensure_future(self.embedding_client.embed(chunk)) for chunk in batch]
        try:
            return list(await asyncio.gather(*tasks))
        except (Exception, asyncio.CancelledError):
            for task in tasks:
                task.cancel()
            raise

    def _delete_passages(self, notebook_id: str, document_id: str | None) -> None:
        if document_id:
            self.chunk_store.delete_by_document(notebook_id, document_id)
        else:
            self.chunk_store.delete_by_notebook(notebook_id)

    def _rollback(self, notebook_id: str, document_id: str | None) -> None:
        try:
            self._delete_passages(notebook_id, document_id)
        except Exception as e:
            logger.error(f"Rollback failed for notebook={notebook_id} document={document_id}: {e}")

    def _schedule_summary(self, notebook_id: str, file_name: str | None, chunks: Sequence[str]) -> None:
        if self.summary_service is None or self.registry is None:
            return
        head = list(chunks[: self.settings.summary_chunk_count])
        task = asyncio.create_task(self._store_summary(notebook_id, file_name, head))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _store_summary(self, notebook_id: str, file_name: str | None, chunks: list[str]) -> None:
        try:
            summary = await self.summary_service.generate(file_name, chunks)
            notebook = self.registry.get_notebook(notebook_id)
            if notebook is None:
                return
            # A title chosen by the user is never overwritten
            title = summary.title if notebook.title == DEFAULT_NOTEBOOK_TITLE else None
            self.registry.store_summary(
                notebook_id,
                description=summary.description,
                suggested_questions=summary.suggested_questions,
                title=title,
            )
        except Exception as e:
            logger.warning(f"Background summary for notebook {notebook_id} failed: {e}")
