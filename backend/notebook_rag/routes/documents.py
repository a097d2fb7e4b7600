from __future__ import annotations

import logging
import re
import shutil
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from ..config import AppConfig
from ..models.notebook import DocumentRecord
from ..models.rag import ProcessResultResponse
from ..services.chunk_store import ChunkStore
from ..services.errors import PipelineError
from ..services.extractors import detect_file_type
from ..services.ingestion import IngestionService
from ..services.notebook_store import NotebookStore
from ..services.status import StatusAggregator
from .common import caller_id, http_error, load_notebook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notebooks/{notebook_id}/documents", tags=["documents"])

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9.-]")


def _uploads_dir(settings: AppConfig, notebook_id: str) -> Path:
    return settings.data_dir / "uploads" / notebook_id


@router.post("", response_model=ProcessResultResponse, status_code=201)
async def upload_document(
    request: Request,
    notebook_id: str,
    file: UploadFile = File(...),
    user_id: str = Depends(caller_id),
) -> ProcessResultResponse:
    """
    Upload a document into a notebook the caller owns and ingest it.
    """
    settings: AppConfig = request.app.state.settings
    store: NotebookStore = request.app.state.notebook_store
    ingestion_service: IngestionService = request.app.state.ingestion_service
    load_notebook(request, notebook_id, user_id, owner_only=True)

    file_name = file.filename or "document"
    try:
        file_type = detect_file_type(file_name, file.content_type)
    except PipelineError as e:
        raise http_error(e)

    data = await file.read()

    # Store the original bytes; the registry keeps a path, never the content
    uploads_dir = _uploads_dir(settings, notebook_id)
    uploads_dir.mkdir(parents=True, exist_ok=True)
    document_id = str(uuid.uuid4())
    storage_path = uploads_dir / f"{document_id}-{_UNSAFE_FILENAME_RE.sub('_', file_name)}"
    storage_path.write_bytes(data)
    document = store.create_document(
        notebook_id=notebook_id,
        user_id=user_id,
        file_name=file_name,
        file_type=file_type,
        mime_type=file.content_type,
        storage_path=str(storage_path),
        document_id=document_id,
    )

    try:
        result = await ingestion_service.process_document(document, data)
    except PipelineError as e:
        logger.error(f"Processing failed for {file_name} in notebook {notebook_id}: {e}")
        raise http_error(e)

    return ProcessResultResponse(
        document_id=document.document_id,
        status="ready",
        unit_count=result.unit_count,
        chunk_count=result.chunk_count,
        preview_text=result.preview_text,
    )


@router.get("", response_model=list[DocumentRecord])
async def list_documents(
    request: Request,
    notebook_id: str,
    user_id: str = Depends(caller_id),
) -> list[DocumentRecord]:
    store: NotebookStore = request.app.state.notebook_store
    load_notebook(request, notebook_id, user_id)
    return store.list_documents(notebook_id)


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    request: Request,
    notebook_id: str,
    document_id: str,
    user_id: str = Depends(caller_id),
) -> None:
    store: NotebookStore = request.app.state.notebook_store
    chunk_store: ChunkStore = request.app.state.chunk_store
    load_notebook(request, notebook_id, user_id, owner_only=True)

    document = store.get_document(document_id)
    if document is None or document.notebook_id != notebook_id:
        raise HTTPException(status_code=404, detail="Document not found")

    chunk_store.delete_by_document(notebook_id, document_id)
    store.delete_document(document_id)
    if document.storage_path:
        Path(document.storage_path).unlink(missing_ok=True)
    StatusAggregator(store).recompute(notebook_id)


def remove_uploads(settings: AppConfig, notebook_id: str) -> None:
    shutil.rmtree(_uploads_dir(settings, notebook_id), ignore_errors=True)
