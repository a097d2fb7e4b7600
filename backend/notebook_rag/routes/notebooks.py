from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ..config import AppConfig
from ..models.notebook import MemberRequest, NotebookCreateRequest, NotebookMetadata
from ..models.rag import PassagesResponse
from ..services.chunk_store import ChunkStore
from ..services.errors import RetrievalFailed
from ..services.normalizer import is_valid_uuid
from ..services.notebook_store import NotebookStore
from ..services.retrieval import Retriever
from .common import caller_id, load_notebook
from .documents import remove_uploads

router = APIRouter(prefix="/notebooks", tags=["notebooks"])


@router.post("", response_model=NotebookMetadata, status_code=201)
async def create_notebook(
    request: Request,
    payload: NotebookCreateRequest,
    user_id: str = Depends(caller_id),
) -> NotebookMetadata:
    store: NotebookStore = request.app.state.notebook_store
    return store.create_notebook(user_id=user_id, title=payload.title, description=payload.description)


@router.get("", response_model=list[NotebookMetadata])
async def list_notebooks(request: Request, user_id: str = Depends(caller_id)) -> list[NotebookMetadata]:
    store: NotebookStore = request.app.state.notebook_store
    return store.list_notebooks(user_id)


@router.get("/{notebook_id}", response_model=NotebookMetadata)
async def get_notebook(request: Request, notebook_id: str, user_id: str = Depends(caller_id)) -> NotebookMetadata:
    return load_notebook(request, notebook_id, user_id)


@router.delete("/{notebook_id}", status_code=204)
async def delete_notebook(request: Request, notebook_id: str, user_id: str = Depends(caller_id)) -> None:
    settings: AppConfig = request.app.state.settings
    store: NotebookStore = request.app.state.notebook_store
    chunk_store: ChunkStore = request.app.state.chunk_store
    load_notebook(request, notebook_id, user_id, owner_only=True)

    chunk_store.delete_by_notebook(notebook_id)
    store.delete_notebook(notebook_id)
    remove_uploads(settings, notebook_id)


@router.post("/{notebook_id}/members", status_code=204)
async def add_member(
    request: Request,
    notebook_id: str,
    payload: MemberRequest,
    user_id: str = Depends(caller_id),
) -> None:
    store: NotebookStore = request.app.state.notebook_store
    load_notebook(request, notebook_id, user_id, owner_only=True)
    if not is_valid_uuid(payload.user_id):
        raise HTTPException(status_code=400, detail="Invalid userId")
    store.add_member(notebook_id, payload.user_id)


@router.get("/{notebook_id}/passages", response_model=PassagesResponse)
async def get_passages(request: Request, notebook_id: str, user_id: str = Depends(caller_id)) -> PassagesResponse:
    """Whole-notebook text for study material generators, capped in length."""
    retriever: Retriever = request.app.state.retriever
    notebook = load_notebook(request, notebook_id, user_id)
    try:
        text = retriever.get_all_passages(notebook_id, user_id, shared=notebook.user_id != user_id)
    except RetrievalFailed as e:
        raise HTTPException(status_code=500, detail=str(e))
    return PassagesResponse(notebook_id=notebook_id, text=text)
