from __future__ import annotations

from fastapi import Header, HTTPException, Request

from ..models.notebook import NotebookMetadata
from ..services.errors import (
    EmbeddingProviderError,
    ExtractionError,
    InvalidInput,
    NoContentExtracted,
    PipelineError,
)
from ..services.normalizer import is_valid_uuid
from ..services.notebook_store import NotebookStore


async def caller_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Identity of the caller; authentication happens upstream of this service."""
    if not is_valid_uuid(x_user_id):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def load_notebook(request: Request, notebook_id: str, user_id: str, owner_only: bool = False) -> NotebookMetadata:
    store: NotebookStore = request.app.state.notebook_store
    notebook = store.get_notebook(notebook_id) if is_valid_uuid(notebook_id) else None
    # Notebooks the caller cannot see are reported as missing
    if notebook is None or not store.can_access(notebook_id, user_id):
        raise HTTPException(status_code=404, detail="Notebook not found")
    if owner_only and notebook.user_id != user_id:
        raise HTTPException(status_code=403, detail="Only the notebook owner can do this")
    return notebook


def http_error(error: PipelineError) -> HTTPException:
    if isinstance(error, InvalidInput):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (ExtractionError, NoContentExtracted)):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, EmbeddingProviderError) and error.is_rate_limit:
        return HTTPException(status_code=429, detail="AI quota exceeded. Please try again in a minute.")
    return HTTPException(
        status_code=500,
        detail="Processing failed. The document was saved, please try re-uploading.",
    )
