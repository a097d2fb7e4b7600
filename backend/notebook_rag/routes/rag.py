from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..models.rag import RAGContextRequest, RAGContextResponse
from ..services.errors import InvalidInput
from ..services.rag import RAGService
from .common import caller_id, http_error

router = APIRouter(prefix="/rag", tags=["rag"])


async def _prepare(request: Request, payload: RAGContextRequest, user_id: str, shared: bool) -> RAGContextResponse:
    service: RAGService = request.app.state.rag_service
    try:
        result = await service.prepare_context(
            notebook_id=payload.notebook_id,
            question=payload.question,
            user_id=user_id,
            shared=shared,
        )
    except InvalidInput as e:
        raise http_error(e)
    return RAGContextResponse(context=result.context, sources=result.sources)


@router.post("/context", response_model=RAGContextResponse)
async def rag_context(
    request: Request,
    payload: RAGContextRequest,
    user_id: str = Depends(caller_id),
) -> RAGContextResponse:
    """Grounding context from the caller's own passages in a notebook."""
    return await _prepare(request, payload, user_id, shared=False)


@router.post("/shared-context", response_model=RAGContextResponse)
async def rag_shared_context(
    request: Request,
    payload: RAGContextRequest,
    user_id: str = Depends(caller_id),
) -> RAGContextResponse:
    """Grounding context for notebook members as well as the owner."""
    return await _prepare(request, payload, user_id, shared=True)
