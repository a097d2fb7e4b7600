from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthcheck(request: Request) -> dict[str, str]:
    settings = request.app.state.settings
    return {"status": "ok", "embedding_backend": settings.embedding_backend}
