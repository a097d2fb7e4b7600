from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class RetrievedSource(BaseModel):
    chunk_id: str
    content: str
    similarity: float = Field(..., ge=0.0, le=1.0)
    file_name: str | None = None


class RAGContextRequest(BaseModel):
    notebook_id: str = Field(..., description="Notebook to search")
    question: str = Field(..., min_length=1, max_length=2000, description="User question")


class RAGContextResponse(BaseModel):
    context: str
    sources: List[RetrievedSource]


class ProcessResultResponse(BaseModel):
    document_id: str
    status: str
    unit_count: int | None = None
    chunk_count: int | None = None
    preview_text: str | None = None
    error: str | None = None


class PassagesResponse(BaseModel):
    notebook_id: str
    text: str
