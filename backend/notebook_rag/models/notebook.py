from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

ProcessingStatus = Literal["processing", "ready", "error"]


class FileType(str, Enum):
    PDF = "pdf"
    TEXT = "text"
    RICHTEXT = "richtext"
    IMAGE = "image"


class NotebookMetadata(BaseModel):
    notebook_id: str = Field(..., description="Unique notebook identifier")
    user_id: str
    title: str
    description: str | None = None
    status: ProcessingStatus = "ready"
    page_count: int = 0
    suggested_questions: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class DocumentRecord(BaseModel):
    document_id: str
    notebook_id: str
    user_id: str
    file_name: str
    storage_path: str | None = None
    file_type: FileType
    mime_type: str | None = None
    status: ProcessingStatus = "processing"
    page_count: int | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime


class NotebookCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None


class MemberRequest(BaseModel):
    user_id: str
