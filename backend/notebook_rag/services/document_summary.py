from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Sequence

from ..config import AppConfig
from .llm import SummaryModel, create_summary_model

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 4000


@dataclass
class NotebookSummary:
    """Title, description and starter questions derived from a notebook's first passages."""
    title: str
    description: str
    suggested_questions: list[str] = field(default_factory=list)


class NotebookSummaryService:
    """Service for generating notebook summaries after a successful ingestion."""

    def __init__(self, settings: AppConfig, model: SummaryModel | None = None) -> None:
        self.settings = settings
        self._model = model if model is not None else create_summary_model(settings)

    async def generate(self, file_name: str | None, chunks: Sequence[str]) -> NotebookSummary:
        """
        Summarise the first few chunks of a document.

        Uses the configured LLM and expects a JSON reply; any failure to get or
        parse one falls back to a deterministic summary.
        """
        preview_text = "\n\n".join(chunks[: self.settings.summary_chunk_count])[:PREVIEW_CHARS]
        if self._model is None or not preview_text.strip():
            return self._fallback_summary(preview_text, file_name)

        prompt = (
            "Read the document excerpt below and reply with a JSON object with the keys "
            '"title" (at most 8 words), "description" (one sentence) and '
            '"questions" (a list of 3 questions a reader could ask about the document).\n\n'
            f"Document excerpt:\n{preview_text}\n\n"
            "JSON:"
        )
        try:
            reply = await self._model.complete_json(prompt, max_tokens=300)
            return self._parse_reply(reply, preview_text, file_name)
        except ValueError as e:
            logger.warning(f"Failed to generate summary for {file_name or 'document'}: {e}")
            return self._fallback_summary(preview_text, file_name)

    def _parse_reply(self, reply: str, preview_text: str, file_name: str | None) -> NotebookSummary:
        data = json.loads(reply)
        if not isinstance(data, dict):
            raise ValueError("Summary reply is not a JSON object")
        fallback = self._fallback_summary(preview_text, file_name)
        title = str(data.get("title") or "").strip() or fallback.title
        description = str(data.get("description") or "").strip() or fallback.description
        raw_questions = data.get("questions") or []
        if not isinstance(raw_questions, list):
            raw_questions = []
        questions = [str(q).strip() for q in raw_questions if str(q).strip()]
        return NotebookSummary(
            title=title[:200],
            description=description,
            suggested_questions=questions[:5] or fallback.suggested_questions,
        )

    def _fallback_summary(self, preview_text: str, file_name: str | None) -> NotebookSummary:
        """Generate a deterministic summary without calling an LLM."""
        title = PurePath(file_name).stem if file_name else "Untitled notebook"
        first_line = next((line.strip() for line in preview_text.splitlines() if line.strip()), "")
        if len(first_line) > 160:
            first_line = first_line[:157] + "..."
        return NotebookSummary(
            title=title,
            description=first_line or f"Notes from {file_name or 'an uploaded document'}.",
            suggested_questions=[
                f"What is {title} about?",
                f"What are the key points in {title}?",
                f"What conclusions does {title} reach?",
            ],
        )
