from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List

from ..config import AppConfig
from ..models.rag import RetrievedSource
from .context import assemble_context
from .dedupe import dedupe_sources
from .errors import RetrievalFailed
from .retrieval import Retriever

logger = logging.getLogger(__name__)


@dataclass
class RAGContext:
    context: str
    sources: List[RetrievedSource]
    metrics: dict[str, float] = field(default_factory=dict)


class RAGService:
    def __init__(self, settings: AppConfig, retriever: Retriever) -> None:
        self.settings = settings
        self.retriever = retriever

    async def prepare_context(
        self,
        notebook_id: str,
        question: str,
        user_id: str,
        shared: bool = False,
    ) -> RAGContext:
        """
        Retrieve, deduplicate and render the grounding context for a question.

        Retrieval failures degrade to an empty context so the caller can still
        answer without sources; malformed ids are still raised.
        """
        metrics: dict[str, float] = {}
        retrieval_start = time.perf_counter()
        try:
            if shared:
                sources = await self.retriever.retrieve_shared(question, notebook_id, user_id)
            else:
                sources = await self.retriever.retrieve(question, notebook_id, user_id)
        except RetrievalFailed as e:
            logger.warning(f"Answering without sources for notebook={notebook_id}: {e}")
            sources = []
        metrics["retrieval_ms"] = (time.perf_counter() - retrieval_start) * 1000
        metrics["retrieved"] = float(len(sources))

        unique = dedupe_sources(sources, threshold=self.settings.dedupe_threshold)
        metrics["deduplicated"] = float(len(sources) - len(unique))
        return RAGContext(context=assemble_context(unique), sources=unique, metrics=metrics)
