from __future__ import annotations

import logging
from typing import Iterable

from ..models.notebook import ProcessingStatus
from .notebook_store import NotebookStore

logger = logging.getLogger(__name__)


def aggregate_status(statuses: Iterable[str]) -> ProcessingStatus:
    """
    Derive a notebook status from its documents' statuses.

    Precedence is ``error > processing > ready``; a notebook without
    documents is ``ready``.
    """
    seen = set(statuses)
    if "error" in seen:
        return "error"
    if "processing" in seen:
        return "processing"
    return "ready"


class StatusAggregator:
    def __init__(self, store: NotebookStore) -> None:
        self.store = store

    def recompute(self, notebook_id: str) -> ProcessingStatus:
        """Rewrite the notebook's status and page count from its current documents."""
        documents = self.store.list_documents(notebook_id)
        status = aggregate_status(doc.status for doc in documents)
        page_count = sum(doc.page_count or 0 for doc in documents)
        self.store.set_notebook_status(notebook_id, status, page_count=page_count)
        logger.debug(f"Notebook {notebook_id} status -> {status} ({len(documents)} documents)")
        return status
