from __future__ import annotations

import pytest

from notebook_rag.models.notebook import FileType
from notebook_rag.services.status import StatusAggregator, aggregate_status


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([], "ready"),
        (["ready", "ready"], "ready"),
        (["ready", "processing"], "processing"),
        (["processing", "error", "ready"], "error"),
        (["error"], "error"),
    ],
)
def test_status_precedence(statuses, expected):
    assert aggregate_status(statuses) == expected


def test_recompute_writes_status_and_page_count(registry, notebook):
    first = registry.create_document(notebook.notebook_id, notebook.user_id, "a.pdf", FileType.PDF)
    second = registry.create_document(notebook.notebook_id, notebook.user_id, "b.pdf", FileType.PDF)
    registry.set_document_status(first.document_id, "ready", page_count=4)
    aggregator = StatusAggregator(registry)

    assert aggregator.recompute(notebook.notebook_id) == "processing"

    registry.set_document_status(second.document_id, "ready", page_count=3)
    assert aggregator.recompute(notebook.notebook_id) == "ready"
    refreshed = registry.get_notebook(notebook.notebook_id)
    assert refreshed.status == "ready"
    assert refreshed.page_count == 7


def test_recompute_after_last_document_removed(registry, notebook):
    document = registry.create_document(notebook.notebook_id, notebook.user_id, "a.txt", FileType.TEXT)
    registry.set_document_status(document.document_id, "error", error="No text")
    aggregator = StatusAggregator(registry)
    assert aggregator.recompute(notebook.notebook_id) == "error"

    registry.delete_document(document.document_id)
    assert aggregator.recompute(notebook.notebook_id) == "ready"
    assert registry.get_notebook(notebook.notebook_id).page_count == 0
