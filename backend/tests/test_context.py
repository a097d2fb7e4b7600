from __future__ import annotations

from notebook_rag.models.rag import RetrievedSource
from notebook_rag.services.context import assemble_context


def _source(content: str, file_name: str | None) -> RetrievedSource:
    return RetrievedSource(chunk_id=content, content=content, similarity=0.5, file_name=file_name)


def test_empty_context():
    assert assemble_context([]) == ""


def test_passages_are_grouped_by_file_with_global_labels():
    context = assemble_context(
        [
            _source("one", "a.pdf"),
            _source("two", "b.docx"),
            _source("three", "a.pdf"),
        ]
    )

    assert context == (
        "From a.pdf:\n\n[Source 1]\none\n\n[Source 3]\nthree"
        "\n\n---\n\n"
        "From b.docx:\n\n[Source 2]\ntwo"
    )


def test_missing_file_name_uses_generic_label():
    assert assemble_context([_source("orphan", None)]) == "From document:\n\n[Source 1]\norphan"
