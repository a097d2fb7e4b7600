from __future__ import annotations

import uuid

from notebook_rag.models.notebook import FileType


def test_notebook_persistence(registry, owner_id):
    notebook = registry.create_notebook(user_id=owner_id, title="Sample Notebook", description="Lecture notes")

    stored = registry.get_notebook(notebook.notebook_id)
    assert stored is not None
    assert stored.title == "Sample Notebook"
    assert stored.status == "ready"
    assert stored.page_count == 0
    assert stored.suggested_questions == []
    assert registry.get_notebook(str(uuid.uuid4())) is None


def test_list_notebooks_includes_memberships(registry, owner_id):
    other_owner = str(uuid.uuid4())
    own = registry.create_notebook(user_id=owner_id, title="Mine")
    shared = registry.create_notebook(user_id=other_owner, title="Shared with me")
    registry.create_notebook(user_id=other_owner, title="Private")
    registry.add_member(shared.notebook_id, owner_id)
    registry.add_member(shared.notebook_id, owner_id)

    ids = {n.notebook_id for n in registry.list_notebooks(owner_id)}
    assert ids == {own.notebook_id, shared.notebook_id}
    assert registry.can_access(shared.notebook_id, owner_id)
    assert not registry.can_access(str(uuid.uuid4()), owner_id)


def test_summary_keeps_title_when_none(registry, notebook):
    registry.store_summary(notebook.notebook_id, "All about cells", ["What is a cell?"])
    stored = registry.get_notebook(notebook.notebook_id)
    assert stored.title == "Biology notes"
    assert stored.description == "All about cells"
    assert stored.suggested_questions == ["What is a cell?"]

    registry.store_summary(notebook.notebook_id, "All about cells", [], title="Cells")
    assert registry.get_notebook(notebook.notebook_id).title == "Cells"


def test_document_lifecycle(registry, notebook):
    document = registry.create_document(
        notebook.notebook_id,
        notebook.user_id,
        "paper.pdf",
        FileType.PDF,
        mime_type="application/pdf",
        storage_path="/tmp/paper.pdf",
    )
    assert document.status == "processing"

    registry.set_document_status(document.document_id, "ready", page_count=12)
    registry.set_document_status(document.document_id, "error", error="boom")
    stored = registry.get_document(document.document_id)
    assert stored.status == "error"
    assert stored.error == "boom"
    assert stored.page_count == 12
    assert stored.file_type is FileType.PDF
    assert stored.storage_path == "/tmp/paper.pdf"

    registry.delete_document(document.document_id)
    assert registry.list_documents(notebook.notebook_id) == []


def test_delete_notebook_removes_documents_and_members(registry, notebook):
    member = str(uuid.uuid4())
    registry.add_member(notebook.notebook_id, member)
    registry.create_document(notebook.notebook_id, notebook.user_id, "a.txt", FileType.TEXT)

    registry.delete_notebook(notebook.notebook_id)

    assert registry.get_notebook(notebook.notebook_id) is None
    assert registry.list_documents(notebook.notebook_id) == []
    assert not registry.is_member(notebook.notebook_id, member)
