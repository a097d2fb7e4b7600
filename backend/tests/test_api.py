from __future__ import annotations

import uuid

import pytest

CELLS = b"Mitochondria produce ATP for the cell.\n\nRibosomes assemble proteins from amino acids."


@pytest.fixture
def owner():
    return {"X-User-Id": str(uuid.uuid4())}


def _create_notebook(client, headers, title="Biology") -> str:
    response = client.post("/api/notebooks", json={"title": title}, headers=headers)
    assert response.status_code == 201
    return response.json()["notebook_id"]


def _upload(client, headers, notebook_id, name="cells.txt", data=CELLS, mime="text/plain"):
    return client.post(
        f"/api/notebooks/{notebook_id}/documents",
        files={"file": (name, data, mime)},
        headers=headers,
    )


def test_caller_identity_is_required(api_client):
    assert api_client.get("/api/notebooks", headers={"X-User-Id": "nobody"}).status_code == 401
    assert api_client.get("/api/notebooks").status_code == 422


def test_upload_then_retrieve_context(api_client, owner):
    notebook_id = _create_notebook(api_client, owner)

    response = _upload(api_client, owner, notebook_id)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "ready"
    assert body["chunk_count"] == 1
    assert body["preview_text"].startswith("Mitochondria")

    notebook = api_client.get(f"/api/notebooks/{notebook_id}", headers=owner).json()
    assert notebook["status"] == "ready"
    assert notebook["page_count"] == 1

    response = api_client.post(
        "/api/rag/context",
        json={"notebook_id": notebook_id, "question": "mitochondria produce"},
        headers=owner,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["context"].startswith("From cells.txt:\n\n[Source 1]\nMitochondria")
    assert data["sources"][0]["file_name"] == "cells.txt"


def test_failed_upload_is_recorded(api_client, owner):
    notebook_id = _create_notebook(api_client, owner)

    response = _upload(api_client, owner, notebook_id, name="empty.txt", data=b"")
    assert response.status_code == 422

    documents = api_client.get(f"/api/notebooks/{notebook_id}/documents", headers=owner).json()
    assert [d["status"] for d in documents] == ["error"]
    assert documents[0]["error"]
    notebook = api_client.get(f"/api/notebooks/{notebook_id}", headers=owner).json()
    assert notebook["status"] == "error"


def test_unsupported_upload_type(api_client, owner):
    notebook_id = _create_notebook(api_client, owner)
    response = _upload(api_client, owner, notebook_id, name="archive.zip", data=b"PK", mime="application/zip")
    assert response.status_code == 422


def test_sharing_scopes_access(api_client, owner):
    notebook_id = _create_notebook(api_client, owner)
    _upload(api_client, owner, notebook_id)
    member = {"X-User-Id": str(uuid.uuid4())}
    stranger = {"X-User-Id": str(uuid.uuid4())}
    question = {"notebook_id": notebook_id, "question": "mitochondria produce"}

    assert api_client.get(f"/api/notebooks/{notebook_id}", headers=stranger).status_code == 404
    response = api_client.post(
        f"/api/notebooks/{notebook_id}/members", json={"user_id": member["X-User-Id"]}, headers=owner
    )
    assert response.status_code == 204

    shared = api_client.post("/api/rag/shared-context", json=question, headers=member).json()
    assert shared["sources"]
    own_only = api_client.post("/api/rag/context", json=question, headers=member).json()
    assert own_only == {"context": "", "sources": []}
    hidden = api_client.post("/api/rag/shared-context", json=question, headers=stranger).json()
    assert hidden["sources"] == []

    passages = api_client.get(f"/api/notebooks/{notebook_id}/passages", headers=member).json()
    assert passages["text"] == CELLS.decode()

    # Members can read but not manage
    assert api_client.delete(f"/api/notebooks/{notebook_id}", headers=member).status_code == 403


def test_malformed_notebook_id_is_rejected(api_client, owner):
    response = api_client.post(
        "/api/rag/context", json={"notebook_id": "not-a-uuid", "question": "anything"}, headers=owner
    )
    assert response.status_code == 400


def test_delete_document_and_notebook(api_client, owner):
    notebook_id = _create_notebook(api_client, owner)
    document_id = _upload(api_client, owner, notebook_id).json()["document_id"]
    _upload(api_client, owner, notebook_id, name="empty.txt", data=b"")

    assert api_client.delete(f"/api/notebooks/{notebook_id}/documents/{document_id}", headers=owner).status_code == 204
    passages = api_client.get(f"/api/notebooks/{notebook_id}/passages", headers=owner).json()
    assert passages["text"] == ""
    # Only the failed document remains
    assert api_client.get(f"/api/notebooks/{notebook_id}", headers=owner).json()["status"] == "error"

    assert api_client.delete(f"/api/notebooks/{notebook_id}", headers=owner).status_code == 204
    assert api_client.get(f"/api/notebooks/{notebook_id}", headers=owner).status_code == 404


def test_only_the_owner_can_upload(api_client, owner):
    notebook_id = _create_notebook(api_client, owner)
    member = {"X-User-Id": str(uuid.uuid4())}
    api_client.post(f"/api/notebooks/{notebook_id}/members", json={"user_id": member["X-User-Id"]}, headers=owner)

    response = _upload(api_client, member, notebook_id)

    assert response.status_code == 403
    assert api_client.get(f"/api/notebooks/{notebook_id}/documents", headers=owner).json() == []
