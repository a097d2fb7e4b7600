from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable

from ..config import AppConfig
from ..models.notebook import DocumentRecord, FileType, NotebookMetadata, ProcessingStatus


class NotebookStore:
    """
    SQLite-backed registry for notebooks, their documents and their members.
    """

    def __init__(self, settings: AppConfig) -> None:
        self.db_path = settings.registry_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterable[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notebooks (
                    notebook_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL,
                    page_count INTEGER NOT NULL DEFAULT 0,
                    suggested_questions TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    document_id TEXT PRIMARY KEY,
                    notebook_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    storage_path TEXT,
                    file_type TEXT NOT NULL,
                    mime_type TEXT,
                    status TEXT NOT NULL,
                    page_count INTEGER,
                    error TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (notebook_id) REFERENCES notebooks (notebook_id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notebook_members (
                    notebook_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (notebook_id, user_id)
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_notebook ON documents (notebook_id)")

    # Notebooks

    def create_notebook(
        self,
        user_id: str,
        title: str,
        description: str | None = None,
        notebook_id: str | None = None,
    ) -> NotebookMetadata:
        now = datetime.now(timezone.utc)
        notebook = NotebookMetadata(
            notebook_id=notebook_id or str(uuid.uuid4()),
            user_id=user_id,
            title=title,
            description=description,
            status="ready",
            page_count=0,
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO notebooks (
                    notebook_id, user_id, title, description, status, page_count,
                    suggested_questions, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    notebook.notebook_id,
                    notebook.user_id,
                    notebook.title,
                    notebook.description,
                    notebook.status,
                    notebook.page_count,
                    "[]",
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
        return notebook

    def get_notebook(self, notebook_id: str) -> NotebookMetadata | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM notebooks WHERE notebook_id = ?", (notebook_id,)).fetchone()
        return self._row_to_notebook(row)

    def list_notebooks(self, user_id: str) -> list[NotebookMetadata]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM notebooks
                WHERE user_id = ?
                   OR notebook_id IN (SELECT notebook_id FROM notebook_members WHERE user_id = ?)
                ORDER BY updated_at DESC
                """,
                (user_id, user_id),
            ).fetchall()
        return [self._row_to_notebook(row) for row in rows]

    def set_notebook_status(
        self,
        notebook_id: str,
        status: ProcessingStatus,
        page_count: int | None = None,
    ) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            if page_count is None:
                conn.execute(
                    "UPDATE notebooks SET status = ?, updated_at = ? WHERE notebook_id = ?",
                    (status, now, notebook_id),
                )
            else:
                conn.execute(
                    "UPDATE notebooks SET status = ?, page_count = ?, updated_at = ? WHERE notebook_id = ?",
                    (status, page_count, now, notebook_id),
                )

    def store_summary(
        self,
        notebook_id: str,
        description: str,
        suggested_questions: list[str],
        title: str | None = None,
    ) -> None:
        """Store a generated summary; ``title=None`` keeps the current title."""
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE notebooks
                SET title = COALESCE(?, title), description = ?, suggested_questions = ?, updated_at = ?
                WHERE notebook_id = ?
                """,
                (title, description, json.dumps(suggested_questions), now, notebook_id),
            )

    def delete_notebook(self, notebook_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM documents WHERE notebook_id = ?", (notebook_id,))
            conn.execute("DELETE FROM notebook_members WHERE notebook_id = ?", (notebook_id,))
            conn.execute("DELETE FROM notebooks WHERE notebook_id = ?", (notebook_id,))

    # Membership

    def add_member(self, notebook_id: str, user_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO notebook_members (notebook_id, user_id, created_at) VALUES (?, ?, ?)",
                (notebook_id, user_id, datetime.now(timezone.utc).isoformat()),
            )

    def is_member(self, notebook_id: str, user_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM notebook_members WHERE notebook_id = ? AND user_id = ?",
                (notebook_id, user_id),
            ).fetchone()
        return row is not None

    def can_access(self, notebook_id: str, user_id: str) -> bool:
        notebook = self.get_notebook(notebook_id)
        if notebook is None:
            return False
        return notebook.user_id == user_id or self.is_member(notebook_id, user_id)

    # Documents

    def create_document(
        self,
        notebook_id: str,
        user_id: str,
        file_name: str,
        file_type: FileType,
        mime_type: str | None = None,
        storage_path: str | None = None,
        document_id: str | None = None,
    ) -> DocumentRecord:
        now = datetime.now(timezone.utc)
        document = DocumentRecord(
            document_id=document_id or str(uuid.uuid4()),
            notebook_id=notebook_id,
            user_id=user_id,
            file_name=file_name,
            storage_path=storage_path,
            file_type=file_type,
            mime_type=mime_type,
            status="processing",
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO documents (
                    document_id, notebook_id, user_id, file_name, storage_path, file_type,
                    mime_type, status, page_count, error, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL, ?, ?)
                """,
                (
                    document.document_id,
                    notebook_id,
                    user_id,
                    file_name,
                    storage_path,
                    file_type.value,
                    mime_type,
                    document.status,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
        return document

    def get_document(self, document_id: str) -> DocumentRecord | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM documents WHERE document_id = ?", (document_id,)).fetchone()
        return self._row_to_document(row)

    def list_documents(self, notebook_id: str) -> list[DocumentRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM documents WHERE notebook_id = ? ORDER BY created_at ASC, rowid ASC",
                (notebook_id,),
            ).fetchall()
        return [self._row_to_document(row) for row in rows]

    def set_document_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        page_count: int | None = None,
        error: str | None = None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE documents
                SET status = ?, page_count = COALESCE(?, page_count), error = ?, updated_at = ?
                WHERE document_id = ?
                """,
                (status, page_count, error, datetime.now(timezone.utc).isoformat(), document_id),
            )

    def delete_document(self, document_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM documents WHERE document_id = ?", (document_id,))

    @staticmethod
    def _row_to_notebook(row: sqlite3.Row | None) -> NotebookMetadata | None:
        if row is None:
            return None
        return NotebookMetadata(
            notebook_id=row["notebook_id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            status=row["status"],
            page_count=row["page_count"],
            suggested_questions=json.loads(row["suggested_questions"] or "[]"),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_document(row: sqlite3.Row | None) -> DocumentRecord | None:
        if row is None:
            return None
        return DocumentRecord(
            document_id=row["document_id"],
            notebook_id=row["notebook_id"],
            user_id=row["user_id"],
            file_name=row["file_name"],
            storage_path=row["storage_path"],
            file_type=FileType(row["file_type"]),
            mime_type=row["mime_type"],
            status=row["status"],
            page_count=row["page_count"],
            error=row["error"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
