"""SQLite-backed term index."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from mdq.errors import IndexIOError
from mdq.index.mapping import TermSet
from mdq.models import DocumentMetadata

LOGGER = logging.getLogger(__name__)


class SQLiteTermIndex:
    """Persistent inverted index of note terms.

    The database runs in WAL mode. A writable handle holds the write lock
    from open until close, so at most one writer exists at a time, while
    read-only handles keep reading the last committed state. Writes become
    visible to new reads on ``commit()``; ``close()`` drops uncommitted work.
    """

    def __init__(self, db_path: Path, *, read_only: bool = False, timeout: float = 1.0) -> None:
        self.db_path = Path(db_path)
        self.read_only = read_only
        self._in_transaction = False
        if read_only:
            self._conn = self._connect_read_only(timeout)
        else:
            self._conn = self._connect_writable(timeout)
        self._conn.row_factory = sqlite3.Row

    def _connect_read_only(self, timeout: float) -> sqlite3.Connection:
        if not self.db_path.exists():
            raise IndexIOError(f"Index not found at {self.db_path}")
        try:
            conn = sqlite3.connect(self.db_path, timeout=timeout, isolation_level=None)
            conn.execute("PRAGMA query_only=ON;")
        except sqlite3.Error as exc:
            raise IndexIOError(f"Could not open index {self.db_path}: {exc}") from exc
        return conn

    def _connect_writable(self, timeout: float) -> sqlite3.Connection:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, timeout=timeout, isolation_level=None)
        except (OSError, sqlite3.Error) as exc:
            raise IndexIOError(f"Could not open index {self.db_path} for writing: {exc}") from exc
        self._conn = conn
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA foreign_keys=ON;")
            self._begin()
            self._ensure_schema()
            conn.execute("COMMIT")
            self._begin()
        except sqlite3.Error as exc:
            conn.close()
            raise IndexIOError(f"Could not open index {self.db_path} for writing: {exc}") from exc
        return conn

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def __enter__(self) -> "SQLiteTermIndex":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._in_transaction:
            self._conn.execute("ROLLBACK")
            self._in_transaction = False
        self._conn.close()

    def _begin(self) -> None:
        # IMMEDIATE takes the write lock up front; a second writer fails here.
        self._conn.execute("BEGIN IMMEDIATE")
        self._in_transaction = True

    def commit(self) -> None:
        """Make all writes since the last commit durable and visible."""
        if self.read_only:
            raise IndexIOError("Cannot commit a read-only index handle")
        try:
            self._conn.execute("COMMIT")
            self._in_transaction = False
            self._begin()
        except sqlite3.Error as exc:
            raise IndexIOError(f"Commit to {self.db_path} failed: {exc}") from exc
        LOGGER.debug("Committed %s", self.db_path)

    def _ensure_schema(self) -> None:
        conn = self._conn
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                id INTEGER PRIMARY KEY,
                path TEXT NOT NULL UNIQUE,
                title TEXT,
                body TEXT NOT NULL DEFAULT '',
                sha256 TEXT NOT NULL,
                mtime REAL NOT NULL,
                size INTEGER NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS postings (
                document_id INTEGER NOT NULL,
                field TEXT NOT NULL,
                term TEXT NOT NULL,
                frequency INTEGER NOT NULL,
                PRIMARY KEY (field, term, document_id),
                FOREIGN KEY(document_id) REFERENCES documents(id) ON DELETE CASCADE
            )
            """
        )
        conn.execute(
            """CREATE INDEX IF NOT EXISTS idx_postings_document_id
                ON postings(document_id)
            """
        )

    # ------------------------------------------------------------------
    # write path

    def upsert_document(
        self,
        document: DocumentMetadata,
        term_set: TermSet,
        *,
        body: str = "",
        force: bool = False,
    ) -> str:
        """Store ``term_set`` under ``document.path``, replacing earlier terms.

        Returns:
            'inserted', 'updated', or 'skipped' (content hash unchanged).
        """
        if self.read_only:
            raise IndexIOError("Cannot write through a read-only index handle")
        conn = self._conn
        try:
            existing = self.find_document(document.path)

            if existing and existing["sha256"] == document.sha256 and not force:
                return "skipped"

            if existing:
                conn.execute("DELETE FROM postings WHERE document_id = ?", (existing["id"],))
                conn.execute("DELETE FROM documents WHERE id = ?", (existing["id"],))

            doc_id = conn.execute(
                """
                INSERT INTO documents(path, title, body, sha256, mtime, size)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(document.path),
                    document.title,
                    body,
                    document.sha256,
                    document.mtime,
                    document.size,
                ),
            ).lastrowid
            conn.executemany(
                "INSERT INTO postings(document_id, field, term, frequency) VALUES (?, ?, ?, ?)",
                [(doc_id, field, term, frequency) for field, term, frequency in term_set],
            )
        except sqlite3.Error as exc:
            raise IndexIOError(f"Writing {document.path} to {self.db_path} failed: {exc}") from exc
        return "updated" if existing else "inserted"

    def remove_missing_files(self) -> int:
        """Remove documents whose files no longer exist."""
        conn = self._conn
        rows = self._fetch("SELECT id, path FROM documents")
        missing = [row for row in rows if not Path(row["path"]).exists()]
        try:
            for row in missing:
                conn.execute("DELETE FROM postings WHERE document_id = ?", (row["id"],))
                conn.execute("DELETE FROM documents WHERE id = ?", (row["id"],))
        except sqlite3.Error as exc:
            raise IndexIOError(f"Pruning {self.db_path} failed: {exc}") from exc
        return len(missing)

    # ------------------------------------------------------------------
    # read path

    def _fetch(self, sql: str, params: Sequence[object] = ()) -> List[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise IndexIOError(f"Reading {self.db_path} failed: {exc}") from exc

    def _fetch_one(self, sql: str, params: Sequence[object] = ()) -> Optional[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise IndexIOError(f"Reading {self.db_path} failed: {exc}") from exc

    def document_count(self) -> int:
        return self._fetch_one("SELECT COUNT(*) FROM documents")[0]

    def all_document_ids(self) -> set[int]:
        return {row[0] for row in self._fetch("SELECT id FROM documents")}

    def postings(self, field: str, term: str) -> Dict[int, int]:
        """Return ``{document_id: frequency}`` for one (field, term) pair."""
        rows = self._fetch(
            "SELECT document_id, frequency FROM postings WHERE field = ? AND term = ?",
            (field, term),
        )
        return {row[0]: row[1] for row in rows}

    def documents(self, ids: Iterable[int]) -> Dict[int, sqlite3.Row]:
        wanted = list(ids)
        found: Dict[int, sqlite3.Row] = {}
        # stay under SQLite's bound-parameter limit
        for start in range(0, len(wanted), 500):
            batch = wanted[start : start + 500]
            placeholders = ", ".join("?" for _ in batch)
            rows = self._fetch(
                f"SELECT id, path, title, body FROM documents WHERE id IN ({placeholders})",
                batch,
            )
            found.update((row["id"], row) for row in rows)
        return found

    def find_document(self, path: Path) -> Optional[sqlite3.Row]:
        return self._fetch_one(
            "SELECT id, path, title, sha256 FROM documents WHERE path = ?",
            (str(path),),
        )
