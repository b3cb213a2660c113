"""SQLite metadata store with an FTS5 full-text mirror."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from repogrep.index.models import FileRecord, StagedUpdate

SNIPPET_SQL = "snippet(file_fts, 3, '[', ']', ' … ', 24)"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS file_meta (
    id INTEGER PRIMARY KEY,
    repo TEXT NOT NULL,
    path TEXT NOT NULL,
    filename TEXT NOT NULL,
    mtime_ms INTEGER NOT NULL,
    size_bytes INTEGER NOT NULL,
    hash TEXT NOT NULL,
    UNIQUE(repo, path)
);

CREATE VIRTUAL TABLE IF NOT EXISTS file_fts USING fts5(
    repo, path, filename, contents, tokenize = 'porter'
);

CREATE TABLE IF NOT EXISTS repo_index (
    repo TEXT PRIMARY KEY,
    source TEXT,
    last_indexed_ms INTEGER,
    last_error TEXT,
    root_path TEXT
);

CREATE INDEX IF NOT EXISTS idx_file_meta_repo ON file_meta(repo);
CREATE INDEX IF NOT EXISTS idx_file_meta_repo_path ON file_meta(repo, path);
"""


@dataclass(slots=True, frozen=True)
class KeywordRow:
    """Raw full-text hit with the engine's native rank."""

    repo: str
    path: str
    filename: str
    snippet: str | None
    rank: float | None


class MetadataStore:
    """Owns the SQLite connection holding file metadata, FTS rows and registry."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = sqlite3.connect(
            str(path), check_same_thread=False
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)
        self._migrate()
        self._conn.commit()

    def _migrate(self) -> None:
        """Bring databases created without ``repo_index.root_path`` up to date."""
        conn = self.connection
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(repo_index)")}
        if "root_path" not in columns:
            conn.execute("ALTER TABLE repo_index ADD COLUMN root_path TEXT")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Metadata store is closed.")
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialize access and commit on success, roll back on error."""
        with self._lock:
            conn = self.connection
            with conn:
                yield conn

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        """Serialize read access to the shared connection."""
        with self._lock:
            yield self.connection

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def load_file_index(self, repo: str) -> dict[str, FileRecord]:
        """Map relative path to the stored record for one repository."""
        with self.reading() as conn:
            rows = conn.execute(
                "SELECT id, repo, path, filename, mtime_ms, size_bytes, hash "
                "FROM file_meta WHERE repo = ?",
                (repo,),
            ).fetchall()
        return {row["path"]: _record_from_row(row) for row in rows}

    def apply_changes(
        self,
        updates: list[StagedUpdate],
        removals: list[FileRecord],
    ) -> list[FileRecord]:
        """Apply staged upserts and deletions in one transaction.

        Returns the upserted records carrying their persisted ids.
        """
        persisted: list[FileRecord] = []
        with self.transaction() as conn:
            for update in updates:
                record = update.record
                conn.execute(
                    """
                    INSERT INTO file_meta (repo, path, filename, mtime_ms, size_bytes, hash)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(repo, path) DO UPDATE SET
                        filename = excluded.filename,
                        mtime_ms = excluded.mtime_ms,
                        size_bytes = excluded.size_bytes,
                        hash = excluded.hash
                    """,
                    (
                        record.repo,
                        record.path,
                        record.filename,
                        record.mtime_ms,
                        record.size_bytes,
                        record.hash,
                    ),
                )
                row = conn.execute(
                    "SELECT id FROM file_meta WHERE repo = ? AND path = ?",
                    (record.repo, record.path),
                ).fetchone()
                file_id = int(row["id"])
                conn.execute("DELETE FROM file_fts WHERE rowid = ?", (file_id,))
                conn.execute(
                    "INSERT INTO file_fts (rowid, repo, path, filename, contents) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (file_id, record.repo, record.path, record.filename, update.contents),
                )
                persisted.append(
                    FileRecord(
                        repo=record.repo,
                        path=record.path,
                        filename=record.filename,
                        mtime_ms=record.mtime_ms,
                        size_bytes=record.size_bytes,
                        hash=record.hash,
                        id=file_id,
                    )
                )
            for removal in removals:
                conn.execute("DELETE FROM file_fts WHERE rowid = ?", (removal.id,))
                conn.execute("DELETE FROM file_meta WHERE id = ?", (removal.id,))
        return persisted

    def delete_repo(self, repo: str) -> int:
        """Remove every metadata, full-text and registry row of a repository."""
        with self.transaction() as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM file_meta WHERE repo = ?", (repo,)
            ).fetchone()[0]
            conn.execute("DELETE FROM file_fts WHERE repo = ?", (repo,))
            conn.execute("DELETE FROM file_meta WHERE repo = ?", (repo,))
            conn.execute("DELETE FROM repo_index WHERE repo = ?", (repo,))
        return int(count)

    def keyword_search(self, match_expression: str, repo: str | None, limit: int) -> list[KeywordRow]:
        """Run an FTS5 MATCH ordered by bm25 (lower is better)."""
        sql = (
            "SELECT m.repo AS repo, m.path AS path, m.filename AS filename, "
            f"{SNIPPET_SQL} AS snippet, bm25(file_fts) AS rank "
            "FROM file_fts JOIN file_meta m ON m.id = file_fts.rowid "
            "WHERE file_fts MATCH ?"
        )
        params: list[object] = [match_expression]
        if repo is not None:
            sql += " AND m.repo = ?"
            params.append(repo)
        sql += " ORDER BY rank LIMIT ?"
        params.append(limit)
        with self.reading() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            KeywordRow(
                repo=row["repo"],
                path=row["path"],
                filename=row["filename"],
                snippet=row["snippet"],
                rank=row["rank"],
            )
            for row in rows
        ]

    def snippet_for(self, repo: str, path: str, match_expression: str) -> str | None:
        """Best-effort highlighted snippet for one indexed file."""
        with self.reading() as conn:
            row = conn.execute(
                f"SELECT {SNIPPET_SQL} AS snippet FROM file_fts "
                "WHERE repo = ? AND path = ? AND file_fts MATCH ? LIMIT 1",
                (repo, path, match_expression),
            ).fetchone()
        if row is None:
            return None
        return row["snippet"]

    def list_files(self, repo: str | None = None) -> list[FileRecord]:
        """Return stored records ordered by repository then path."""
        sql = "SELECT id, repo, path, filename, mtime_ms, size_bytes, hash FROM file_meta"
        params: tuple[object, ...] = ()
        if repo is not None:
            sql += " WHERE repo = ?"
            params = (repo,)
        sql += " ORDER BY repo, path"
        with self.reading() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_record_from_row(row) for row in rows]

    def get_file(self, repo: str, path: str) -> FileRecord | None:
        with self.reading() as conn:
            row = conn.execute(
                "SELECT id, repo, path, filename, mtime_ms, size_bytes, hash "
                "FROM file_meta WHERE repo = ? AND path = ?",
                (repo, path),
            ).fetchone()
        if row is None:
            return None
        return _record_from_row(row)

    def count_text_entries(self, repo: str) -> int:
        with self.reading() as conn:
            return int(
                conn.execute("SELECT COUNT(*) FROM file_fts WHERE repo = ?", (repo,)).fetchone()[0]
            )


def _record_from_row(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        repo=row["repo"],
        path=row["path"],
        filename=row["filename"],
        mtime_ms=int(row["mtime_ms"]),
        size_bytes=int(row["size_bytes"]),
        hash=row["hash"],
        id=int(row["id"]),
    )
