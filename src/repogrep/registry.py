"""Per-repository indexing status rows."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass

from repogrep.store.metadata import MetadataStore


@dataclass(slots=True, frozen=True)
class RepositoryEntry:
    """Status of one indexed repository."""

    repo: str
    source: str | None
    root_path: str | None
    last_indexed_ms: int | None
    last_error: str | None
    file_count: int

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


_SELECT_ENTRIES = """
SELECT
    r.repo AS repo,
    r.source AS source,
    r.root_path AS root_path,
    r.last_indexed_ms AS last_indexed_ms,
    r.last_error AS last_error,
    (SELECT COUNT(*) FROM file_meta m WHERE m.repo = r.repo) AS file_count
FROM repo_index r
"""


class RepositoryRegistry:
    """Reads and writes the ``repo_index`` table."""

    def __init__(self, store: MetadataStore) -> None:
        self._store = store

    def upsert(
        self,
        repo: str,
        source: str | None,
        timestamp_ms: int | None,
        error: str | None,
        root_path: str | None = None,
    ) -> None:
        """Insert or update a status row.

        ``timestamp_ms=None`` keeps the stored timestamp and ``root_path=None``
        keeps the stored root, so a failed run never erases the last success.
        """
        with self._store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO repo_index (repo, source, last_indexed_ms, last_error, root_path)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(repo) DO UPDATE SET
                    source = excluded.source,
                    last_indexed_ms = COALESCE(excluded.last_indexed_ms, repo_index.last_indexed_ms),
                    last_error = excluded.last_error,
                    root_path = COALESCE(excluded.root_path, repo_index.root_path)
                """,
                (repo, source, timestamp_ms, error, root_path),
            )

    def list(self) -> list[RepositoryEntry]:
        with self._store.reading() as conn:
            rows = conn.execute(_SELECT_ENTRIES + " ORDER BY r.repo ASC").fetchall()
        return [_entry_from_row(row) for row in rows]

    def get(self, repo: str) -> RepositoryEntry | None:
        with self._store.reading() as conn:
            row = conn.execute(_SELECT_ENTRIES + " WHERE r.repo = ?", (repo,)).fetchone()
        if row is None:
            return None
        return _entry_from_row(row)


def _entry_from_row(row: sqlite3.Row) -> RepositoryEntry:
    return RepositoryEntry(
        repo=row["repo"],
        source=row["source"],
        root_path=row["root_path"],
        last_indexed_ms=row["last_indexed_ms"],
        last_error=row["last_error"],
        file_count=int(row["file_count"]),
    )
