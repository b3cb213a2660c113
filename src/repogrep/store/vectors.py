"""LanceDB-backed vector store with conflict-aware mutations."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, TypeVar

import lancedb
import pyarrow as pa

from repogrep.index.models import VectorRecord
from repogrep.store.retry import RetryExhaustedError, RetryPolicy, run_with_retry

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "files"
_RESULT_COLUMNS = ["id", "repo", "path", "filename"]


@dataclass(slots=True, frozen=True)
class VectorStoreConflictError(Exception):
    """Raised when a vector mutation keeps hitting commit conflicts."""

    operation: str
    attempts: int
    message: str

    def __str__(self) -> str:
        return f"Vector store {self.operation} failed after {self.attempts} attempt(s): {self.message}"


@dataclass(slots=True, frozen=True)
class VectorHit:
    """Nearest-neighbour row with its raw distance (lower is closer)."""

    id: str
    repo: str
    path: str
    filename: str
    distance: float | None


def is_commit_conflict(error: BaseException) -> bool:
    """Classify optimistic-concurrency failures reported by the table format."""
    return "commit conflict" in str(error).lower()


def quote_literal(value: str) -> str:
    """Quote a string for a LanceDB filter expression."""
    return "'" + value.replace("'", "''") + "'"


def build_schema(dimension: int) -> pa.Schema:
    return pa.schema(
        [
            pa.field("id", pa.string()),
            pa.field("repo", pa.string()),
            pa.field("path", pa.string()),
            pa.field("filename", pa.string()),
            pa.field("mtime_ms", pa.int64()),
            pa.field("size_bytes", pa.int64()),
            pa.field("hash", pa.string()),
            pa.field("vector", pa.list_(pa.float32(), dimension)),
        ]
    )


class LanceVectorStore:
    """Lazily opened handle on the ``files`` table."""

    def __init__(
        self,
        directory: Path,
        dimension: int,
        *,
        table_name: str = DEFAULT_TABLE_NAME,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._directory = directory
        self._dimension = dimension
        self._table_name = table_name
        self._retry_policy = retry_policy or RetryPolicy()
        self._lock = threading.Lock()
        self._db: Any = None
        self._table: Any = None

    @property
    def dimension(self) -> int:
        return self._dimension

    def table(self) -> Any:
        """Return the open table, connecting and creating it on first use."""
        with self._lock:
            if self._table is None:
                self._table = self._open_table()
            return self._table

    def refresh(self) -> None:
        """Reopen the table so the next call sees the latest committed version."""
        with self._lock:
            self._table = self._open_table()

    def close(self) -> None:
        with self._lock:
            self._table = None
            self._db = None

    def add(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        rows = [asdict(record) for record in records]
        self._mutate(lambda: self.table().add(rows), "add")

    def delete_keys(self, keys: list[str]) -> None:
        """Delete rows by composite key, one retried mutation per key."""
        for key in keys:
            predicate = f"id = {quote_literal(key)}"
            self._mutate(lambda: self.table().delete(predicate), f"delete {key}")

    def delete_repo(self, repo: str) -> None:
        predicate = f"repo = {quote_literal(repo)}"
        self._mutate(lambda: self.table().delete(predicate), f"delete repo {repo}")

    def search(self, vector: list[float], *, repo: str | None = None, limit: int = 20) -> list[VectorHit]:
        table = self.table()
        if table.count_rows() == 0:
            return []
        query = table.search(vector)
        if repo is not None:
            query = query.where(f"repo = {quote_literal(repo)}", prefilter=True)
        rows = query.select(_RESULT_COLUMNS).limit(limit).to_list()
        hits: list[VectorHit] = []
        for row in rows:
            distance = row.get("_distance")
            hits.append(
                VectorHit(
                    id=str(row["id"]),
                    repo=str(row["repo"]),
                    path=str(row["path"]),
                    filename=str(row["filename"]),
                    distance=float(distance) if distance is not None else None,
                )
            )
        return hits

    def rows_for_repo(self, repo: str) -> dict[str, str]:
        """Map composite key to stored content hash for one repository."""
        return {key: content_hash for key, content_hash in self.key_hashes(repo)}

    def duplicate_keys(self, repo: str) -> set[str]:
        """Composite keys stored more than once for one repository."""
        seen: set[str] = set()
        duplicates: set[str] = set()
        for key, _ in self.key_hashes(repo):
            if key in seen:
                duplicates.add(key)
            seen.add(key)
        return duplicates

    def key_hashes(self, repo: str) -> list[tuple[str, str]]:
        """Every (id, hash) pair stored for one repository, duplicates included."""
        table = self.table()
        predicate = f"repo = {quote_literal(repo)}"
        total = int(table.count_rows(predicate))
        if total == 0:
            return []
        rows = table.search().where(predicate).select(["id", "hash"]).limit(total).to_list()
        return [(str(row["id"]), str(row["hash"])) for row in rows]

    def count_rows(self, repo: str | None = None) -> int:
        table = self.table()
        if repo is None:
            return int(table.count_rows())
        return int(table.count_rows(f"repo = {quote_literal(repo)}"))

    def _mutate(self, operation: Callable[[], T], description: str) -> T:
        try:
            return run_with_retry(
                operation,
                is_retryable=is_commit_conflict,
                policy=self._retry_policy,
                before_attempt=self.refresh,
                description=description,
            )
        except RetryExhaustedError as error:
            raise VectorStoreConflictError(
                operation=description,
                attempts=error.attempts,
                message=error.last_error,
            ) from error

    def _open_table(self) -> Any:
        if self._db is None:
            self._directory.mkdir(parents=True, exist_ok=True)
            self._db = lancedb.connect(str(self._directory))
        if self._table_name in self._db.list_tables().tables:
            table = self._db.open_table(self._table_name)
            if self._schema_matches(table.schema):
                return table
            logger.warning(
                "Vector table %s has an incompatible schema, recreating it (dimension %d)",
                self._table_name,
                self._dimension,
            )
            self._db.drop_table(self._table_name)
        return self._db.create_table(self._table_name, schema=build_schema(self._dimension))

    def _schema_matches(self, schema: pa.Schema) -> bool:
        if "vector" not in schema.names:
            return False
        vector_type = schema.field("vector").type
        if not isinstance(vector_type, pa.FixedSizeListType):
            return False
        return vector_type.list_size == self._dimension
