"""Typed models for indexing state."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

VECTOR_ID_SEPARATOR = ":"


def vector_id(repo: str, path: str) -> str:
    """Composite key addressing one file in the vector store."""
    return f"{repo}{VECTOR_ID_SEPARATOR}{path}"


@dataclass(slots=True, frozen=True)
class FileRecord:
    """Represents a file tracked by the metadata store."""

    repo: str
    path: str
    filename: str
    mtime_ms: int
    size_bytes: int
    hash: str
    id: int | None = None


@dataclass(slots=True, frozen=True)
class ScannedFile:
    """One candidate file as read from disk."""

    path: str
    filename: str
    mtime_ms: int
    size_bytes: int
    content_hash: str
    contents: str
    is_binary: bool


@dataclass(slots=True, frozen=True)
class StagedUpdate:
    """Insert or update waiting for the metadata transaction."""

    record: FileRecord
    contents: str
    vector: list[float]


@dataclass(slots=True, frozen=True)
class VectorRecord:
    """Row shape of the vector store table."""

    id: str
    repo: str
    path: str
    filename: str
    mtime_ms: int
    size_bytes: int
    hash: str
    vector: list[float]

    @classmethod
    def from_file(cls, record: FileRecord, vector: list[float]) -> VectorRecord:
        return cls(
            id=vector_id(record.repo, record.path),
            repo=record.repo,
            path=record.path,
            filename=record.filename,
            mtime_ms=record.mtime_ms,
            size_bytes=record.size_bytes,
            hash=record.hash,
            vector=vector,
        )


@dataclass(slots=True, frozen=True)
class IndexSummary:
    """Counters reported at the end of an indexing run."""

    repo: str
    repo_path: str
    files_scanned: int
    files_indexed: int
    files_deleted: int
    files_skipped_binary: int
    files_skipped_unchanged: int
    files_failed: int
    duration_ms: int
    vector_failures: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.vector_failures

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["vector_failures"] = list(self.vector_failures)
        return payload


@dataclass(slots=True, frozen=True)
class ReconcileSummary:
    """Outcome of comparing metadata hashes against vector rows."""

    repo: str
    checked: int
    repaired: int
    orphans_removed: int
    missing_on_disk: int
    duration_ms: int
