"""File discovery and indexing models."""

from .discovery import (
    compile_globs,
    discover_candidates,
    glob_to_regex,
    is_binary_bytes,
    matches_any,
    scan_file,
    sha256_bytes,
)
from .models import (
    FileRecord,
    IndexSummary,
    ReconcileSummary,
    ScannedFile,
    StagedUpdate,
    VectorRecord,
    vector_id,
)

__all__ = [
    "FileRecord",
    "IndexSummary",
    "ReconcileSummary",
    "ScannedFile",
    "StagedUpdate",
    "VectorRecord",
    "compile_globs",
    "discover_candidates",
    "glob_to_regex",
    "is_binary_bytes",
    "matches_any",
    "scan_file",
    "sha256_bytes",
    "vector_id",
]
