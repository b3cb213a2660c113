"""Persistent stores: SQLite metadata and LanceDB vectors."""

from .metadata import KeywordRow, MetadataStore
from .retry import RetryExhaustedError, RetryPolicy, run_with_retry
from .vectors import LanceVectorStore, VectorHit, VectorStoreConflictError, is_commit_conflict

__all__ = [
    "KeywordRow",
    "LanceVectorStore",
    "MetadataStore",
    "RetryExhaustedError",
    "RetryPolicy",
    "VectorHit",
    "VectorStoreConflictError",
    "is_commit_conflict",
    "run_with_retry",
]
