"""Retrieval engine package."""

from .engine import (
    SEARCH_MODES,
    HybridSearchEngine,
    InvalidQueryError,
    SearchResult,
    UnsupportedSearchModeError,
    build_match_expression,
    fuse_results,
    normalize_rank,
    validate_request,
)

__all__ = [
    "HybridSearchEngine",
    "InvalidQueryError",
    "SEARCH_MODES",
    "SearchResult",
    "UnsupportedSearchModeError",
    "build_match_expression",
    "fuse_results",
    "normalize_rank",
    "validate_request",
]
