"""Keyword, semantic and hybrid retrieval over the indexed stores."""

from __future__ import annotations

import math
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass

from repogrep.config import SearchConfig
from repogrep.embedding import Embedder
from repogrep.store.metadata import MetadataStore
from repogrep.store.vectors import LanceVectorStore, VectorHit

SEARCH_MODES = ("keyword", "semantic", "hybrid")
TOKEN_PATTERN = re.compile(r"\w+")


@dataclass(slots=True, frozen=True)
class InvalidQueryError(Exception):
    """Raised for an empty or whitespace-only query."""

    query: str

    def __str__(self) -> str:
        return "Search query must not be empty."


@dataclass(slots=True, frozen=True)
class UnsupportedSearchModeError(Exception):
    """Raised when a caller asks for a mode outside keyword/semantic/hybrid."""

    mode: str

    def __str__(self) -> str:
        return f"Unsupported search mode '{self.mode}'; expected one of {', '.join(SEARCH_MODES)}."


@dataclass(slots=True, frozen=True)
class SearchResult:
    """One ranked file hit."""

    repo: str
    path: str
    filename: str
    snippet: str | None
    score: float
    mode: str
    keyword_score: float | None = None
    semantic_score: float | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def validate_request(query: str, mode: str) -> None:
    """Reject blank queries and unknown modes before any store is touched."""
    if not query or not query.strip():
        raise InvalidQueryError(query=query)
    if mode not in SEARCH_MODES:
        raise UnsupportedSearchModeError(mode=mode)


def normalize_rank(value: float | None) -> float:
    """Map a lower-is-better rank or distance into (0, 1]; missing values give 0."""
    if value is None or not math.isfinite(value):
        return 0.0
    return 1.0 / (1.0 + max(value, 0.0))


def build_match_expression(query: str) -> str | None:
    """Turn free text into an FTS5 expression of quoted tokens (implicit AND)."""
    tokens = TOKEN_PATTERN.findall(query)
    if not tokens:
        return None
    return " ".join(f'"{token}"' for token in dict.fromkeys(tokens))


def closest_per_file(hits: list[VectorHit]) -> list[VectorHit]:
    """Keep the nearest hit per (repo, path), preserving nearest-first order."""
    best: dict[tuple[str, str], VectorHit] = {}
    for hit in hits:
        key = (hit.repo, hit.path)
        current = best.get(key)
        if current is None or normalize_rank(hit.distance) > normalize_rank(current.distance):
            best[key] = hit
    return sorted(best.values(), key=lambda hit: -normalize_rank(hit.distance))


class HybridSearchEngine:
    """Runs and fuses keyword (FTS5 bm25) and semantic (vector distance) rankings."""

    def __init__(
        self,
        metadata: MetadataStore,
        vectors: LanceVectorStore,
        embedder: Embedder,
        search_config: SearchConfig | None = None,
    ) -> None:
        self._metadata = metadata
        self._vectors = vectors
        self._embedder = embedder
        self._config = search_config or SearchConfig()

    def search(
        self,
        query: str,
        mode: str = "keyword",
        *,
        repo: str | None = None,
        limit: int | None = None,
        keyword_weight: float | None = None,
        semantic_weight: float | None = None,
    ) -> list[SearchResult]:
        validate_request(query, mode)
        effective_limit = self._config.default_limit if limit is None else limit
        if effective_limit < 1:
            return []
        if mode == "keyword":
            return self.keyword_search(query, repo=repo, limit=effective_limit)
        if mode == "semantic":
            return self.semantic_search(query, repo=repo, limit=effective_limit)
        return self.hybrid_search(
            query,
            repo=repo,
            limit=effective_limit,
            keyword_weight=self._config.keyword_weight if keyword_weight is None else keyword_weight,
            semantic_weight=(
                self._config.semantic_weight if semantic_weight is None else semantic_weight
            ),
        )

    def keyword_search(self, query: str, *, repo: str | None, limit: int) -> list[SearchResult]:
        expression = build_match_expression(query)
        if expression is None:
            return []
        output: list[SearchResult] = []
        for row in self._metadata.keyword_search(expression, repo, limit):
            score = normalize_rank(row.rank)
            output.append(
                SearchResult(
                    repo=row.repo,
                    path=row.path,
                    filename=row.filename,
                    snippet=row.snippet,
                    score=score,
                    mode="keyword",
                    keyword_score=score,
                )
            )
        return output

    def semantic_search(self, query: str, *, repo: str | None, limit: int) -> list[SearchResult]:
        vector = self._embedder.embed(query)
        hits = self._vectors.search(vector, repo=repo, limit=limit)
        expression = build_match_expression(query)
        output: list[SearchResult] = []
        for hit in closest_per_file(hits):
            score = normalize_rank(hit.distance)
            snippet = None
            if expression is not None:
                snippet = self._metadata.snippet_for(hit.repo, hit.path, expression)
            output.append(
                SearchResult(
                    repo=hit.repo,
                    path=hit.path,
                    filename=hit.filename,
                    snippet=snippet,
                    score=score,
                    mode="semantic",
                    semantic_score=score,
                )
            )
        return output

    def hybrid_search(
        self,
        query: str,
        *,
        repo: str | None,
        limit: int,
        keyword_weight: float,
        semantic_weight: float,
    ) -> list[SearchResult]:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="repogrep-search") as pool:
            keyword_future = pool.submit(self.keyword_search, query, repo=repo, limit=limit)
            semantic_future = pool.submit(self.semantic_search, query, repo=repo, limit=limit)
            keyword_results = keyword_future.result()
            semantic_results = semantic_future.result()
        return fuse_results(
            keyword_results,
            semantic_results,
            keyword_weight=keyword_weight,
            semantic_weight=semantic_weight,
            limit=limit,
        )


def fuse_results(
    keyword_results: list[SearchResult],
    semantic_results: list[SearchResult],
    *,
    keyword_weight: float,
    semantic_weight: float,
    limit: int,
) -> list[SearchResult]:
    """Union two rankings by (repo, path) with a weighted score sum."""
    merged: dict[tuple[str, str], dict[str, object]] = {}
    for result in keyword_results:
        merged[(result.repo, result.path)] = {
            "filename": result.filename,
            "snippet": result.snippet,
            "keyword_score": result.keyword_score,
            "semantic_score": None,
        }
    for result in semantic_results:
        key = (result.repo, result.path)
        entry = merged.get(key)
        if entry is None:
            merged[key] = {
                "filename": result.filename,
                "snippet": result.snippet,
                "keyword_score": None,
                "semantic_score": result.semantic_score,
            }
            continue
        entry["semantic_score"] = result.semantic_score
        if entry["snippet"] is None:
            entry["snippet"] = result.snippet

    fused: list[SearchResult] = []
    for (repo, path), entry in merged.items():
        keyword_score = entry["keyword_score"]
        semantic_score = entry["semantic_score"]
        score = 0.0
        if isinstance(keyword_score, float):
            score += keyword_score * keyword_weight
        if isinstance(semantic_score, float):
            score += semantic_score * semantic_weight
        fused.append(
            SearchResult(
                repo=repo,
                path=path,
                filename=str(entry["filename"]),
                snippet=entry["snippet"] if isinstance(entry["snippet"], str) else None,
                score=score,
                mode="hybrid",
                keyword_score=keyword_score if isinstance(keyword_score, float) else None,
                semantic_score=semantic_score if isinstance(semantic_score, float) else None,
            )
        )
    fused.sort(key=lambda item: (-item.score, item.repo, item.path))
    return fused[:limit]
