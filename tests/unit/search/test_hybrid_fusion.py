from __future__ import annotations

import pytest

from repogrep.search import SearchResult, fuse_results


def _keyword(path: str, score: float, snippet: str | None = "[kw]") -> SearchResult:
    return SearchResult(
        repo="demo",
        path=path,
        filename=path,
        snippet=snippet,
        score=score,
        mode="keyword",
        keyword_score=score,
    )


def _semantic(path: str, score: float, snippet: str | None = None) -> SearchResult:
    return SearchResult(
        repo="demo",
        path=path,
        filename=path,
        snippet=snippet,
        score=score,
        mode="semantic",
        semantic_score=score,
    )


def test_keyword_only_hit_keeps_single_weighted_contribution() -> None:
    [fused] = fuse_results(
        [_keyword("a.ts", 0.8)], [], keyword_weight=0.4, semantic_weight=0.6, limit=10
    )

    assert fused.score == pytest.approx(0.8 * 0.4)
    assert fused.keyword_score == 0.8
    assert fused.semantic_score is None
    assert fused.mode == "hybrid"


def test_overlapping_hit_sums_both_contributions() -> None:
    [fused] = fuse_results(
        [_keyword("a.ts", 0.5)],
        [_semantic("a.ts", 0.9)],
        keyword_weight=0.4,
        semantic_weight=0.6,
        limit=10,
    )

    assert fused.score == pytest.approx(0.5 * 0.4 + 0.9 * 0.6)
    assert fused.snippet == "[kw]"


def test_semantic_snippet_used_when_keyword_side_has_none() -> None:
    [fused] = fuse_results(
        [_keyword("a.ts", 0.5, snippet=None)],
        [_semantic("a.ts", 0.9, snippet="[sem]")],
        keyword_weight=0.4,
        semantic_weight=0.6,
        limit=10,
    )

    assert fused.snippet == "[sem]"


def test_results_sorted_by_score_then_truncated() -> None:
    fused = fuse_results(
        [_keyword("a.ts", 1.0), _keyword("b.ts", 0.2)],
        [_semantic("c.ts", 0.9), _semantic("b.ts", 0.9)],
        keyword_weight=0.4,
        semantic_weight=0.6,
        limit=2,
    )

    assert [item.path for item in fused] == ["b.ts", "c.ts"]


def test_ties_break_by_repo_and_path() -> None:
    fused = fuse_results(
        [_keyword("z.ts", 0.5), _keyword("m.ts", 0.5)],
        [],
        keyword_weight=1.0,
        semantic_weight=1.0,
        limit=5,
    )

    assert [item.path for item in fused] == ["m.ts", "z.ts"]
