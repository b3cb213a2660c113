from __future__ import annotations

import math

from repogrep.search import build_match_expression, normalize_rank


def test_scores_lie_in_open_closed_unit_interval() -> None:
    for value in (-12.5, -0.1, 0.0, 0.3, 1.0, 42.0, 1e9):
        score = normalize_rank(value)
        assert 0.0 < score <= 1.0


def test_lower_rank_never_scores_worse() -> None:
    assert normalize_rank(0.2) > normalize_rank(0.8)
    assert normalize_rank(-3.0) == 1.0


def test_missing_or_non_finite_rank_scores_zero() -> None:
    assert normalize_rank(None) == 0.0
    assert normalize_rank(math.nan) == 0.0
    assert normalize_rank(math.inf) == 0.0


def test_match_expression_quotes_tokens_as_implicit_and() -> None:
    assert build_match_expression("login handler") == '"login" "handler"'


def test_match_expression_neutralizes_fts_syntax() -> None:
    assert build_match_expression('foo* AND "bar" NEAR(baz)') == (
        '"foo" "AND" "bar" "NEAR" "baz"'
    )


def test_match_expression_dedupes_tokens() -> None:
    assert build_match_expression("auth auth token") == '"auth" "token"'


def test_match_expression_without_tokens_is_none() -> None:
    assert build_match_expression("*** ---") is None
