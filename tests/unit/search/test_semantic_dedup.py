from __future__ import annotations

from repogrep.search import HybridSearchEngine
from repogrep.search.engine import closest_per_file
from repogrep.store import VectorHit


def _hit(path: str, distance: float | None, repo: str = "demo") -> VectorHit:
    return VectorHit(id=f"{repo}:{path}", repo=repo, path=path, filename=path, distance=distance)


class StubVectors:
    def __init__(self, hits: list[VectorHit]) -> None:
        self.hits = hits

    def search(self, vector: list[float], *, repo: str | None = None, limit: int = 20) -> list[VectorHit]:
        return self.hits[:limit]


class StubMetadata:
    def snippet_for(self, repo: str, path: str, match_expression: str) -> str | None:
        return None


class StubEmbedder:
    dimension = 384

    def embed(self, text: str) -> list[float]:
        return [0.0] * self.dimension


def test_closest_hit_wins_per_file() -> None:
    hits = [_hit("a.ts", 0.2), _hit("b.ts", 0.3), _hit("a.ts", 0.1), _hit("a.ts", 0.5, repo="other")]

    kept = closest_per_file(hits)

    assert [(hit.repo, hit.path, hit.distance) for hit in kept] == [
        ("demo", "a.ts", 0.1),
        ("demo", "b.ts", 0.3),
        ("other", "a.ts", 0.5),
    ]


def test_semantic_search_reports_each_file_once() -> None:
    engine = HybridSearchEngine(
        metadata=StubMetadata(),
        vectors=StubVectors([_hit("a.ts", 0.0), _hit("a.ts", 0.4), _hit("b.ts", 1.0)]),
        embedder=StubEmbedder(),
    )

    results = engine.semantic_search("login", repo=None, limit=10)

    assert [(result.path, result.score) for result in results] == [("a.ts", 1.0), ("b.ts", 0.5)]
