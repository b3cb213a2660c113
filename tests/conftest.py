from __future__ import annotations

import hashlib
import re
from collections.abc import Iterator
from pathlib import Path

import numpy as np
import pytest

from repogrep.config import AppConfig, default_config
from repogrep.service import RepoSearchService

TOKEN = re.compile(r"\w+")


class HashingEmbedder:
    """Deterministic bag-of-words embedder standing in for the sentence model."""

    dimension = 384

    def __init__(self) -> None:
        self.calls = 0

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        output: list[list[float]] = []
        for text in texts:
            self.calls += 1
            vector = np.zeros(self.dimension, dtype=np.float32)
            for token in TOKEN.findall(text.lower()):
                digest = hashlib.sha256(token.encode("utf-8")).digest()
                vector[int.from_bytes(digest[:4], "big") % self.dimension] += 1.0
            norm = float(np.linalg.norm(vector))
            if norm == 0.0:
                vector[0] = 1.0
            else:
                vector /= norm
            output.append(vector.tolist())
        return output


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return default_config(tmp_path / "data")


@pytest.fixture
def service(app_config: AppConfig, embedder: HashingEmbedder) -> Iterator[RepoSearchService]:
    with RepoSearchService(app_config, embedder=embedder) as svc:
        yield svc


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    root = tmp_path / "workspace" / "demo"
    root.mkdir(parents=True)
    return root
