"""Sentence embeddings for semantic retrieval."""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

import numpy as np

from repogrep.config import DEFAULT_EMBEDDING_MODEL, EMBEDDING_DIMENSION

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Text to fixed-width, L2-normalized vector."""

    @property
    def dimension(self) -> int: ...

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]: ...


def prepare_text(text: str) -> str:
    """Blank input is replaced by a single space so the model always sees a token."""
    return text if text.strip() else " "


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    """L2-normalize each row, leaving all-zero rows untouched."""
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


class SentenceTransformerEmbedder:
    """Mean-pooled MiniLM embeddings, model loaded once on first use."""

    def __init__(
        self,
        model_name: str = DEFAULT_EMBEDDING_MODEL,
        dimension: int = EMBEDDING_DIMENSION,
    ) -> None:
        self._model_name = model_name
        self._dimension = dimension
        self._model: Any = None
        self._lock = threading.Lock()

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        model = self._load_model()
        matrix = model.encode(
            [prepare_text(text) for text in texts],
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        matrix = normalize_rows(np.asarray(matrix, dtype=np.float32).reshape(len(texts), -1))
        if matrix.shape[1] != self._dimension:
            raise ValueError(
                f"Embedding model {self._model_name} produced dimension {matrix.shape[1]}, "
                f"expected {self._dimension}."
            )
        return matrix.tolist()

    def _load_model(self) -> Any:
        with self._lock:
            if self._model is None:
                from sentence_transformers import SentenceTransformer

                logger.info("Loading embedding model %s", self._model_name)
                self._model = SentenceTransformer(self._model_name)
            return self._model
