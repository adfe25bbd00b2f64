from __future__ import annotations

import hashlib
import math
import re
from typing import Protocol

from app.core.config.scoring import get_scoring_int

_TOKEN_PATTERN = re.compile(r"[a-z0-9\+#]+")


class EmbeddingSizeError(RuntimeError):
    def __init__(self, expected: int, received: int):
        super().__init__(f"Embedding provider returned {received} vectors for {expected} texts.")
        self.expected = expected
        self.received = received


class EmbeddingProvider(Protocol):
    def embed(self, texts: list[str]) -> list[list[float]]:
        """Return vector embeddings for input texts."""


class SimpleEmbeddingProvider(EmbeddingProvider):
    """Deterministic hashed bag-of-tokens vectors; identical text always gives the identical vector."""

    def __init__(self, dimension: int | None = None) -> None:
        if dimension is None:
            dimension = get_scoring_int("matching.embedding_dimension", 64)
        if dimension <= 0:
            raise ValueError("dimension must be greater than 0")
        self.dimension = dimension

    def embed(self, texts: list[str]) -> list[list[float]]:
        return [self._token_vector(text) for text in texts]

    def _bucket(self, token: str) -> int:
        return int(hashlib.sha256(token.encode("utf-8")).hexdigest()[:8], 16) % self.dimension

    def _token_vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in _TOKEN_PATTERN.findall(text.lower()):
            vector[self._bucket(token)] += 1.0
        length = math.sqrt(sum(value * value for value in vector))
        return [value / length for value in vector] if length > 0 else vector


def cosine_similarity(left: list[float], right: list[float]) -> float:
    if len(left) != len(right):
        return 0.0
    left_norm = math.sqrt(sum(a * a for a in left))
    right_norm = math.sqrt(sum(b * b for b in right))
    if left_norm <= 0 or right_norm <= 0:
        return 0.0
    return sum(a * b for a, b in zip(left, right)) / (left_norm * right_norm)


def _embed_checked(provider: EmbeddingProvider, texts: list[str]) -> list[list[float]]:
    vectors = provider.embed(texts) if texts else []
    if len(vectors) != len(texts):
        raise EmbeddingSizeError(len(texts), len(vectors))
    return vectors


def similarity_matrix(
    provider: EmbeddingProvider,
    row_texts: list[str],
    column_texts: list[str],
) -> list[list[float]]:
    """Cosine similarity of every row text against every column text, clamped to [0, 1].

    Each side is embedded in a single batch. Raises EmbeddingSizeError when the
    provider does not return one vector per text.
    """
    rows = _embed_checked(provider, row_texts)
    columns = _embed_checked(provider, column_texts)
    return [[min(1.0, max(0.0, cosine_similarity(row, column))) for column in columns] for row in rows]
