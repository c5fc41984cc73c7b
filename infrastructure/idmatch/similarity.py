"""
Vector similarity helpers shared by the scoring strategies.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

# Observed cosine range for face embeddings is roughly [0.2, 1.0]
DEEP_COSINE_FLOOR = 0.2
DEEP_COSINE_SPAN = 0.8


def clamp_unit(value: float) -> float:
    """Clamp a score to [0, 1]; NaN maps to 0."""
    if value != value:
        return 0.0
    return float(max(0.0, min(1.0, value)))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0 when the vectors are empty, differ in dimension, or either
    has zero norm.
    """
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.size == 0 or va.size != vb.size:
        return 0.0
    norm_product = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm_product <= 0:
        return 0.0
    return float(np.dot(va, vb) / norm_product)


def rescale_deep_cosine(cosine: float) -> float:
    """Map a raw face-embedding cosine onto a [0, 1] similarity score."""
    return clamp_unit((cosine - DEEP_COSINE_FLOOR) / DEEP_COSINE_SPAN)


@dataclass(frozen=True)
class DeepEmbedding:
    vector: np.ndarray

    @property
    def dimension(self) -> int:
        return int(self.vector.shape[-1])

    def similarity(self, other: "DeepEmbedding") -> float:
        return rescale_deep_cosine(cosine_similarity(self.vector, other.vector))
