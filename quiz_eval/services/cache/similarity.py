"""
Vector comparison for the answer cache.

Pure functions only; safe to call from any number of concurrent requests.
"""

from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from quiz_eval.errors import DimensionMismatchError, InvalidInputError
from quiz_eval.services.cache.models import CachedAnswerRecord


def _as_vector(values: Sequence[float], name: str) -> np.ndarray:
    try:
        vector = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Vector {name} is not numeric", stage="similarity") from e
    if vector.ndim != 1:
        raise InvalidInputError(f"Vector {name} must be one-dimensional, got shape {vector.shape}", stage="similarity")
    if vector.size == 0:
        raise DimensionMismatchError(f"Vector {name} is empty", stage="similarity")
    if not np.all(np.isfinite(vector)):
        raise InvalidInputError(f"Vector {name} contains NaN or infinite values", stage="similarity")
    return vector


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors, accumulated in float64.

    Returns 0.0 when either vector has zero magnitude. The result lies in [-1, 1].

    Raises:
        DimensionMismatchError: a vector is empty or the lengths differ
        InvalidInputError: non-numeric or non-finite elements
    """
    vec_a = _as_vector(a, "a")
    vec_b = _as_vector(b, "b")
    if vec_a.shape != vec_b.shape:
        raise DimensionMismatchError(
            f"Vector dimensions do not match: {vec_a.size} vs {vec_b.size}",
            stage="similarity",
        )

    # Scale by the largest magnitude so dot products cannot overflow or underflow
    scale_a = float(np.max(np.abs(vec_a)))
    scale_b = float(np.max(np.abs(vec_b)))
    if scale_a == 0.0 or scale_b == 0.0:
        return 0.0
    vec_a = vec_a / scale_a
    vec_b = vec_b / scale_b

    norm_a = float(np.sqrt(np.dot(vec_a, vec_a)))
    norm_b = float(np.sqrt(np.dot(vec_b, vec_b)))
    similarity = float(np.dot(vec_a, vec_b)) / (norm_a * norm_b)
    if not np.isfinite(similarity):
        raise InvalidInputError("Cosine similarity is not finite", stage="similarity")
    # Rounding can push parallel vectors a hair past 1
    return max(-1.0, min(1.0, similarity))


def select_best_match(
    scored: Iterable[Tuple[CachedAnswerRecord, float]],
) -> Optional[Tuple[CachedAnswerRecord, float]]:
    """Highest similarity wins; equal similarities go to the newest record."""
    best: Optional[Tuple[CachedAnswerRecord, float]] = None
    for record, similarity in scored:
        if best is None:
            best = (record, similarity)
            continue
        best_record, best_similarity = best
        if similarity > best_similarity or (
            similarity == best_similarity and record.created_at > best_record.created_at
        ):
            best = (record, similarity)
    return best
