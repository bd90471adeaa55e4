"""Vector and path similarity helpers shared by the scorers."""

import posixpath
from collections.abc import Sequence

import numpy as np
from loguru import logger


def cosine_similarity(
    vec_a: Sequence[float] | np.ndarray | None,
    vec_b: Sequence[float] | np.ndarray | None,
) -> float:
    """Cosine similarity of two embedding vectors.

    Missing vectors, mismatched dimensions and zero-norm vectors all score 0.0
    so a broken embedding never outranks a real one.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        Similarity in [-1.0, 1.0]
    """
    if vec_a is None or vec_b is None:
        return 0.0

    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)

    if a.ndim != 1 or a.shape != b.shape or a.size == 0:
        logger.debug(
            f"Cannot compare embeddings with shapes {a.shape} and {b.shape}"
        )
        return 0.0

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))


def path_similarity(path_a: str | None, path_b: str | None) -> float:
    """Directory-structure similarity between two file paths.

    Score is the length of the shared leading directory run divided by the
    average directory depth of the two paths. Two files both at the root
    score 1.0.

    Args:
        path_a: First path (POSIX or Windows separators)
        path_b: Second path

    Returns:
        Similarity in [0.0, 1.0]
    """
    if not path_a or not path_b:
        return 0.0

    parts_a = _directory_parts(path_a)
    parts_b = _directory_parts(path_b)

    common = 0
    for left, right in zip(parts_a, parts_b, strict=False):
        if left != right:
            break
        common += 1

    avg_length = (len(parts_a) + len(parts_b)) / 2
    if avg_length == 0:
        return 1.0

    return max(0.0, min(1.0, common / avg_length))


def clamp_score(score: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a score into ``[low, high]``."""
    return max(low, min(high, score))


def _directory_parts(path: str) -> list[str]:
    normalized = posixpath.normpath(path.replace("\\", "/"))
    return [part for part in posixpath.dirname(normalized).split("/") if part]
