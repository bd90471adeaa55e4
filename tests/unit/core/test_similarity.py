"""Tests for vector and path similarity helpers."""

import math

import numpy as np
import pytest

from review_context.core.similarity import (
    clamp_score,
    cosine_similarity,
    path_similarity,
)


class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(
            1.0
        )

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_accepts_numpy_arrays(self):
        a = np.array([3.0, 4.0])
        b = np.array([4.0, 3.0])
        assert cosine_similarity(a, b) == pytest.approx(24 / 25)

    @pytest.mark.parametrize(
        "vec_a,vec_b",
        [
            (None, [1.0]),
            ([1.0], None),
            ([1.0, 2.0], [1.0, 2.0, 3.0]),
            ([], []),
            ([0.0, 0.0], [1.0, 1.0]),
        ],
    )
    def test_degenerate_inputs_score_zero(self, vec_a, vec_b):
        assert cosine_similarity(vec_a, vec_b) == 0.0


class TestPathSimilarity:
    def test_same_directory(self):
        assert path_similarity("src/api/a.py", "src/api/b.py") == pytest.approx(1.0)

    def test_partial_overlap(self):
        # shared "src" out of average depth 2
        assert path_similarity("src/api/a.py", "src/db/b.py") == pytest.approx(0.5)

    def test_no_overlap(self):
        assert path_similarity("src/a.py", "docs/b.md") == 0.0

    def test_both_at_root(self):
        assert path_similarity("a.py", "b.py") == 1.0

    def test_windows_separators(self):
        assert path_similarity("src\\api\\a.py", "src/api/b.py") == pytest.approx(
            1.0
        )

    def test_missing_path(self):
        assert path_similarity(None, "src/a.py") == 0.0
        assert path_similarity("", "src/a.py") == 0.0

    def test_result_is_bounded(self):
        score = path_similarity("a/b/c/d/e.py", "a/b/x.py")
        assert 0.0 <= score <= 1.0
        assert math.isclose(score, 2 / 3)


def test_clamp_score():
    assert clamp_score(1.4) == 1.0
    assert clamp_score(-0.2) == 0.0
    assert clamp_score(0.5) == 0.5
    assert clamp_score(5.0, high=2.0) == 2.0
