"""Tests for cosine similarity."""

import pytest

from helpdesk_rag.search.vector import cosine_similarity


def test_identical_vectors():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_opposite_vectors():
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_orthogonal_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_symmetric():
    a = [0.3, -0.2, 0.9]
    b = [0.1, 0.4, 0.5]
    assert cosine_similarity(a, b) == cosine_similarity(b, a)


def test_bounded():
    pairs = [
        ([0.1, 0.2], [-0.3, 5.0]),
        ([3.0, 4.0], [3.0, 4.0]),
    ]
    for a, b in pairs:
        assert -1.0 <= cosine_similarity(a, b) <= 1.0


def test_zero_vector_is_zero():
    assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0


def test_empty_vectors():
    assert cosine_similarity([], []) == 0.0


def test_dimension_mismatch():
    with pytest.raises(ValueError, match="dimension mismatch"):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
