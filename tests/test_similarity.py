from __future__ import annotations

import numpy as np
import pytest

from photo_sorter.core.similarity import (
    compute_centroid,
    cosine_distance,
    cosine_similarity,
    intersection_over_union,
    normalize_person_name,
    normalize_vector,
)


def test_cosine_similarity_identity_and_symmetry() -> None:
    a = [0.3, -1.2, 4.0, 0.5]
    b = [1.0, 0.2, -0.7, 2.0]
    assert cosine_similarity(a, a) == pytest.approx(1.0)
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
    assert -1.0 <= cosine_similarity(a, b) <= 1.0
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_similarity_degenerate_inputs_are_zero() -> None:
    assert cosine_similarity([], [1.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_distance([1.0, 2.0], [1.0]) == 1.0


def test_cosine_distance_orthogonal() -> None:
    assert cosine_distance([1.0, 0.0], [0.0, 1.0]) == pytest.approx(1.0)
    assert cosine_distance([2.0, 0.0], [5.0, 0.0]) == pytest.approx(0.0)


def test_iou_identity_disjoint_and_partial() -> None:
    box = (0.1, 0.1, 0.5, 0.5)
    assert intersection_over_union(box, box) == pytest.approx(1.0)
    assert intersection_over_union(box, (0.6, 0.6, 0.9, 0.9)) == 0.0
    # Touching edges share no area.
    assert intersection_over_union((0.0, 0.0, 0.5, 0.5), (0.5, 0.0, 1.0, 0.5)) == 0.0
    # Half-overlap: intersection 0.25*0.5 of two 0.5*0.5 boxes.
    iou = intersection_over_union((0.0, 0.0, 0.5, 0.5), (0.25, 0.0, 0.75, 0.5))
    assert iou == pytest.approx(0.125 / 0.375)


def test_iou_degenerate_boxes() -> None:
    assert intersection_over_union((0.2, 0.2, 0.2, 0.2), (0.0, 0.0, 1.0, 1.0)) == 0.0
    assert intersection_over_union((0.0, 0.0, 1.0), (0.0, 0.0, 1.0, 1.0)) == 0.0


def test_normalize_vector() -> None:
    unit = normalize_vector([3.0, 4.0])
    assert unit is not None
    assert np.allclose(unit, [0.6, 0.8])
    assert normalize_vector([]) is None
    assert normalize_vector([0.0, 0.0]) is None


def test_compute_centroid_is_unit_length_and_skips_bad_vectors() -> None:
    centroid = compute_centroid([[1.0, 0.0], [0.0, 1.0], [], [5.0, 5.0, 5.0]])
    assert centroid is not None
    assert np.linalg.norm(centroid) == pytest.approx(1.0)
    assert np.allclose(centroid, [np.sqrt(0.5), np.sqrt(0.5)])
    assert compute_centroid([[], None]) is None


def test_normalize_person_name() -> None:
    assert normalize_person_name("Jan Novák") == "jan novak"
    assert normalize_person_name("jan-novak") == "jan novak"
    assert normalize_person_name("  Zoë   O'Brien ") == "zoe o'brien"
    assert normalize_person_name(None) == ""
