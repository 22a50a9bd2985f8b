from __future__ import annotations

import pytest

from photo_sorter.core.errors import InvalidInputError
from photo_sorter.core.models import MatchAction
from photo_sorter.core.similarity import compute_centroid, cosine_distance
from photo_sorter.matching import find_subject_outliers

GOOD_A = [1.0, 0.0]
GOOD_B = [0.99, 0.1]
WRONG = [-0.2, 1.0]


@pytest.fixture
def tagged_store(store, make_face):
    for photo_uid, vector in (("p1", GOOD_A), ("p2", GOOD_B), ("p3", WRONG), ("p4", [])):
        store.save_faces(
            photo_uid,
            [
                make_face(
                    photo_uid,
                    0,
                    vector,
                    marker_uid=f"m-{photo_uid}",
                    subject_uid="js-alice",
                    subject_name="Alice",
                )
            ],
        )
    return store


def test_outliers_flag_faces_far_from_centroid(tagged_store) -> None:
    result = find_subject_outliers(tagged_store, "Alice")

    assert result.total_faces == 3
    assert [o.photo_uid for o in result.outliers] == ["p3"]
    outlier = result.outliers[0]
    assert outlier.action == MatchAction.UNASSIGN_PERSON
    assert outlier.marker_uid == "m-p3"
    assert outlier.distance > 0.5
    assert result.summary.unassign_person == 1
    assert 0.0 < result.avg_distance < outlier.distance

    assert [(m.photo_uid, m.distance) for m in result.missing_embeddings] == [("p4", -1.0)]


def test_outlier_threshold_is_strict(tagged_store) -> None:
    centroid = compute_centroid([GOOD_A, GOOD_B, WRONG]).tolist()
    edge = cosine_distance(centroid, WRONG)

    assert find_subject_outliers(tagged_store, "Alice", distance_threshold=edge).outliers == []
    flagged = find_subject_outliers(tagged_store, "Alice", distance_threshold=edge - 1e-9)
    assert [o.photo_uid for o in flagged.outliers] == ["p3"]


def test_outliers_sorted_most_suspicious_first(tagged_store) -> None:
    result = find_subject_outliers(tagged_store, "Alice", distance_threshold=0.0)
    distances = [o.distance for o in result.outliers]
    assert distances == sorted(distances, reverse=True)
    assert result.outliers[0].photo_uid == "p3"

    limited = find_subject_outliers(tagged_store, "Alice", distance_threshold=0.0, limit=1)
    assert len(limited.outliers) == 1


def test_single_face_has_no_outliers(store, make_face) -> None:
    store.save_faces("p1", [make_face("p1", 0, [1.0, 0.0], subject_uid="s1", subject_name="Solo")])
    result = find_subject_outliers(store, "Solo", distance_threshold=0.0)
    assert result.outliers == []
    assert result.total_faces == 1


def test_unknown_subject_reports_nothing(store) -> None:
    result = find_subject_outliers(store, "Nobody")
    assert result.total_faces == 0
    assert result.outliers == []


def test_invalid_threshold(tagged_store) -> None:
    with pytest.raises(InvalidInputError):
        find_subject_outliers(tagged_store, "Alice", distance_threshold=4.0)
