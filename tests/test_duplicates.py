from __future__ import annotations

import math
import threading

import pytest

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.errors import InvalidInputError, NotFoundError, OperationCancelled
from photo_sorter.core.models import ImageEmbedding
from photo_sorter.matching import connected_groups, duplicate_edges, filter_edges, find_duplicates


def _at(angle: float) -> list[float]:
    return [math.cos(angle), math.sin(angle)]


def _add(store, photo_uid: str, vector: list[float]) -> None:
    store.upsert_image_embedding(ImageEmbedding(photo_uid=photo_uid, vector=vector, model="clip"))


def test_chained_pairs_form_one_group() -> None:
    pairs = [("A", "B", 0.05), ("B", "C", 0.08), ("A", "C", 0.40)]
    edges = filter_edges(pairs, 0.10)
    assert edges == [("A", "B", 0.05), ("B", "C", 0.08)]

    groups = connected_groups(["A", "B", "C"], edges)
    assert len(groups) == 1
    assert groups[0].photo_uids == ["A", "B", "C"]
    assert groups[0].distances == [0.05, 0.08]
    assert groups[0].avg_distance == pytest.approx(0.065)


def test_filter_edges_is_inclusive_and_drops_self_pairs() -> None:
    assert filter_edges([("A", "B", 0.10), ("A", "A", 0.0), ("B", "C", 0.1001)], 0.10) == [
        ("A", "B", 0.10)
    ]


def test_connected_groups_ordering() -> None:
    edges = [("d", "e", 0.01), ("a", "b", 0.02), ("x", "y", 0.03), ("y", "z", 0.03)]
    groups = connected_groups(["a", "b", "c", "d", "e", "x", "y", "z"], edges)
    assert [g.photo_uids for g in groups] == [["x", "y", "z"], ["a", "b"], ["d", "e"]]
    assert all(g.photo_count == len(g.photo_uids) for g in groups)


def test_duplicate_edges_skip_mismatched_dimensions() -> None:
    vectors = {"p1": [1.0, 0.0], "p2": [1.0, 0.0], "p3": [1.0, 0.0, 0.0], "p4": [0.0, 0.0]}
    edges = duplicate_edges(vectors, 0.1)
    assert [(a, b) for a, b, _ in edges] == [("p1", "p2")]


def test_duplicate_edges_check_cancellation() -> None:
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelled):
        duplicate_edges({"p1": [1.0, 0.0], "p2": [1.0, 0.1]}, 0.1, cancel=cancel)


def test_find_duplicates_chains_across_library(store) -> None:
    # p1-p2 and p2-p3 sit ~0.045 apart, p1-p3 ~0.175: still one group.
    _add(store, "p1", _at(0.0))
    _add(store, "p2", _at(0.3))
    _add(store, "p3", _at(0.6))
    _add(store, "p4", _at(2.0))

    result = find_duplicates(store, distance_threshold=0.10)
    assert result.count == 1
    assert result.groups[0].photo_uids == ["p1", "p2", "p3"]
    assert len(result.groups[0].distances) == 2
    assert result.total_photos_scanned == 4
    assert result.total_duplicates == 3


def test_two_disjoint_pairs_stay_separate(store) -> None:
    _add(store, "a1", _at(0.0))
    _add(store, "a2", _at(0.1))
    _add(store, "b1", _at(1.5))
    _add(store, "b2", _at(1.6))

    result = find_duplicates(store)
    assert [g.photo_uids for g in result.groups] == [["a1", "a2"], ["b1", "b2"]]

    capped = find_duplicates(store, group_limit=1)
    assert capped.count == 1
    assert capped.total_groups == 2
    assert capped.total_duplicates == 4


def test_album_scope(store) -> None:
    _add(store, "p1", _at(0.0))
    _add(store, "p2", _at(0.05))
    _add(store, "p3", _at(0.06))
    store.replace_album_members("album1", "Trip", ["p1", "p2", "no-embedding"])

    result = find_duplicates(store, album_uid="album1")
    assert [g.photo_uids for g in result.groups] == [["p1", "p2"]]
    assert result.total_photos_scanned == 3

    with pytest.raises(NotFoundError):
        find_duplicates(store, album_uid="missing-album")


def test_find_duplicates_uses_config_defaults(store) -> None:
    _add(store, "p1", _at(0.0))
    _add(store, "p2", _at(0.3))
    assert find_duplicates(store).count == 1
    assert find_duplicates(store, config=EngineConfig(duplicate_distance_threshold=0.01)).count == 0


def test_invalid_threshold(store) -> None:
    with pytest.raises(InvalidInputError):
        find_duplicates(store, distance_threshold=-0.5)


def test_cancelled_scan(store) -> None:
    _add(store, "p1", _at(0.0))
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelled):
        find_duplicates(store, cancel=cancel)
