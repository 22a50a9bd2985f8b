from __future__ import annotations

import numpy as np
import pytest

from photo_sorter.core.errors import InvalidInputError
from photo_sorter.core.models import ImageEmbedding
from photo_sorter.matching import rank_albums, suggest_albums
from photo_sorter.matching.albums import AlbumCentroid


def _add(store, photo_uid: str, vector: list[float]) -> None:
    store.upsert_image_embedding(ImageEmbedding(photo_uid=photo_uid, vector=vector, model="clip"))


@pytest.fixture
def album_store(store):
    _add(store, "p1", [1.0, 0.0])
    _add(store, "p2", [0.9, 0.1])
    _add(store, "p3", [0.0, 1.0])
    _add(store, "p4", [0.1, 0.9])
    _add(store, "p5", [1.0, 0.0])
    _add(store, "q1", [1.0, 0.05])
    _add(store, "p6", [0.7, 0.7])
    store.replace_album_members("a-beach", "Beach", ["p1", "p2"])
    store.replace_album_members("a-snow", "Snow", ["p3", "p4"])
    store.replace_album_members("a-solo", "Solo", ["p5"])
    # Two members but only one with an embedding: skipped.
    store.replace_album_members("a-sparse", "Sparse", ["p6", "not-embedded"])
    return store


def test_suggest_albums_for_unfiled_photos(album_store) -> None:
    result = suggest_albums(album_store)

    assert result.albums_analyzed == 2
    assert result.skipped == 1
    by_photo = {s.photo_uid: s for s in result.suggestions}
    # p5 only lives in a single-photo album, which never qualifies.
    assert set(by_photo) == {"p5", "q1", "p6"}
    assert [a.album_uid for a in by_photo["q1"].albums] == ["a-beach"]
    assert by_photo["q1"].albums[0].album_title == "Beach"
    assert result.photos_analyzed == 3


def test_single_photo_album_is_never_recommended(album_store) -> None:
    result = suggest_albums(album_store, photo_uids=["q1", "p1", "p3"], similarity_threshold=-1.0)
    for suggestion in result.suggestions:
        assert "a-solo" not in {a.album_uid for a in suggestion.albums}
        assert "a-sparse" not in {a.album_uid for a in suggestion.albums}


def test_members_are_not_suggested_their_own_album(album_store) -> None:
    result = suggest_albums(album_store, photo_uids=["p1"], similarity_threshold=-1.0)
    assert [a.album_uid for a in result.suggestions[0].albums] == ["a-snow"]


def test_photos_without_embeddings_are_skipped(album_store) -> None:
    result = suggest_albums(album_store, photo_uids=["not-embedded", "q1"])
    assert result.photos_analyzed == 1
    assert [s.photo_uid for s in result.suggestions] == ["q1"]


def test_rank_albums_ties_and_top_k() -> None:
    centroid = np.array([1.0, 0.0])
    centroids = [
        AlbumCentroid("b-album", "B", frozenset({"x"}), centroid),
        AlbumCentroid("a-album", "A", frozenset({"y"}), centroid),
        AlbumCentroid("c-album", "C", frozenset({"z"}), np.array([0.0, 1.0])),
    ]
    ranked = rank_albums([1.0, 0.0], centroids, threshold=0.3, top_k=3)
    assert [s.album_uid for s in ranked] == ["a-album", "b-album"]

    assert [s.album_uid for s in rank_albums([1.0, 0.0], centroids, threshold=0.3, top_k=1)] == [
        "a-album"
    ]
    excluded = rank_albums([1.0, 0.0], centroids, threshold=0.3, top_k=3, exclude_member="y")
    assert [s.album_uid for s in excluded] == ["b-album"]


def test_invalid_arguments(album_store) -> None:
    with pytest.raises(InvalidInputError):
        suggest_albums(album_store, similarity_threshold=1.5)
    with pytest.raises(InvalidInputError):
        suggest_albums(album_store, top_k=0)
