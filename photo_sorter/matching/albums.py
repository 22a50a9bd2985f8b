from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.models import (
    Album,
    AlbumScore,
    AlbumSuggestResponse,
    PhotoAlbumSuggestions,
)
from photo_sorter.core.similarity import compute_centroid, cosine_similarity
from photo_sorter.index.store import EmbeddingStore

from .common import check_limit, check_threshold, raise_if_cancelled

logger = logging.getLogger(__name__)


@dataclass
class AlbumCentroid:
    album_uid: str
    title: str
    members: frozenset[str]
    centroid: np.ndarray


class _VectorCache:
    def __init__(self, store: EmbeddingStore):
        self._store = store
        self._vectors: dict[str, Optional[list[float]]] = {}

    def get(self, photo_uid: str) -> Optional[list[float]]:
        if photo_uid not in self._vectors:
            embedding = self._store.get_image_embedding(photo_uid)
            self._vectors[photo_uid] = embedding.vector if embedding and embedding.vector else None
        return self._vectors[photo_uid]


def build_album_centroids(
    albums: Iterable[Album],
    vectors: _VectorCache,
    *,
    min_album_size: int,
) -> tuple[list[AlbumCentroid], int]:
    """Centroids for albums with enough embedded members, plus the skipped count.

    Albums with fewer than ``min_album_size`` members are ignored outright;
    albums that have the members but not enough embeddings count as skipped.
    """
    centroids: list[AlbumCentroid] = []
    skipped = 0
    for album in albums:
        members = frozenset(album.photo_uids)
        if len(members) < min_album_size:
            continue
        member_vectors = [v for v in (vectors.get(uid) for uid in sorted(members)) if v]
        centroid = compute_centroid(member_vectors) if len(member_vectors) >= min_album_size else None
        if centroid is None:
            skipped += 1
            continue
        centroids.append(
            AlbumCentroid(
                album_uid=album.album_uid,
                title=album.title,
                members=members,
                centroid=centroid,
            )
        )
    return centroids, skipped


def rank_albums(
    vector: Sequence[float],
    centroids: Sequence[AlbumCentroid],
    *,
    threshold: float,
    top_k: int,
    exclude_member: Optional[str] = None,
) -> list[AlbumScore]:
    """Albums scoring >= threshold, best first, ties broken by album uid."""
    scores = []
    for album in centroids:
        if exclude_member is not None and exclude_member in album.members:
            continue
        similarity = cosine_similarity(album.centroid, vector)
        if similarity >= threshold:
            scores.append(
                AlbumScore(album_uid=album.album_uid, album_title=album.title, similarity=similarity)
            )
    scores.sort(key=lambda s: (-s.similarity, s.album_uid))
    return scores[:top_k]


def suggest_albums(
    store: EmbeddingStore,
    *,
    photo_uids: Sequence[str] | None = None,
    similarity_threshold: float | None = None,
    top_k: int | None = None,
    config: EngineConfig | None = None,
    cancel: threading.Event | None = None,
) -> AlbumSuggestResponse:
    """Suggest albums for photos.

    Without ``photo_uids`` every embedded photo that is not already in a
    qualifying album is considered.
    """
    cfg = config or EngineConfig()
    threshold = check_threshold(
        cfg.album_similarity_threshold if similarity_threshold is None else similarity_threshold,
        "similarity_threshold",
        low=-1.0,
        high=1.0,
    )
    k = check_limit(cfg.album_top_k if top_k is None else top_k, "top_k")
    min_size = check_limit(cfg.min_album_size, "min_album_size")

    vectors = _VectorCache(store)
    centroids, skipped = build_album_centroids(store.list_albums(), vectors, min_album_size=min_size)

    if photo_uids is None:
        in_album = set().union(*(album.members for album in centroids)) if centroids else set()
        photo_uids = [
            uid for uid in store.list_image_photo_uids(limit=cfg.search_limit) if uid not in in_album
        ]

    suggestions: list[PhotoAlbumSuggestions] = []
    analyzed = 0
    for photo_uid in photo_uids:
        raise_if_cancelled(cancel)
        vector = vectors.get(photo_uid)
        if vector is None:
            continue
        analyzed += 1
        ranked = rank_albums(vector, centroids, threshold=threshold, top_k=k, exclude_member=photo_uid)
        if ranked:
            suggestions.append(PhotoAlbumSuggestions(photo_uid=photo_uid, albums=ranked))

    logger.info(
        "Album suggestions: %d albums analyzed (%d skipped), %d photos, %d with suggestions",
        len(centroids),
        skipped,
        analyzed,
        len(suggestions),
    )
    return AlbumSuggestResponse(
        albums_analyzed=len(centroids),
        skipped=skipped,
        photos_analyzed=analyzed,
        suggestions=suggestions,
    )
