from __future__ import annotations

import logging
import threading
from typing import Iterable

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.errors import NotFoundError
from photo_sorter.core.models import AlbumSimilarPhoto, AlbumSimilarResponse, SimilarPhoto
from photo_sorter.index.store import EmbeddingStore

from .common import check_limit, check_threshold, raise_if_cancelled

logger = logging.getLogger(__name__)

# Each album member fans out to this many times the requested result count.
ALBUM_QUERY_FANOUT = 10


def find_similar_photos(
    store: EmbeddingStore,
    photo_uid: str,
    *,
    distance_threshold: float | None = None,
    limit: int | None = None,
    config: EngineConfig | None = None,
) -> list[SimilarPhoto]:
    """Photos within ``distance_threshold`` of ``photo_uid``'s embedding, nearest first."""
    cfg = config or EngineConfig()
    threshold = check_threshold(
        cfg.similar_distance_threshold if distance_threshold is None else distance_threshold,
        "distance_threshold",
    )
    max_results = check_limit(cfg.similar_limit if limit is None else limit, "limit")

    embedding = store.get_image_embedding(photo_uid)
    if embedding is None or not embedding.vector:
        raise NotFoundError(f"no image embedding for photo {photo_uid!r}")

    results = []
    for candidate in store.query_nearest_images(embedding.vector, limit=max_results + 1):
        if candidate.photo_uid == photo_uid or candidate.distance > threshold:
            continue
        results.append(
            SimilarPhoto(
                photo_uid=candidate.photo_uid,
                distance=candidate.distance,
                similarity=1.0 - candidate.distance,
            )
        )
    return results[:max_results]


def compute_min_match_count(source_count: int, threshold: float) -> int:
    """How many album members a photo must be near before it is reported.

    Scales with the album size (1-5% of members depending on how loose the
    threshold is) and is always between 1 and 5.
    """
    factor = min(0.05, max(0.01, threshold / 0.5 * 0.05))
    return min(max(int(source_count * factor), 1), 5)


def rank_album_candidates(
    candidates: Iterable[AlbumSimilarPhoto], *, min_match_count: int, limit: int
) -> list[AlbumSimilarPhoto]:
    """Drop weakly supported candidates; most matches first, then nearest."""
    kept = [c for c in candidates if c.match_count >= min_match_count]
    kept.sort(key=lambda c: (-c.match_count, c.distance, c.photo_uid))
    return kept[:limit]


def find_similar_to_album(
    store: EmbeddingStore,
    album_uid: str,
    *,
    distance_threshold: float | None = None,
    limit: int | None = None,
    config: EngineConfig | None = None,
    cancel: threading.Event | None = None,
) -> AlbumSimilarResponse:
    """Photos outside an album that sit near several of its members."""
    cfg = config or EngineConfig()
    threshold = check_threshold(
        cfg.similar_distance_threshold if distance_threshold is None else distance_threshold,
        "distance_threshold",
    )
    max_results = check_limit(cfg.similar_limit if limit is None else limit, "limit")

    members = store.get_album_members(album_uid)
    response = AlbumSimilarResponse(
        album_uid=album_uid, threshold=threshold, source_photo_count=len(members)
    )
    if not members:
        return response

    member_set = set(members)
    merged: dict[str, AlbumSimilarPhoto] = {}
    for member in members:
        raise_if_cancelled(cancel)
        embedding = store.get_image_embedding(member)
        if embedding is None or not embedding.vector:
            continue
        response.source_embedding_count += 1
        neighbours = store.query_nearest_images(
            embedding.vector, limit=max_results * ALBUM_QUERY_FANOUT
        )
        for candidate in neighbours:
            if candidate.distance > threshold or candidate.photo_uid in member_set:
                continue
            existing = merged.get(candidate.photo_uid)
            if existing is None:
                merged[candidate.photo_uid] = AlbumSimilarPhoto(
                    photo_uid=candidate.photo_uid,
                    distance=candidate.distance,
                    similarity=1.0 - candidate.distance,
                    match_count=1,
                )
                continue
            existing.match_count += 1
            if candidate.distance < existing.distance:
                existing.distance = candidate.distance
                existing.similarity = 1.0 - candidate.distance

    response.min_match_count = compute_min_match_count(response.source_embedding_count, threshold)
    response.results = rank_album_candidates(
        merged.values(), min_match_count=response.min_match_count, limit=max_results
    )
    response.count = len(response.results)
    logger.info(
        "Album %s similarity: %d members (%d embedded), %d candidates, %d with >= %d matches",
        album_uid,
        len(members),
        response.source_embedding_count,
        len(merged),
        response.count,
        response.min_match_count,
    )
    return response
