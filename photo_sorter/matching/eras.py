from __future__ import annotations

import logging
from typing import Sequence

from photo_sorter.core.errors import NotFoundError
from photo_sorter.core.models import EraCentroid, EraEstimate, EraMatch
from photo_sorter.core.similarity import cosine_similarity
from photo_sorter.index.store import EmbeddingStore

logger = logging.getLogger(__name__)


def rank_eras(vector: Sequence[float], eras: Sequence[EraCentroid]) -> list[EraMatch]:
    """Score every era; best first, ties broken by earliest representative date."""
    matches = []
    for era in eras:
        similarity = cosine_similarity(vector, era.vector)
        matches.append(
            EraMatch(
                era_slug=era.era_slug,
                era_name=era.era_name,
                representative_date=era.representative_date,
                similarity=similarity,
                confidence=max(0.0, min(100.0, similarity * 100)),
            )
        )
    matches.sort(key=lambda m: (-m.similarity, m.representative_date, m.era_slug))
    return matches


def estimate_era(store: EmbeddingStore, photo_uid: str) -> EraEstimate:
    """Best-guess era for a photo. No minimum similarity is enforced."""
    embedding = store.get_image_embedding(photo_uid)
    if embedding is None or not embedding.vector:
        raise NotFoundError(f"no image embedding for photo {photo_uid!r}")
    eras = store.list_era_centroids()
    if not eras:
        raise NotFoundError("no era centroids have been computed")

    ranked = rank_eras(embedding.vector, eras)
    best = ranked[0]
    logger.debug("Era estimate for %s: %s (%.3f)", photo_uid, best.era_slug, best.similarity)
    return EraEstimate(
        photo_uid=photo_uid,
        era_slug=best.era_slug,
        era_name=best.era_name,
        representative_date=best.representative_date,
        similarity=best.similarity,
        confidence=best.confidence,
        top_matches=ranked,
    )
