from __future__ import annotations

import logging
import threading

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.errors import InvalidInputError
from photo_sorter.core.models import MatchAction, MatchSummary, OutlierFace, OutlierResponse
from photo_sorter.core.similarity import cosine_distance
from photo_sorter.index.store import EmbeddingStore

from .common import check_limit, check_threshold, load_subject_reference, raise_if_cancelled

logger = logging.getLogger(__name__)

MIN_FACES_FOR_OUTLIERS = 2


def find_subject_outliers(
    store: EmbeddingStore,
    subject_name: str,
    *,
    distance_threshold: float | None = None,
    limit: int | None = None,
    config: EngineConfig | None = None,
    cancel: threading.Event | None = None,
) -> OutlierResponse:
    """Flag faces assigned to a subject that sit far from the subject's centroid.

    Subjects with fewer than two usable faces yield no outliers: a lone face is
    its own centroid.
    """
    cfg = config or EngineConfig()
    if not subject_name or not subject_name.strip():
        raise InvalidInputError("subject_name is required")
    threshold = check_threshold(
        cfg.face_distance_threshold if distance_threshold is None else distance_threshold,
        "distance_threshold",
    )
    max_results = check_limit(limit, "limit") if limit is not None else None

    reference = load_subject_reference(store, subject_name)
    missing = [
        OutlierFace(
            photo_uid=face.photo_uid,
            face_index=face.face_index,
            marker_uid=face.marker_uid,
            subject_uid=face.subject_uid,
            bbox_rel=face.bbox_rel,
            distance=-1.0,
        )
        for face in reference.missing_embeddings
    ]
    response = OutlierResponse(
        person=subject_name,
        total_faces=len(reference.faces),
        missing_embeddings=missing,
    )
    if len(reference.faces) < MIN_FACES_FOR_OUTLIERS or reference.centroid is None:
        return response

    centroid = reference.centroid.tolist()
    scored: list[OutlierFace] = []
    total = 0.0
    for face in reference.faces:
        raise_if_cancelled(cancel)
        distance = cosine_distance(centroid, face.vector)
        total += distance
        if distance > threshold:
            scored.append(
                OutlierFace(
                    photo_uid=face.photo_uid,
                    face_index=face.face_index,
                    marker_uid=face.marker_uid,
                    subject_uid=face.subject_uid,
                    bbox_rel=face.bbox_rel,
                    distance=distance,
                    action=MatchAction.UNASSIGN_PERSON,
                )
            )

    # Most suspicious first.
    scored.sort(key=lambda o: (-o.distance, o.photo_uid, o.face_index))
    if max_results is not None:
        scored = scored[:max_results]
    response.avg_distance = total / len(reference.faces)
    response.outliers = scored
    response.summary = MatchSummary.from_actions(o.action for o in scored)
    logger.info(
        "Outliers for %r: %d of %d faces beyond %.2f (avg distance %.3f)",
        subject_name,
        len(scored),
        len(reference.faces),
        threshold,
        response.avg_distance,
    )
    return response
