"""Reconcile face embeddings with the PhotoPrism marker/subject graph.

Each run re-reads the cached marker snapshot and classifies every candidate
face from scratch; nothing about previous runs is remembered.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Sequence

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.errors import InvalidInputError, NotFoundError
from photo_sorter.core.models import (
    FaceEmbedding,
    FaceMatch,
    FaceSuggestion,
    MatchAction,
    MatchResponse,
    MatchSummary,
)
from photo_sorter.core.similarity import intersection_over_union
from photo_sorter.index.store import EmbeddingStore

from .common import (
    SubjectReference,
    check_limit,
    check_threshold,
    load_subject_reference,
    raise_if_cancelled,
)

logger = logging.getLogger(__name__)


def _best_overlapping_marker(
    face: FaceEmbedding, photo_faces: Sequence[FaceEmbedding]
) -> tuple[Optional[FaceEmbedding], float]:
    """Return the marker-carrying face on the photo that overlaps ``face`` most."""
    best: Optional[FaceEmbedding] = None
    best_iou = 0.0
    for other in photo_faces:
        if not other.marker_uid:
            continue
        if other.face_index == face.face_index:
            iou = 1.0
        else:
            iou = intersection_over_union(face.bbox_rel, other.bbox_rel)
        if iou > best_iou:
            best, best_iou = other, iou
    if best is None and face.marker_uid:
        return face, 1.0
    return best, best_iou


def classify_face(
    face: FaceEmbedding,
    photo_faces: Sequence[FaceEmbedding],
    reference: SubjectReference,
    *,
    iou_threshold: float,
) -> tuple[MatchAction, Optional[FaceEmbedding], Optional[float]]:
    """Decide what the apply step has to do for one candidate face.

    Returns the action plus the marker the action targets (if any) and its IoU.
    """
    if reference.is_linked(face):
        return MatchAction.ALREADY_DONE, face if face.marker_uid else None, None
    marker, iou = _best_overlapping_marker(face, photo_faces)
    if marker is not None and iou >= iou_threshold:
        return MatchAction.ASSIGN_PERSON, marker, iou
    return MatchAction.CREATE_MARKER, None, None


def match_subject_faces(
    store: EmbeddingStore,
    subject_name: str,
    *,
    distance_threshold: float | None = None,
    limit: int | None = None,
    config: EngineConfig | None = None,
    cancel: threading.Event | None = None,
) -> MatchResponse:
    """Find faces that look like ``subject_name`` and classify the needed action."""
    cfg = config or EngineConfig()
    if not subject_name or not subject_name.strip():
        raise InvalidInputError("subject_name is required")
    threshold = check_threshold(
        cfg.face_distance_threshold if distance_threshold is None else distance_threshold,
        "distance_threshold",
    )
    max_results = check_limit(cfg.search_limit if limit is None else limit, "limit")

    reference = load_subject_reference(store, subject_name)
    if reference.centroid is None:
        raise NotFoundError(f"no reference face data for subject {subject_name!r}")

    candidates = store.query_nearest_faces(
        reference.centroid.tolist(), limit=max(max_results, cfg.search_limit)
    )
    photo_faces: dict[str, list[FaceEmbedding]] = {}
    matches: list[FaceMatch] = []
    for candidate in candidates:
        raise_if_cancelled(cancel)
        if candidate.distance > threshold:
            continue
        face = candidate.face
        if not face.vector:
            continue
        if face.photo_uid not in photo_faces:
            photo_faces[face.photo_uid] = store.get_face_embeddings(face.photo_uid)
        action, marker, iou = classify_face(
            face, photo_faces[face.photo_uid], reference, iou_threshold=cfg.iou_threshold
        )
        matches.append(
            FaceMatch(
                photo_uid=face.photo_uid,
                face_index=face.face_index,
                marker_uid=marker.marker_uid if marker else None,
                subject_uid=marker.subject_uid if marker else face.subject_uid,
                subject_name=marker.subject_name if marker else face.subject_name,
                bbox_rel=face.bbox_rel,
                action=action,
                distance=candidate.distance,
                iou=iou,
            )
        )

    matches.sort(key=lambda m: (m.distance, m.photo_uid, m.face_index))
    matches = matches[:max_results]
    summary = MatchSummary.from_actions(m.action for m in matches)
    logger.info(
        "Face match for %r: %d candidates, %d within %.2f (create=%d assign=%d done=%d)",
        subject_name,
        len(candidates),
        len(matches),
        threshold,
        summary.create_marker,
        summary.assign_person,
        summary.already_done,
    )
    return MatchResponse(
        person=subject_name,
        source_photos=reference.source_photos,
        source_faces=len(reference.faces),
        matches=matches,
        summary=summary,
    )


def suggest_people_for_face(
    store: EmbeddingStore,
    vector: Sequence[float],
    *,
    distance_threshold: float | None = None,
    limit: int | None = None,
    config: EngineConfig | None = None,
) -> list[FaceSuggestion]:
    """Rank known people whose assigned faces sit close to ``vector``."""
    cfg = config or EngineConfig()
    threshold = check_threshold(
        cfg.face_distance_threshold if distance_threshold is None else distance_threshold,
        "distance_threshold",
    )
    max_results = check_limit(cfg.face_suggestion_limit if limit is None else limit, "limit")
    if not vector:
        return []

    per_person: dict[str, list[float]] = {}
    uids: dict[str, Optional[str]] = {}
    for candidate in store.query_nearest_faces(vector, limit=cfg.search_limit):
        if candidate.distance > threshold:
            continue
        name = candidate.face.subject_name
        if not name:
            continue
        per_person.setdefault(name, []).append(candidate.distance)
        uids.setdefault(name, candidate.face.subject_uid)

    suggestions = []
    for name, distances in per_person.items():
        avg = sum(distances) / len(distances)
        suggestions.append(
            FaceSuggestion(
                person_name=name,
                person_uid=uids.get(name),
                distance=avg,
                confidence=max(0.0, 1.0 - avg),
                face_count=len(distances),
            )
        )
    suggestions.sort(key=lambda s: (-s.confidence, s.person_name))
    return suggestions[:max_results]
