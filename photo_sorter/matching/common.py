from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from photo_sorter.core.errors import InvalidInputError, OperationCancelled
from photo_sorter.core.models import FaceEmbedding
from photo_sorter.core.similarity import compute_centroid, normalize_person_name
from photo_sorter.index.store import EmbeddingStore


def check_threshold(value: float, name: str, *, low: float = 0.0, high: float = 2.0) -> float:
    """Reject thresholds outside [low, high]; cosine distance spans [0, 2]."""
    if value is None or not np.isfinite(value) or value < low or value > high:
        raise InvalidInputError(f"{name} must be within [{low}, {high}], got {value!r}")
    return float(value)


def check_limit(value: int, name: str) -> int:
    if value is None or int(value) < 1:
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def raise_if_cancelled(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("operation cancelled")


@dataclass
class SubjectReference:
    """Faces currently linked to a subject and their normalized centroid."""

    subject_name: str
    normalized_name: str
    faces: list[FaceEmbedding] = field(default_factory=list)
    missing_embeddings: list[FaceEmbedding] = field(default_factory=list)
    subject_uids: set[str] = field(default_factory=set)
    centroid: Optional[np.ndarray] = None

    @property
    def source_photos(self) -> int:
        return len({f.photo_uid for f in self.faces} | {f.photo_uid for f in self.missing_embeddings})

    def is_linked(self, face: FaceEmbedding) -> bool:
        """True when the face's cached subject already is this subject."""
        if face.subject_uid:
            if self.subject_uids:
                return face.subject_uid in self.subject_uids
        return normalize_person_name(face.subject_name) == self.normalized_name


def load_subject_reference(store: EmbeddingStore, subject_name: str) -> SubjectReference:
    linked = store.get_faces_by_subject(subject_name)
    reference = SubjectReference(
        subject_name=subject_name,
        normalized_name=normalize_person_name(subject_name),
    )
    for face in linked:
        if face.subject_uid:
            reference.subject_uids.add(face.subject_uid)
        if face.vector:
            reference.faces.append(face)
        else:
            reference.missing_embeddings.append(face)
    reference.centroid = compute_centroid(face.vector for face in reference.faces)
    return reference
