from __future__ import annotations

import math
from collections import Counter
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field, field_validator

BBox = tuple[float, float, float, float]


def _check_vector(v: list[float]) -> list[float]:
    for value in v:
        if not math.isfinite(value):
            raise ValueError("embedding contains non-finite values")
    return v


def _check_bbox(v: BBox) -> BBox:
    for coord in v:
        if not math.isfinite(coord) or coord < 0.0 or coord > 1.0:
            raise ValueError("bbox coordinates must be relative values within [0, 1]")
    return v


class MatchAction(str, Enum):
    CREATE_MARKER = "create_marker"  # no marker overlaps the face yet
    ASSIGN_PERSON = "assign_person"  # a marker exists, not linked to the subject
    ALREADY_DONE = "already_done"
    UNASSIGN_PERSON = "unassign_person"  # current assignment looks wrong


class ImageEmbedding(BaseModel):
    photo_uid: str
    vector: list[float]
    model: str
    pretrained: Optional[str] = None
    dim: int = 0
    created_at: Optional[datetime] = None

    @field_validator("vector")
    @classmethod
    def _finite_vector(cls, v: list[float]) -> list[float]:
        return _check_vector(v)


class FaceEmbedding(BaseModel):
    """One detected face plus the cached PhotoPrism marker/subject snapshot."""

    id: Optional[int] = None
    photo_uid: str
    face_index: int = Field(ge=0)
    vector: list[float] = Field(default_factory=list)
    bbox_rel: BBox
    det_score: float = 0.0
    model: Optional[str] = None
    marker_uid: Optional[str] = None
    subject_uid: Optional[str] = None
    subject_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("vector")
    @classmethod
    def _finite_vector(cls, v: list[float]) -> list[float]:
        return _check_vector(v)

    @field_validator("bbox_rel")
    @classmethod
    def _relative_bbox(cls, v: BBox) -> BBox:
        return _check_bbox(v)


class EraCentroid(BaseModel):
    era_slug: str
    era_name: str
    representative_date: date
    prompt_count: int = 20
    vector: list[float]
    model: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("vector")
    @classmethod
    def _finite_vector(cls, v: list[float]) -> list[float]:
        return _check_vector(v)


class Album(BaseModel):
    album_uid: str
    title: str = ""
    photo_uids: list[str] = Field(default_factory=list)


class FaceCandidate(BaseModel):
    """A face returned by a nearest-neighbor query, with its cosine distance."""

    face: FaceEmbedding
    distance: float


class ImageCandidate(BaseModel):
    photo_uid: str
    distance: float


class FaceMatch(BaseModel):
    photo_uid: str
    face_index: int
    marker_uid: Optional[str] = None
    subject_uid: Optional[str] = None
    subject_name: Optional[str] = None
    bbox_rel: BBox
    action: MatchAction
    distance: float
    iou: Optional[float] = None


class MatchSummary(BaseModel):
    create_marker: int = 0
    assign_person: int = 0
    already_done: int = 0
    unassign_person: int = 0

    @classmethod
    def from_actions(cls, actions: Iterable[MatchAction]) -> "MatchSummary":
        counts = Counter(MatchAction(action).value for action in actions)
        return cls(**counts)


class MatchResponse(BaseModel):
    person: str
    source_photos: int = 0
    source_faces: int = 0
    matches: list[FaceMatch] = Field(default_factory=list)
    summary: MatchSummary = Field(default_factory=MatchSummary)


class OutlierFace(BaseModel):
    photo_uid: str
    face_index: int
    marker_uid: Optional[str] = None
    subject_uid: Optional[str] = None
    bbox_rel: Optional[BBox] = None
    distance: float
    action: MatchAction = MatchAction.UNASSIGN_PERSON


class OutlierResponse(BaseModel):
    person: str
    total_faces: int = 0
    avg_distance: float = 0.0
    outliers: list[OutlierFace] = Field(default_factory=list)
    missing_embeddings: list[OutlierFace] = Field(default_factory=list)
    summary: MatchSummary = Field(default_factory=MatchSummary)


class FaceSuggestion(BaseModel):
    person_name: str
    person_uid: Optional[str] = None
    distance: float
    confidence: float
    face_count: int


class DuplicateGroup(BaseModel):
    photo_uids: list[str]
    distances: list[float] = Field(default_factory=list)
    avg_distance: float = 0.0
    photo_count: int = 0


class DuplicatesResponse(BaseModel):
    groups: list[DuplicateGroup] = Field(default_factory=list)
    count: int = 0
    total_groups: int = 0
    total_photos_scanned: int = 0
    total_duplicates: int = 0


class AlbumScore(BaseModel):
    album_uid: str
    album_title: str = ""
    similarity: float


class PhotoAlbumSuggestions(BaseModel):
    photo_uid: str
    albums: list[AlbumScore] = Field(default_factory=list)


class AlbumSuggestResponse(BaseModel):
    albums_analyzed: int = 0
    skipped: int = 0
    photos_analyzed: int = 0
    suggestions: list[PhotoAlbumSuggestions] = Field(default_factory=list)


class SimilarPhoto(BaseModel):
    photo_uid: str
    distance: float
    similarity: float


class AlbumSimilarPhoto(BaseModel):
    photo_uid: str
    distance: float  # closest distance to any album member
    similarity: float
    match_count: int  # album members this photo was found near


class AlbumSimilarResponse(BaseModel):
    album_uid: str
    threshold: float
    source_photo_count: int = 0
    source_embedding_count: int = 0
    min_match_count: int = 0
    results: list[AlbumSimilarPhoto] = Field(default_factory=list)
    count: int = 0


class EraMatch(BaseModel):
    era_slug: str
    era_name: str
    representative_date: date
    similarity: float
    confidence: float  # similarity as a 0-100 percentage


class EraEstimate(BaseModel):
    photo_uid: str
    era_slug: str
    era_name: str
    representative_date: date
    similarity: float
    confidence: float
    top_matches: list[EraMatch] = Field(default_factory=list)


class SubjectScanResult(BaseModel):
    """Outcome of one subject inside a batch scan; failures stay per-subject."""

    subject_name: str
    status: str = "ok"  # ok | not_found | error | cancelled
    error: Optional[str] = None
    matches: Optional[MatchResponse] = None
    outliers: Optional[OutlierResponse] = None
