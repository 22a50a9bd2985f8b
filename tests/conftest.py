from __future__ import annotations

import pytest

from photo_sorter.core.models import FaceEmbedding
from photo_sorter.index import SqlEmbeddingStore, init_db, session_factory


@pytest.fixture
def store() -> SqlEmbeddingStore:
    """Embedding store on a fresh in-memory sqlite database."""
    engine = init_db("sqlite+pysqlite:///:memory:")
    return SqlEmbeddingStore(session_factory(engine))


@pytest.fixture(autouse=True)
def clear_engine_env(monkeypatch):
    for name in (
        "FACE_DISTANCE_THRESHOLD",
        "DUPLICATE_DISTANCE_THRESHOLD",
        "ALBUM_SIMILARITY_THRESHOLD",
        "ALBUM_TOP_K",
        "MIN_ALBUM_SIZE",
        "IOU_THRESHOLD",
        "SEARCH_LIMIT",
        "DUPLICATE_GROUP_LIMIT",
        "FACE_SUGGESTION_LIMIT",
        "WORKER_POOL_SIZE",
        "SIMILAR_DISTANCE_THRESHOLD",
        "SIMILAR_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


def _make_face(
    photo_uid: str,
    face_index: int,
    vector: list[float],
    *,
    bbox: tuple[float, float, float, float] = (0.1, 0.1, 0.3, 0.3),
    marker_uid: str | None = None,
    subject_uid: str | None = None,
    subject_name: str | None = None,
) -> FaceEmbedding:
    return FaceEmbedding(
        photo_uid=photo_uid,
        face_index=face_index,
        vector=vector,
        bbox_rel=bbox,
        det_score=0.9,
        model="buffalo_l",
        marker_uid=marker_uid,
        subject_uid=subject_uid,
        subject_name=subject_name,
    )


@pytest.fixture
def make_face():
    return _make_face

