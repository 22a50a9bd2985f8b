from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from photo_sorter.core.config import DEFAULT_SEARCH_LIMIT
from photo_sorter.core.errors import StoreUnavailableError
from photo_sorter.core.models import (
    Album,
    EraCentroid,
    FaceCandidate,
    FaceEmbedding,
    ImageCandidate,
    ImageEmbedding,
)
from photo_sorter.core.similarity import cosine_distance, normalize_person_name

from .schema import AlbumMemberRow, EraEmbeddingRow, FaceEmbeddingRow, ImageEmbeddingRow

logger = logging.getLogger(__name__)


class EmbeddingStore(Protocol):
    """Read contract the matchers rely on."""

    def get_image_embedding(self, photo_uid: str) -> Optional[ImageEmbedding]: ...

    def get_face_embeddings(self, photo_uid: str) -> list[FaceEmbedding]: ...

    def get_faces_by_subject(self, subject_name: str) -> list[FaceEmbedding]: ...

    def list_subject_names(self) -> list[str]: ...

    def query_nearest_faces(
        self, vector: Sequence[float], limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[FaceCandidate]: ...

    def query_nearest_images(
        self, vector: Sequence[float], limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[ImageCandidate]: ...

    def list_era_centroids(self) -> list[EraCentroid]: ...

    def list_image_photo_uids(self, limit: int = DEFAULT_SEARCH_LIMIT) -> list[str]: ...

    def get_album_members(self, album_uid: str) -> list[str]: ...

    def list_albums(self) -> list[Album]: ...


def _face_from_row(row: FaceEmbeddingRow) -> FaceEmbedding:
    return FaceEmbedding(
        id=row.id,
        photo_uid=row.photo_uid,
        face_index=row.face_index,
        vector=row.embedding or [],
        bbox_rel=(row.bbox_x1, row.bbox_y1, row.bbox_x2, row.bbox_y2),
        det_score=row.det_score,
        model=row.model,
        marker_uid=row.marker_uid or None,
        subject_uid=row.subject_uid or None,
        subject_name=row.subject_name or None,
        created_at=row.created_at,
    )


def _era_from_row(row: EraEmbeddingRow) -> EraCentroid:
    return EraCentroid(
        era_slug=row.era_slug,
        era_name=row.era_name,
        representative_date=row.representative_date,
        prompt_count=row.prompt_count,
        vector=row.embedding,
        model=row.model,
        created_at=row.created_at,
    )


class SqlEmbeddingStore:
    """Embedding store backed by the embeddings/faces/era_embeddings tables.

    Nearest-neighbor queries scan every row and rank by exact cosine distance,
    so they satisfy the ANN query contract without an index. Each call opens its
    own short-lived session, which keeps one store instance safe to share
    between worker threads.
    """

    def __init__(self, sessions: sessionmaker[Session]):
        self._sessions = sessions

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._sessions() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Embedding store query failed: %s", exc)
            raise StoreUnavailableError(f"Embedding store unavailable: {exc}") from exc

    # Reads

    def get_image_embedding(self, photo_uid: str) -> Optional[ImageEmbedding]:
        with self._session() as session:
            row = session.get(ImageEmbeddingRow, photo_uid)
            if row is None:
                return None
            return ImageEmbedding(
                photo_uid=row.photo_uid,
                vector=row.embedding,
                model=row.model,
                pretrained=row.pretrained,
                dim=row.dim,
                created_at=row.created_at,
            )

    def get_face_embeddings(self, photo_uid: str) -> list[FaceEmbedding]:
        with self._session() as session:
            rows = session.scalars(
                select(FaceEmbeddingRow)
                .where(FaceEmbeddingRow.photo_uid == photo_uid)
                .order_by(FaceEmbeddingRow.face_index)
            ).all()
            return [_face_from_row(row) for row in rows]

    def get_faces_by_subject(self, subject_name: str) -> list[FaceEmbedding]:
        """Faces whose cached subject name matches, ignoring case, accents and dashes."""
        target = normalize_person_name(subject_name)
        if not target:
            return []
        with self._session() as session:
            rows = session.scalars(
                select(FaceEmbeddingRow)
                .where(FaceEmbeddingRow.subject_name.is_not(None))
                .order_by(FaceEmbeddingRow.id)
            ).all()
            return [
                _face_from_row(row)
                for row in rows
                if normalize_person_name(row.subject_name) == target
            ]

    def list_subject_names(self) -> list[str]:
        """Distinct cached subject names, one spelling per normalized name."""
        with self._session() as session:
            names = session.scalars(
                select(FaceEmbeddingRow.subject_name)
                .where(FaceEmbeddingRow.subject_name.is_not(None))
                .distinct()
                .order_by(FaceEmbeddingRow.subject_name)
            ).all()
        seen: dict[str, str] = {}
        for name in names:
            key = normalize_person_name(name)
            if key and key not in seen:
                seen[key] = name
        return sorted(seen.values())

    def query_nearest_faces(
        self, vector: Sequence[float], limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[FaceCandidate]:
        with self._session() as session:
            rows = session.scalars(
                select(FaceEmbeddingRow).where(FaceEmbeddingRow.embedding.is_not(None))
            ).all()
            candidates = [
                FaceCandidate(face=_face_from_row(row), distance=cosine_distance(vector, row.embedding))
                for row in rows
                if row.embedding
            ]
        candidates.sort(key=lambda c: (c.distance, c.face.photo_uid, c.face.face_index))
        return candidates[:limit]

    def query_nearest_images(
        self, vector: Sequence[float], limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[ImageCandidate]:
        with self._session() as session:
            rows = session.execute(
                select(ImageEmbeddingRow.photo_uid, ImageEmbeddingRow.embedding)
            ).all()
        matches = [
            ImageCandidate(photo_uid=photo_uid, distance=cosine_distance(vector, embedding or []))
            for photo_uid, embedding in rows
        ]
        matches.sort(key=lambda m: (m.distance, m.photo_uid))
        return matches[:limit]

    def list_era_centroids(self) -> list[EraCentroid]:
        with self._session() as session:
            rows = session.scalars(
                select(EraEmbeddingRow).order_by(
                    EraEmbeddingRow.representative_date, EraEmbeddingRow.era_slug
                )
            ).all()
            return [_era_from_row(row) for row in rows]

    def list_image_photo_uids(self, limit: int = DEFAULT_SEARCH_LIMIT) -> list[str]:
        with self._session() as session:
            return list(
                session.scalars(
                    select(ImageEmbeddingRow.photo_uid)
                    .order_by(ImageEmbeddingRow.photo_uid)
                    .limit(limit)
                ).all()
            )

    def get_album_members(self, album_uid: str) -> list[str]:
        with self._session() as session:
            return list(
                session.scalars(
                    select(AlbumMemberRow.photo_uid)
                    .where(AlbumMemberRow.album_uid == album_uid)
                    .order_by(AlbumMemberRow.photo_uid)
                ).all()
            )

    def list_albums(self) -> list[Album]:
        with self._session() as session:
            rows = session.scalars(
                select(AlbumMemberRow).order_by(AlbumMemberRow.album_uid, AlbumMemberRow.photo_uid)
            ).all()
        albums: dict[str, Album] = {}
        for row in rows:
            album = albums.setdefault(
                row.album_uid, Album(album_uid=row.album_uid, title=row.album_title)
            )
            album.photo_uids.append(row.photo_uid)
        return list(albums.values())

    # Writes, used by the ingestion and PhotoPrism sync collaborators.

    def upsert_image_embedding(self, embedding: ImageEmbedding) -> None:
        vector = list(embedding.vector)
        with self._session() as session:
            row = session.get(ImageEmbeddingRow, embedding.photo_uid)
            if row:
                row.embedding = vector
                row.model = embedding.model
                row.pretrained = embedding.pretrained
                row.dim = len(vector)
            else:
                session.add(
                    ImageEmbeddingRow(
                        photo_uid=embedding.photo_uid,
                        embedding=vector,
                        model=embedding.model,
                        pretrained=embedding.pretrained,
                        dim=len(vector),
                    )
                )
            session.commit()

    def save_faces(self, photo_uid: str, faces: Sequence[FaceEmbedding]) -> None:
        """Replace every stored face of a photo."""
        with self._session() as session:
            session.execute(delete(FaceEmbeddingRow).where(FaceEmbeddingRow.photo_uid == photo_uid))
            for face in faces:
                vector = list(face.vector)
                session.add(
                    FaceEmbeddingRow(
                        photo_uid=photo_uid,
                        face_index=face.face_index,
                        embedding=vector or None,
                        bbox_x1=face.bbox_rel[0],
                        bbox_y1=face.bbox_rel[1],
                        bbox_x2=face.bbox_rel[2],
                        bbox_y2=face.bbox_rel[3],
                        det_score=face.det_score,
                        model=face.model,
                        dim=len(vector),
                        marker_uid=face.marker_uid,
                        subject_uid=face.subject_uid,
                        subject_name=face.subject_name,
                    )
                )
            session.commit()

    def update_face_marker(
        self,
        photo_uid: str,
        face_index: int,
        *,
        marker_uid: str | None,
        subject_uid: str | None,
        subject_name: str | None,
    ) -> bool:
        """Refresh the cached marker/subject snapshot of one face."""
        with self._session() as session:
            row = session.scalar(
                select(FaceEmbeddingRow).where(
                    FaceEmbeddingRow.photo_uid == photo_uid,
                    FaceEmbeddingRow.face_index == face_index,
                )
            )
            if row is None:
                return False
            row.marker_uid = marker_uid
            row.subject_uid = subject_uid
            row.subject_name = subject_name
            session.commit()
            return True

    def save_era(self, era: EraCentroid) -> None:
        vector = list(era.vector)
        with self._session() as session:
            row = session.get(EraEmbeddingRow, era.era_slug)
            if row is None:
                row = EraEmbeddingRow(era_slug=era.era_slug)
                session.add(row)
            row.era_name = era.era_name
            row.representative_date = era.representative_date
            row.prompt_count = era.prompt_count
            row.embedding = vector
            row.model = era.model
            row.dim = len(vector)
            session.commit()

    def replace_album_members(self, album_uid: str, title: str, photo_uids: Sequence[str]) -> None:
        with self._session() as session:
            session.execute(delete(AlbumMemberRow).where(AlbumMemberRow.album_uid == album_uid))
            for photo_uid in dict.fromkeys(photo_uids):
                session.add(AlbumMemberRow(album_uid=album_uid, photo_uid=photo_uid, album_title=title))
            session.commit()
