from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class ImageEmbeddingRow(Base):
    __tablename__ = "embeddings"

    photo_uid: Mapped[str] = mapped_column(String(32), primary_key=True)
    embedding: Mapped[list[float]] = mapped_column(JSON, nullable=False)
    model: Mapped[str] = mapped_column(String(64), nullable=False)
    pretrained: Mapped[Optional[str]] = mapped_column(String(64))
    dim: Mapped[int] = mapped_column(Integer, nullable=False, default=768)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class FaceEmbeddingRow(Base):
    __tablename__ = "faces"
    __table_args__ = (UniqueConstraint("photo_uid", "face_index", name="uq_faces_photo_face"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    photo_uid: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    face_index: Mapped[int] = mapped_column(Integer, nullable=False)
    embedding: Mapped[Optional[list[float]]] = mapped_column(JSON(none_as_null=True))
    bbox_x1: Mapped[float] = mapped_column(Float, nullable=False)
    bbox_y1: Mapped[float] = mapped_column(Float, nullable=False)
    bbox_x2: Mapped[float] = mapped_column(Float, nullable=False)
    bbox_y2: Mapped[float] = mapped_column(Float, nullable=False)
    det_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    model: Mapped[Optional[str]] = mapped_column(String(64))
    dim: Mapped[int] = mapped_column(Integer, nullable=False, default=512)
    # Cached PhotoPrism state, refreshed by the marker sync step.
    marker_uid: Mapped[Optional[str]] = mapped_column(String(32))
    subject_uid: Mapped[Optional[str]] = mapped_column(String(32), index=True)
    subject_name: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class EraEmbeddingRow(Base):
    __tablename__ = "era_embeddings"

    era_slug: Mapped[str] = mapped_column(String(64), primary_key=True)
    era_name: Mapped[str] = mapped_column(String(255), nullable=False)
    representative_date: Mapped[date] = mapped_column(Date, nullable=False)
    prompt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    embedding: Mapped[list[float]] = mapped_column(JSON, nullable=False)
    model: Mapped[Optional[str]] = mapped_column(String(64))
    dim: Mapped[int] = mapped_column(Integer, nullable=False, default=768)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class AlbumMemberRow(Base):
    """Cached album membership, synced from PhotoPrism."""

    __tablename__ = "album_photos"

    album_uid: Mapped[str] = mapped_column(String(32), primary_key=True)
    photo_uid: Mapped[str] = mapped_column(String(32), primary_key=True)
    album_title: Mapped[str] = mapped_column(String(255), nullable=False, default="")


def create_engine_from_url(database_url: str) -> Engine:
    return create_engine(database_url, future=True)


def init_db(database_url: str | Engine) -> Engine:
    engine = (
        database_url if isinstance(database_url, Engine) else create_engine_from_url(database_url)
    )

    Base.metadata.create_all(engine)
    return engine


def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session, future=True)
