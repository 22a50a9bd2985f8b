"""Embedding storage and nearest-neighbor queries for Photo Sorter."""

from .schema import (
    AlbumMemberRow,
    Base,
    EraEmbeddingRow,
    FaceEmbeddingRow,
    ImageEmbeddingRow,
    create_engine_from_url,
    init_db,
    session_factory,
)
from .store import EmbeddingStore, SqlEmbeddingStore

__all__ = [
    "AlbumMemberRow",
    "Base",
    "EmbeddingStore",
    "EraEmbeddingRow",
    "FaceEmbeddingRow",
    "ImageEmbeddingRow",
    "SqlEmbeddingStore",
    "create_engine_from_url",
    "init_db",
    "session_factory",
]
