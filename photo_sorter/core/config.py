from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_FACE_DISTANCE_THRESHOLD = 0.5
DEFAULT_DUPLICATE_DISTANCE_THRESHOLD = 0.10
DEFAULT_ALBUM_SIMILARITY_THRESHOLD = 0.30
DEFAULT_ALBUM_TOP_K = 3
DEFAULT_MIN_ALBUM_SIZE = 2
DEFAULT_IOU_THRESHOLD = 0.1
DEFAULT_SEARCH_LIMIT = 1000
DEFAULT_DUPLICATE_GROUP_LIMIT = 100
DEFAULT_FACE_SUGGESTION_LIMIT = 5
DEFAULT_WORKER_POOL_SIZE = 8
DEFAULT_SIMILAR_DISTANCE_THRESHOLD = 0.30
DEFAULT_SIMILAR_LIMIT = 50


@dataclass(frozen=True)
class EngineConfig:
    face_distance_threshold: float = DEFAULT_FACE_DISTANCE_THRESHOLD
    duplicate_distance_threshold: float = DEFAULT_DUPLICATE_DISTANCE_THRESHOLD
    album_similarity_threshold: float = DEFAULT_ALBUM_SIMILARITY_THRESHOLD
    album_top_k: int = DEFAULT_ALBUM_TOP_K
    min_album_size: int = DEFAULT_MIN_ALBUM_SIZE
    iou_threshold: float = DEFAULT_IOU_THRESHOLD
    search_limit: int = DEFAULT_SEARCH_LIMIT
    duplicate_group_limit: int = DEFAULT_DUPLICATE_GROUP_LIMIT
    face_suggestion_limit: int = DEFAULT_FACE_SUGGESTION_LIMIT
    worker_pool_size: int = DEFAULT_WORKER_POOL_SIZE
    similar_distance_threshold: float = DEFAULT_SIMILAR_DISTANCE_THRESHOLD
    similar_limit: int = DEFAULT_SIMILAR_LIMIT

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            face_distance_threshold=float(
                os.getenv("FACE_DISTANCE_THRESHOLD", str(DEFAULT_FACE_DISTANCE_THRESHOLD))
            ),
            duplicate_distance_threshold=float(
                os.getenv("DUPLICATE_DISTANCE_THRESHOLD", str(DEFAULT_DUPLICATE_DISTANCE_THRESHOLD))
            ),
            album_similarity_threshold=float(
                os.getenv("ALBUM_SIMILARITY_THRESHOLD", str(DEFAULT_ALBUM_SIMILARITY_THRESHOLD))
            ),
            album_top_k=int(os.getenv("ALBUM_TOP_K", str(DEFAULT_ALBUM_TOP_K))),
            min_album_size=int(os.getenv("MIN_ALBUM_SIZE", str(DEFAULT_MIN_ALBUM_SIZE))),
            iou_threshold=float(os.getenv("IOU_THRESHOLD", str(DEFAULT_IOU_THRESHOLD))),
            search_limit=int(os.getenv("SEARCH_LIMIT", str(DEFAULT_SEARCH_LIMIT))),
            duplicate_group_limit=int(
                os.getenv("DUPLICATE_GROUP_LIMIT", str(DEFAULT_DUPLICATE_GROUP_LIMIT))
            ),
            face_suggestion_limit=int(
                os.getenv("FACE_SUGGESTION_LIMIT", str(DEFAULT_FACE_SUGGESTION_LIMIT))
            ),
            worker_pool_size=int(os.getenv("WORKER_POOL_SIZE", str(DEFAULT_WORKER_POOL_SIZE))),
            similar_distance_threshold=float(
                os.getenv("SIMILAR_DISTANCE_THRESHOLD", str(DEFAULT_SIMILAR_DISTANCE_THRESHOLD))
            ),
            similar_limit=int(os.getenv("SIMILAR_LIMIT", str(DEFAULT_SIMILAR_LIMIT))),
        )
