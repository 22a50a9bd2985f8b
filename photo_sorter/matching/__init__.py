"""Face reconciliation, duplicate grouping, album and era suggestions."""

from .albums import build_album_centroids, rank_albums, suggest_albums
from .duplicates import connected_groups, duplicate_edges, filter_edges, find_duplicates
from .eras import estimate_era, rank_eras
from .faces import classify_face, match_subject_faces, suggest_people_for_face
from .outliers import find_subject_outliers
from .scan import scan_outliers, scan_subjects
from .similar import (
    compute_min_match_count,
    find_similar_photos,
    find_similar_to_album,
    rank_album_candidates,
)

__all__ = [
    "build_album_centroids",
    "classify_face",
    "compute_min_match_count",
    "connected_groups",
    "duplicate_edges",
    "estimate_era",
    "filter_edges",
    "find_duplicates",
    "find_similar_photos",
    "find_similar_to_album",
    "find_subject_outliers",
    "match_subject_faces",
    "rank_album_candidates",
    "rank_albums",
    "rank_eras",
    "scan_outliers",
    "scan_subjects",
    "suggest_albums",
    "suggest_people_for_face",
]
