"""Vector and bounding-box primitives shared by every matcher."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable, Optional, Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1].

    Mismatched lengths, empty vectors and zero-norm vectors all resolve to 0.0
    instead of raising.
    """
    if len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0
    arr_a = np.asarray(a, dtype=float)
    arr_b = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(arr_a)
    norm_b = np.linalg.norm(arr_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(arr_a, arr_b) / (norm_a * norm_b), -1.0, 1.0))


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    return 1.0 - cosine_similarity(a, b)


def _box_area(box: Sequence[float]) -> float:
    return max(0.0, box[2] - box[0]) * max(0.0, box[3] - box[1])


def intersection_over_union(box_a: Sequence[float], box_b: Sequence[float]) -> float:
    """IoU of two (x1, y1, x2, y2) boxes; degenerate boxes count as zero area."""
    if len(box_a) != 4 or len(box_b) != 4:
        return 0.0
    x1 = max(box_a[0], box_b[0])
    y1 = max(box_a[1], box_b[1])
    x2 = min(box_a[2], box_b[2])
    y2 = min(box_a[3], box_b[3])
    if x2 <= x1 or y2 <= y1:
        return 0.0
    intersection = (x2 - x1) * (y2 - y1)
    union = _box_area(box_a) + _box_area(box_b) - intersection
    if union <= 0:
        return 0.0
    return float(min(1.0, intersection / union))


def normalize_vector(vec: Sequence[float] | None) -> Optional[np.ndarray]:
    if vec is None or len(vec) == 0:
        return None
    arr = np.asarray(vec, dtype=float)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return None
    return arr / norm


def compute_centroid(vectors: Iterable[Sequence[float] | None]) -> Optional[np.ndarray]:
    """Mean of the usable vectors, re-normalized to unit length.

    Empty vectors are skipped, as are vectors whose dimension differs from the
    first usable one. Returns None when nothing usable is left.
    """
    usable: list[np.ndarray] = []
    dim: Optional[int] = None
    for vec in vectors:
        if vec is None or len(vec) == 0:
            continue
        if dim is None:
            dim = len(vec)
        elif len(vec) != dim:
            continue
        usable.append(np.asarray(vec, dtype=float))
    if not usable:
        return None
    return normalize_vector(np.mean(np.stack(usable), axis=0))


def normalize_person_name(name: str | None) -> str:
    """Fold a subject slug or display name for comparison ("jan-novak" == "Jan Novák")."""
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    folded = unicodedata.normalize("NFC", stripped).lower().replace("-", " ")
    return re.sub(r"\s+", " ", folded).strip()
