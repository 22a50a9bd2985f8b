"""Near-duplicate photo grouping over image embeddings.

Groups are the connected components of the graph whose edges join photos with
cosine distance <= threshold. They are NOT cliques: when A-B and B-C are within
the threshold, A, B and C land in one group even if A-C is far apart. This
chaining is intentional (it keeps burst sequences together) and must stay.

Edge generation and component extraction are separate stages so each can be
exercised on its own.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter, defaultdict
from typing import Iterable, Mapping, Optional, Sequence

import numpy as np

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.errors import NotFoundError
from photo_sorter.core.models import DuplicateGroup, DuplicatesResponse
from photo_sorter.core.similarity import normalize_vector
from photo_sorter.index.store import EmbeddingStore

from .common import check_limit, check_threshold, raise_if_cancelled

logger = logging.getLogger(__name__)

Edge = tuple[str, str, float]


class _UnionFind:
    def __init__(self, items: Iterable[str]):
        self.parent = {item: item for item in items}
        self.rank: dict[str, int] = defaultdict(int)

    def find(self, x: str) -> str:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: str, y: str) -> None:
        px, py = self.find(x), self.find(y)
        if px == py:
            return
        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1


def filter_edges(pairs: Iterable[Edge], threshold: float) -> list[Edge]:
    """Keep pairs whose distance is within the (inclusive) threshold."""
    return [(a, b, d) for a, b, d in pairs if a != b and d <= threshold]


def duplicate_edges(
    vectors: Mapping[str, Sequence[float]],
    threshold: float,
    *,
    cancel: Optional[threading.Event] = None,
) -> list[Edge]:
    """Exact pairwise edges between photos whose distance is <= threshold.

    Photos with empty or zero vectors, or with a dimension other than the most
    common one, never get an edge.
    """
    normalized: dict[str, np.ndarray] = {}
    for photo_uid, vec in vectors.items():
        norm = normalize_vector(vec)
        if norm is not None:
            normalized[photo_uid] = norm
    if len(normalized) < 2:
        return []
    dim = Counter(v.shape[0] for v in normalized.values()).most_common(1)[0][0]
    uids = sorted(uid for uid, v in normalized.items() if v.shape[0] == dim)
    if len(uids) < 2:
        return []
    matrix = np.stack([normalized[uid] for uid in uids])

    edges: list[Edge] = []
    for i in range(len(uids) - 1):
        raise_if_cancelled(cancel)
        sims = np.clip(matrix[i + 1 :] @ matrix[i], -1.0, 1.0)
        distances = 1.0 - sims
        pairs = ((uids[i], uids[i + 1 + j], float(d)) for j, d in enumerate(distances))
        edges.extend(filter_edges(pairs, threshold))
    return edges


def connected_groups(photo_uids: Iterable[str], edges: Iterable[Edge]) -> list[DuplicateGroup]:
    """Connected components with at least two members, largest first.

    Members are sorted ascending; equal-sized groups are ordered by their
    lowest member uid so results are stable across runs.
    """
    uf = _UnionFind(photo_uids)
    edge_list = list(edges)
    for a, b, _ in edge_list:
        if a in uf.parent and b in uf.parent:
            uf.union(a, b)

    members: dict[str, list[str]] = defaultdict(list)
    for uid in uf.parent:
        members[uf.find(uid)].append(uid)
    distances: dict[str, list[float]] = defaultdict(list)
    for a, b, d in edge_list:
        if a in uf.parent and b in uf.parent:
            distances[uf.find(a)].append(d)

    groups = []
    for root, uids in members.items():
        if len(uids) < 2:
            continue
        group_distances = sorted(distances[root])
        groups.append(
            DuplicateGroup(
                photo_uids=sorted(uids),
                distances=group_distances,
                avg_distance=float(np.mean(group_distances)) if group_distances else 0.0,
                photo_count=len(uids),
            )
        )
    groups.sort(key=lambda g: (-g.photo_count, g.photo_uids[0]))
    return groups


def load_scope_vectors(
    store: EmbeddingStore,
    photo_uids: Iterable[str],
    *,
    cancel: Optional[threading.Event] = None,
) -> dict[str, list[float]]:
    """Fetch embeddings for the scope; photos without one are left out."""
    vectors: dict[str, list[float]] = {}
    for photo_uid in photo_uids:
        raise_if_cancelled(cancel)
        embedding = store.get_image_embedding(photo_uid)
        if embedding is not None and embedding.vector:
            vectors[photo_uid] = embedding.vector
    return vectors


def find_duplicates(
    store: EmbeddingStore,
    *,
    album_uid: str | None = None,
    distance_threshold: float | None = None,
    group_limit: int | None = None,
    config: EngineConfig | None = None,
    cancel: threading.Event | None = None,
) -> DuplicatesResponse:
    """Group near-identical photos in an album or across the whole library."""
    cfg = config or EngineConfig()
    threshold = check_threshold(
        cfg.duplicate_distance_threshold if distance_threshold is None else distance_threshold,
        "distance_threshold",
    )
    max_groups = check_limit(
        cfg.duplicate_group_limit if group_limit is None else group_limit, "group_limit"
    )

    if album_uid:
        scope = store.get_album_members(album_uid)
        if not scope:
            raise NotFoundError(f"album {album_uid!r} has no cached photos")
    else:
        scope = store.list_image_photo_uids(limit=cfg.search_limit)

    vectors = load_scope_vectors(store, scope, cancel=cancel)
    edges = duplicate_edges(vectors, threshold, cancel=cancel)
    groups = connected_groups(scope, edges)
    logger.info(
        "Duplicate scan: %d photos (%d embedded), %d edges, %d groups at distance <= %.3f",
        len(scope),
        len(vectors),
        len(edges),
        len(groups),
        threshold,
    )
    returned = groups[:max_groups]
    return DuplicatesResponse(
        groups=returned,
        count=len(returned),
        total_groups=len(groups),
        total_photos_scanned=len(scope),
        total_duplicates=sum(g.photo_count for g in groups),
    )
