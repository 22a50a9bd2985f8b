"""Run the face matcher and outlier detector over many subjects at once.

Work fans out over a bounded thread pool. A failing subject is reported in its
own result and never aborts the rest of the batch.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.errors import EngineError, NotFoundError, OperationCancelled
from photo_sorter.core.models import SubjectScanResult
from photo_sorter.index.store import EmbeddingStore

from .common import check_limit, check_threshold
from .faces import match_subject_faces
from .outliers import find_subject_outliers

logger = logging.getLogger(__name__)


def _run_unit(
    subject_name: str,
    work: Callable[[str, SubjectScanResult], None],
    cancel: Optional[threading.Event],
) -> SubjectScanResult:
    result = SubjectScanResult(subject_name=subject_name)
    if cancel is not None and cancel.is_set():
        result.status = "cancelled"
        return result
    try:
        work(subject_name, result)
    except NotFoundError as exc:
        result.status = "not_found"
        result.error = str(exc)
    except OperationCancelled:
        result.status = "cancelled"
    except EngineError as exc:
        logger.warning("Scan of subject %r failed: %s", subject_name, exc)
        result.status = "error"
        result.error = str(exc)
    return result


def _run_batch(
    subject_names: Sequence[str],
    work: Callable[[str, SubjectScanResult], None],
    cfg: EngineConfig,
    cancel: Optional[threading.Event],
) -> list[SubjectScanResult]:
    names = [name for name in subject_names if name and name.strip()]
    if not names:
        return []
    workers = min(check_limit(cfg.worker_pool_size, "worker_pool_size"), len(names))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="subject-scan") as pool:
        futures = [pool.submit(_run_unit, name, work, cancel) for name in names]
        results = [future.result() for future in futures]
    statuses = [r.status for r in results]
    logger.info(
        "Scanned %d subjects: %d ok, %d not found, %d failed, %d cancelled",
        len(results),
        statuses.count("ok"),
        statuses.count("not_found"),
        statuses.count("error"),
        statuses.count("cancelled"),
    )
    return results


def scan_subjects(
    store: EmbeddingStore,
    subject_names: Sequence[str] | None = None,
    *,
    distance_threshold: float | None = None,
    limit: int | None = None,
    include_outliers: bool = False,
    config: EngineConfig | None = None,
    cancel: threading.Event | None = None,
) -> list[SubjectScanResult]:
    """Match faces for every subject; results follow the input order.

    Without ``subject_names`` every subject in the face cache is scanned.
    """
    cfg = config or EngineConfig()
    if distance_threshold is not None:
        check_threshold(distance_threshold, "distance_threshold")
    if limit is not None:
        check_limit(limit, "limit")
    if subject_names is None:
        subject_names = store.list_subject_names()

    def work(name: str, result: SubjectScanResult) -> None:
        result.matches = match_subject_faces(
            store,
            name,
            distance_threshold=distance_threshold,
            limit=limit,
            config=cfg,
            cancel=cancel,
        )
        if include_outliers:
            result.outliers = find_subject_outliers(
                store, name, distance_threshold=distance_threshold, config=cfg, cancel=cancel
            )

    return _run_batch(subject_names, work, cfg, cancel)


def scan_outliers(
    store: EmbeddingStore,
    subject_names: Sequence[str] | None = None,
    *,
    distance_threshold: float | None = None,
    limit: int | None = None,
    config: EngineConfig | None = None,
    cancel: threading.Event | None = None,
) -> list[SubjectScanResult]:
    cfg = config or EngineConfig()
    if distance_threshold is not None:
        check_threshold(distance_threshold, "distance_threshold")
    if limit is not None:
        check_limit(limit, "limit")
    if subject_names is None:
        subject_names = store.list_subject_names()

    def work(name: str, result: SubjectScanResult) -> None:
        result.outliers = find_subject_outliers(
            store,
            name,
            distance_threshold=distance_threshold,
            limit=limit,
            config=cfg,
            cancel=cancel,
        )

    return _run_batch(subject_names, work, cfg, cancel)
