#!/usr/bin/env python
"""
Re-evaluate every known person against the face embedding cache.

Usage:
  python scripts/scan_people.py
  python scripts/scan_people.py "Alice Smith" "Bob" --outliers
"""
from __future__ import annotations

import argparse
import signal
import threading

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.env import configure_logging, database_url, load_dotenv_if_present
from photo_sorter.index import SqlEmbeddingStore, init_db, session_factory
from photo_sorter.matching import scan_subjects


def main() -> None:
    parser = argparse.ArgumentParser(description="Scan people for missing or wrong face tags.")
    parser.add_argument("names", nargs="*", help="Person names (default: every cached subject)")
    parser.add_argument("--threshold", type=float, help="Maximum cosine distance for a match")
    parser.add_argument("--outliers", action="store_true", help="Also report suspicious faces")
    args = parser.parse_args()

    load_dotenv_if_present()
    configure_logging()
    store = SqlEmbeddingStore(session_factory(init_db(database_url())))

    cancel = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: cancel.set())

    results = scan_subjects(
        store,
        args.names or None,
        distance_threshold=args.threshold,
        include_outliers=args.outliers,
        config=EngineConfig.from_env(),
        cancel=cancel,
    )
    for result in results:
        if result.status != "ok":
            print(f"{result.subject_name}: {result.status} {result.error or ''}".rstrip())
            continue
        summary = result.matches.summary
        line = (
            f"{result.subject_name}: create={summary.create_marker} "
            f"assign={summary.assign_person} done={summary.already_done}"
        )
        if result.outliers is not None:
            line += f" outliers={len(result.outliers.outliers)}"
        print(line)


if __name__ == "__main__":
    main()
