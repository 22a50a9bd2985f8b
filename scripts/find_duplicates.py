#!/usr/bin/env python
"""
Report near-duplicate photo groups from the cached image embeddings.

Usage:
  python scripts/find_duplicates.py
  python scripts/find_duplicates.py --album at9lxuqxpogaaba7 --threshold 0.05
"""
from __future__ import annotations

import argparse

from photo_sorter.core.config import EngineConfig
from photo_sorter.core.env import configure_logging, database_url, load_dotenv_if_present
from photo_sorter.index import SqlEmbeddingStore, init_db, session_factory
from photo_sorter.matching import find_duplicates


def main() -> None:
    parser = argparse.ArgumentParser(description="Group near-duplicate photos.")
    parser.add_argument("--album", help="Restrict the scan to one album uid")
    parser.add_argument("--threshold", type=float, help="Maximum cosine distance for a pair")
    parser.add_argument("--limit", type=int, help="Maximum number of groups to print")
    args = parser.parse_args()

    load_dotenv_if_present()
    configure_logging()
    store = SqlEmbeddingStore(session_factory(init_db(database_url())))
    result = find_duplicates(
        store,
        album_uid=args.album,
        distance_threshold=args.threshold,
        group_limit=args.limit,
        config=EngineConfig.from_env(),
    )

    if not result.groups:
        print(f"No duplicates among {result.total_photos_scanned} photos")
        return
    for group in result.groups:
        print(f"{group.photo_count} photos (avg distance {group.avg_distance:.4f}):")
        for photo_uid in group.photo_uids:
            print(f"  {photo_uid}")
    print(
        f"Showing {result.count} of {result.total_groups} groups; "
        f"{result.total_duplicates} photos in groups out of {result.total_photos_scanned} scanned"
    )


if __name__ == "__main__":
    main()
