"""
Recompute published artist ratings.

Without arguments every artist is rebuilt from the users' rating mappings;
with --artist-id only that artist is recomputed from the flat ratings log.
Meant to be run on demand or from a scheduler (cron, Cloud Scheduler job).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from artist_backend.config import get_settings
from artist_backend.db import InMemoryDocumentStore
from artist_backend.dependencies import get_document_store
from artist_backend.errors import ArtistBackendError
from artist_backend.ratings import AggregationEngine


logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Recompute artist average ratings")
    parser.add_argument(
        "--artist-id",
        default=None,
        help="Recompute a single artist from the ratings log",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().log_level.upper(), format="%(levelname)s:%(message)s"
    )
    db = get_document_store()
    if isinstance(db, InMemoryDocumentStore):
        logger.warning("No Firebase project configured; running against an empty store")

    engine = AggregationEngine(db)
    try:
        if args.artist_id:
            value = engine.recompute_one(args.artist_id)
            logger.info("Artist %s: %s", args.artist_id, value)
        else:
            updated = engine.recompute_all()
            logger.info("Updated %d artists", len(updated))
    except ArtistBackendError as e:
        logger.error("%s", e.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
