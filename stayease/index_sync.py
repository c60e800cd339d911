"""
Keeps the in-memory city search index in step with the listings table.

The index is a derived cache: it is rebuilt from the database at startup and
patched after every committed listing write. A missed patch leaves it stale
until the next restart.
"""

from __future__ import annotations

import logging
import warnings
from typing import Optional

from stayease.db import DbClient, ListingRecord
from stayease.locks import ReadWriteLock
from stayease.prefix_index import PrefixIndex

logger = logging.getLogger(__name__)


class IndexDriftWarning(RuntimeWarning):
    """The search index could not be built from the database."""


class ListingIndexSynchronizer:
    """Owns the process-wide city index and its reader/writer lock."""

    def __init__(self, index: Optional[PrefixIndex] = None):
        self.index = index or PrefixIndex()
        self._lock = ReadWriteLock()

    def bootstrap(self, db: DbClient) -> int:
        """
        Load every listing into the index. Returns how many were indexed.

        A failing fetch is reported as an ``IndexDriftWarning`` and leaves the
        index empty; the service keeps running with degraded search.
        """
        try:
            listings = db.fetch_all_listings()
        except Exception as exc:
            logger.exception("Failed to load listings into search index: %s", exc)
            warnings.warn(
                f"search index not built: {exc}", IndexDriftWarning, stacklevel=2
            )
            return 0

        with self._lock.write_locked():
            self.index.clear()
            count = self.index.insert_many(
                (listing.city, listing.listing_id) for listing in listings
            )
        logger.info("Loaded %d listings into search index", count)
        return count

    def search_by_prefix(self, prefix: str) -> list[str]:
        with self._lock.read_locked():
            ids = self.index.search(prefix)
        return sorted(ids)

    def on_listing_created(self, listing: ListingRecord) -> None:
        with self._lock.write_locked():
            self.index.insert(listing.city, listing.listing_id)
        logger.debug("Indexed listing %s under %r", listing.listing_id, listing.city)

    def on_listing_updated(self, before: ListingRecord, after: ListingRecord) -> None:
        if before.city == after.city:
            return
        with self._lock.write_locked():
            self.index.delete(before.city, before.listing_id)
            self.index.insert(after.city, after.listing_id)
        logger.debug(
            "Re-indexed listing %s from %r to %r",
            after.listing_id,
            before.city,
            after.city,
        )

    def on_listing_deleted(self, listing: ListingRecord) -> None:
        with self._lock.write_locked():
            self.index.delete(listing.city, listing.listing_id)
        logger.debug("Removed listing %s from index", listing.listing_id)
