# src/storage/rate_cache.py

"""In-memory, per-base-currency rate cache with TTL expiry."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime

from src.config.settings import Settings
from src.models.rate_snapshot import RateSnapshot

logger = logging.getLogger("pharma_fx.cache")


@dataclass
class CacheEntry:
    """A cached rate table and the wall-clock time it stops being valid."""

    snapshot: RateSnapshot
    stored_at: float
    expires_at: float


class RateCache:
    """Per-base-currency cache of the last successful provider fetch.

    Entries are overwritten on every successful fetch and evicted
    lazily once past their TTL. Access is expected from a single
    event-loop thread; nothing here is locked.
    """

    def __init__(self, ttl: float | None = None) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._ttl: float = (
            Settings.FX_CACHE_TTL if ttl is None else ttl
        )

    def get(self, base_currency: str) -> RateSnapshot | None:
        """Return the live snapshot for *base_currency*, or ``None``."""
        now = time.time()
        entry = self._entries.get(base_currency)
        if entry is None:
            return None
        if now >= entry.expires_at:
            del self._entries[base_currency]
            logger.debug(
                "Evicted expired rates for %s", base_currency
            )
            return None
        logger.debug(
            "Cache hit for %s (source=%s)",
            base_currency,
            entry.snapshot.source,
        )
        return entry.snapshot

    def store(self, snapshot: RateSnapshot) -> None:
        """Insert or overwrite the entry for the snapshot's base."""
        now = time.time()
        self._entries[snapshot.base_currency] = CacheEntry(
            snapshot=snapshot,
            stored_at=now,
            expires_at=now + self._ttl,
        )
        logger.info(
            "Cached %d rates for %s from %s",
            len(snapshot.rates),
            snapshot.base_currency,
            snapshot.source,
        )

    def clear(self) -> int:
        """Purge all cached entries.

        Returns the number of entries that were removed.
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info("Rate cache purged (%d entries removed)", count)
        return count

    def stats(self) -> dict[str, object]:
        """Entry count plus the oldest and newest store times."""
        stamps = [e.stored_at for e in self._entries.values()]
        return {
            "entries": len(self._entries),
            "oldest_entry": (
                datetime.fromtimestamp(min(stamps)) if stamps else None
            ),
            "newest_entry": (
                datetime.fromtimestamp(max(stamps)) if stamps else None
            ),
        }
