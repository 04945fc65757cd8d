# tests/test_rate_cache.py

"""Tests for the in-memory per-base rate cache."""

import time
import unittest
from datetime import datetime
from unittest.mock import patch

from src.models.rate_snapshot import RateSnapshot
from src.storage.rate_cache import RateCache


def _snap(base: str = "USD", source: str = "Fixer") -> RateSnapshot:
    """Create a minimal RateSnapshot for testing."""
    return RateSnapshot(
        base_currency=base,
        rates={"EUR": 0.9, "GBP": 0.8},
        fetched_at=datetime.now(),
        source=source,
    )


class TestRateCache(unittest.TestCase):
    """RateCache unit tests."""

    def setUp(self) -> None:
        self.cache = RateCache(ttl=3600)

    def test_hit_after_store(self) -> None:
        self.cache.store(_snap())
        hit = self.cache.get("USD")
        assert hit is not None
        self.assertEqual(hit.rates["EUR"], 0.9)

    def test_miss_for_other_base(self) -> None:
        self.cache.store(_snap("USD"))
        self.assertIsNone(self.cache.get("EUR"))

    def test_store_overwrites_same_base(self) -> None:
        self.cache.store(_snap(source="Fixer"))
        self.cache.store(_snap(source="ECB"))
        hit = self.cache.get("USD")
        assert hit is not None
        self.assertEqual(hit.source, "ECB")
        self.assertEqual(self.cache.stats()["entries"], 1)

    # ── TTL expiration ───────────────────────────────────

    def test_expired_entry_evicted(self) -> None:
        self.cache.store(_snap())
        future = time.time() + 3601
        with patch(
            "src.storage.rate_cache.time.time", return_value=future
        ):
            self.assertIsNone(self.cache.get("USD"))
        self.assertEqual(self.cache.stats()["entries"], 0)

    def test_entry_live_just_before_ttl(self) -> None:
        self.cache.store(_snap())
        future = time.time() + 3500
        with patch(
            "src.storage.rate_cache.time.time", return_value=future
        ):
            self.assertIsNotNone(self.cache.get("USD"))

    def test_default_ttl_is_one_hour(self) -> None:
        self.assertEqual(RateCache()._ttl, 3600.0)

    # ── clear() / stats() ────────────────────────────────

    def test_clear_returns_purged_count(self) -> None:
        self.cache.store(_snap("USD"))
        self.cache.store(_snap("EUR"))
        self.assertEqual(self.cache.clear(), 2)
        self.assertIsNone(self.cache.get("USD"))

    def test_clear_on_empty_cache_returns_zero(self) -> None:
        self.assertEqual(self.cache.clear(), 0)

    def test_stats_on_empty_cache(self) -> None:
        stats = self.cache.stats()
        self.assertEqual(stats["entries"], 0)
        self.assertIsNone(stats["oldest_entry"])
        self.assertIsNone(stats["newest_entry"])

    def test_stats_reports_oldest_and_newest(self) -> None:
        with patch(
            "src.storage.rate_cache.time.time", return_value=1000.0
        ):
            self.cache.store(_snap("USD"))
        with patch(
            "src.storage.rate_cache.time.time", return_value=2000.0
        ):
            self.cache.store(_snap("EUR"))
        stats = self.cache.stats()
        self.assertEqual(stats["entries"], 2)
        self.assertEqual(
            stats["oldest_entry"], datetime.fromtimestamp(1000.0)
        )
        self.assertEqual(
            stats["newest_entry"], datetime.fromtimestamp(2000.0)
        )


class TestRateSnapshot(unittest.TestCase):
    """Snapshot invariant: every rate is positive."""

    def test_rejects_non_positive_rate(self) -> None:
        with self.assertRaises(ValueError):
            RateSnapshot(
                base_currency="USD",
                rates={"EUR": 0.0},
                fetched_at=datetime.now(),
                source="x",
            )


if __name__ == "__main__":
    unittest.main()
