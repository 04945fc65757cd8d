# src/services/fx_refresh.py

"""Pulls live rates for the tracked base currencies into the rate store."""

import asyncio
import logging
from datetime import datetime

from src.config.settings import Settings
from src.models.fx_rate_record import FxRateRecord
from src.providers.static_provider import STATIC_SOURCE
from src.services.fx_rate_service import FxRateService
from src.storage.fx_rate_db import FxRateDB

logger = logging.getLogger("pharma_fx.refresh")


class FxRefreshError(Exception):
    """Raised when a refresh obtained no live rates at all."""


class FxRefreshService:
    """The ``refresh_fx_rates()`` collaborator the scheduler drives.

    Rates served by the static tier are not persisted by default:
    they keep lookups alive but are not a source of record, so a
    refresh that only reached the static table counts as a failure
    and gets retried.
    """

    def __init__(
        self,
        fx_service: FxRateService,
        db: FxRateDB,
        bases: list[str] | None = None,
        currencies: list[str] | None = None,
    ) -> None:
        self.fx_service = fx_service
        self.db = db
        self.bases = bases or list(Settings.FX_TRACKED_BASES)
        self.currencies = currencies or list(
            Settings.FX_TRACKED_CURRENCIES
        )

    def _build_records(
        self,
        base: str,
        rates: dict[str, float],
        source: str,
        now: datetime,
    ) -> list[FxRateRecord]:
        return [
            FxRateRecord(
                base_currency=base,
                quote_currency=quote,
                rate=rates[quote],
                as_of_date=now.date(),
                source=source,
                created_at=now,
            )
            for quote in self.currencies
            if quote != base and rates.get(quote, 0) > 0
        ]

    async def refresh_fx_rates(self) -> list[FxRateRecord]:
        """Fetch fresh tables for every tracked base and persist them.

        Raises ``FxRefreshError`` if no base produced persistable rates.
        """
        now = datetime.now()
        records: list[FxRateRecord] = []
        failures: list[str] = []

        for base in self.bases:
            result = await self.fx_service.get_fx_rates_with_fallbacks(
                base, use_cache=False
            )
            if not result.success:
                failures.append(f"{base}: {result.error}")
                continue
            if (
                result.source == STATIC_SOURCE
                and not Settings.FX_PERSIST_STATIC_RATES
            ):
                failures.append(f"{base}: only static rates available")
                continue
            records.extend(
                self._build_records(base, result.rates, result.source, now)
            )

        if not records:
            raise FxRefreshError(
                "No live FX rates obtained ("
                + "; ".join(failures)
                + ")"
            )

        await asyncio.to_thread(self.db.record_rates, records)
        if failures:
            logger.warning(
                "Partial FX refresh, skipped: %s", "; ".join(failures)
            )
        logger.info(
            "FX refresh stored %d rates for %d base currencies",
            len(records),
            len(self.bases) - len(failures),
        )
        return records
