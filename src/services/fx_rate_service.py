# src/services/fx_rate_service.py

"""Rate acquisition engine: cache, provider fallback chain, pair lookups."""

import asyncio
import importlib
import logging
from datetime import datetime
from typing import Any

from src.config.settings import Settings
from src.models.fx_result import CurrencyRateResult, FxRatesResult
from src.models.rate_snapshot import ProviderResult, RateSnapshot
from src.providers.base_provider import BaseRateProvider
from src.storage.rate_cache import RateCache

logger = logging.getLogger("pharma_fx.fx_rates")


def _load_provider_class(dotted_path: str) -> type[Any]:
    """Dynamically import a provider class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def load_providers(
    registry: list[dict[str, str]] | None = None,
) -> list[BaseRateProvider]:
    """Instantiate the fallback chain in registry order."""
    entries = (
        Settings.FX_PROVIDERS if registry is None else registry
    )
    providers: list[BaseRateProvider] = []
    for entry in entries:
        cls = _load_provider_class(entry["provider"])
        providers.append(
            cls(provider_id=entry["id"], label=entry["label"])
        )
    return providers


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class FxRateService:
    """Serves rate tables and currency-pair rates, degrading tier by tier.

    Callers never implement their own fallback: a lookup either
    succeeds from the cache or the first working provider, or
    returns ``success=False`` once every tier is exhausted.
    """

    def __init__(
        self,
        providers: list[BaseRateProvider] | None = None,
        cache: RateCache | None = None,
    ) -> None:
        self.settings = Settings()
        self.providers: list[BaseRateProvider] = (
            load_providers() if providers is None else providers
        )
        self.cache = cache or RateCache()
        self._provider_timeout: float = (
            self.settings.FX_PROVIDER_TIMEOUT
        )

    @staticmethod
    def normalize_currency(code: str | None) -> str:
        """Upper-case a currency code, defaulting blanks to FX_DEFAULT_BASE."""
        cleaned = (code or "").strip().upper()
        return cleaned or Settings.FX_DEFAULT_BASE

    # ── Private helpers ──────────────────────────────────

    async def _call_provider(
        self, provider: BaseRateProvider, base: str,
    ) -> ProviderResult:
        """Run one blocking provider fetch off-loop, bounded by a timeout."""
        return await asyncio.wait_for(
            asyncio.to_thread(provider.fetch, base),
            timeout=self._provider_timeout,
        )

    async def _try_provider(
        self,
        index: int,
        provider: BaseRateProvider,
        base: str,
    ) -> RateSnapshot | None:
        """Attempt a single tier; any failure is logged and absorbed."""
        try:
            result = await self._call_provider(provider, base)
            if not result.success or not result.rates:
                logger.warning(
                    "FX provider %d (%s) returned no rates for %s",
                    index,
                    provider.label,
                    base,
                )
                return None
            return RateSnapshot(
                base_currency=base,
                rates=dict(result.rates),
                fetched_at=datetime.now(),
                source=provider.label,
            )
        except Exception as exc:
            logger.warning(
                "FX provider %d (%s) failed for %s: %s",
                index,
                provider.label,
                base,
                _describe(exc),
            )
            return None

    # ── Full rate tables ─────────────────────────────────

    async def get_fx_rates_with_fallbacks(
        self,
        base_currency: str | None = None,
        use_cache: bool = True,
    ) -> FxRatesResult:
        """Return every known rate for *base_currency*.

        A live cache entry short-circuits the chain. Otherwise the
        providers are tried in order and the first non-empty table
        wins, is cached, and is returned with ``cached=False``.
        ``use_cache=False`` skips the lookup but still refreshes the
        cache on success.
        """
        try:
            base = self.normalize_currency(base_currency)

            if use_cache:
                cached = self.cache.get(base)
                if cached is not None:
                    return FxRatesResult(
                        success=True,
                        rates=dict(cached.rates),
                        source="cache",
                        cached=True,
                    )

            for index, provider in enumerate(self.providers, 1):
                snapshot = await self._try_provider(
                    index, provider, base
                )
                if snapshot is None:
                    continue
                self.cache.store(snapshot)
                logger.info(
                    "Fetched %d %s rates from %s",
                    len(snapshot.rates),
                    base,
                    snapshot.source,
                )
                return FxRatesResult(
                    success=True,
                    rates=dict(snapshot.rates),
                    source=snapshot.source,
                    cached=False,
                )

            logger.error(
                "All %d FX rate providers failed for %s",
                len(self.providers),
                base,
            )
            return FxRatesResult(
                success=False,
                source="none",
                error=f"All FX rate providers failed for {base}",
            )
        except Exception as exc:
            logger.error(
                "Error fetching FX rates: %s", exc, exc_info=True
            )
            return FxRatesResult(
                success=False,
                source="error",
                error=_describe(exc),
            )

    # ── Currency pairs ───────────────────────────────────

    async def get_currency_rate(
        self, from_currency: str, to_currency: str,
    ) -> CurrencyRateResult:
        """Resolve ``from -> to``, falling back to the inverted reverse table."""
        try:
            src = (from_currency or "").strip().upper()
            dst = (to_currency or "").strip().upper()
            if not src or not dst:
                return CurrencyRateResult(
                    success=False,
                    source="none",
                    error="Both currencies are required",
                )

            if src == dst:
                return CurrencyRateResult(
                    success=True,
                    rate=1.0,
                    inverse=1.0,
                    source="same_currency",
                )

            forward = await self.get_fx_rates_with_fallbacks(src)
            rate = forward.rates.get(dst) if forward.success else None
            if rate:
                return CurrencyRateResult(
                    success=True,
                    rate=rate,
                    inverse=1 / rate,
                    source=forward.source,
                )

            reverse = await self.get_fx_rates_with_fallbacks(dst)
            reverse_rate = (
                reverse.rates.get(src) if reverse.success else None
            )
            if reverse_rate:
                logger.info(
                    "Resolved %s/%s through inverse %s table",
                    src,
                    dst,
                    dst,
                )
                return CurrencyRateResult(
                    success=True,
                    rate=1 / reverse_rate,
                    inverse=reverse_rate,
                    source=f"{reverse.source}_inverse",
                )

            logger.warning("Currency pair %s/%s not available", src, dst)
            return CurrencyRateResult(
                success=False,
                source="none",
                error=f"Currency pair {src}/{dst} not available",
            )
        except Exception as exc:
            logger.error(
                "Error getting currency rate %s/%s: %s",
                from_currency,
                to_currency,
                exc,
                exc_info=True,
            )
            return CurrencyRateResult(
                success=False,
                source="error",
                error=_describe(exc),
            )

    # ── Cache management ─────────────────────────────────

    def clear_caches(self) -> int:
        """Drop every cached rate table. Returns the count removed."""
        return self.cache.clear()

    def get_cache_stats(self) -> dict[str, dict[str, object]]:
        return {"fx_rates": self.cache.stats()}
