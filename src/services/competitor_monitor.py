# src/services/competitor_monitor.py

"""Competitor price monitoring over a simulated collection feed."""

import asyncio
import logging
import random
import urllib.parse
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Protocol

from src.config.settings import Settings
from src.models.competitor_quote import (
    CompetitorQuote,
    PriceRange,
    ProductSearchTerm,
)

logger = logging.getLogger("pharma_fx.competitors")

NOT_FOUND_ERROR = "Product not found or price unavailable"


class QuoteCollector(Protocol):
    """Produces one quote for a (product, competitor source) pair."""

    def collect(
        self,
        product: ProductSearchTerm,
        source: dict[str, str],
    ) -> CompetitorQuote: ...


def build_search_url(source: dict[str, str], search_term: str) -> str:
    return (
        f"{source['url']}?q={urllib.parse.quote(search_term, safe='')}"
    )


class SimulatedQuoteCollector:
    """Stands in for a real scraper behind the ``QuoteCollector`` contract.

    Finds a price with ``COMPETITOR_HIT_PROBABILITY`` and draws it
    uniformly within ``COMPETITOR_PRICE_VARIANCE`` of the expected
    range's midpoint.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()
        self.settings = Settings()

    def generate_price(self, price_range: PriceRange) -> float | None:
        """Return a plausible price, or ``None`` for a miss."""
        if self.rng.random() >= self.settings.COMPETITOR_HIT_PROBABILITY:
            return None
        variance = self.settings.COMPETITOR_PRICE_VARIANCE
        midpoint = price_range.midpoint
        adjustment = self.rng.uniform(-variance, variance) * midpoint
        return round(max(0.0, midpoint + adjustment), 2)

    def collect(
        self,
        product: ProductSearchTerm,
        source: dict[str, str],
    ) -> CompetitorQuote:
        price = self.generate_price(product.expected_price_range)
        found = price is not None
        return CompetitorQuote(
            product_id=product.product_id,
            competitor=source["name"],
            price=price,
            currency=self.settings.COMPETITOR_DEFAULT_CURRENCY,
            availability="in_stock" if found else "out_of_stock",
            source_url=build_search_url(source, product.search_term),
            collected_at=datetime.now(),
            confidence=self.rng.randint(70, 100) if found else 30,
            error=None if found else NOT_FOUND_ERROR,
        )


class CompetitorPriceMonitor:
    """Collects one quote per (product, competitor) with failure isolation."""

    def __init__(
        self,
        collector: QuoteCollector | None = None,
        sources: list[dict[str, str]] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = Settings()
        self.rng = rng or random.Random()
        self.collector: QuoteCollector = (
            collector or SimulatedQuoteCollector(self.rng)
        )
        self.sources = (
            Settings.COMPETITOR_SOURCES if sources is None else sources
        )
        self._sleep = sleep or asyncio.sleep

    def _request_delay(self) -> float:
        low, high = self.settings.COMPETITOR_DELAY_RANGE
        return self.rng.uniform(low, high)

    def _error_quote(
        self,
        product: ProductSearchTerm,
        source: dict[str, str],
        exc: Exception,
    ) -> CompetitorQuote:
        return CompetitorQuote(
            product_id=product.product_id,
            competitor=source.get("name", "unknown"),
            price=None,
            currency=self.settings.COMPETITOR_DEFAULT_CURRENCY,
            availability="unknown",
            source_url=source.get("url", ""),
            collected_at=datetime.now(),
            confidence=0,
            error=str(exc) or "Scraping failed",
        )

    async def monitor_competitor_prices(
        self, products: list[ProductSearchTerm],
    ) -> list[CompetitorQuote]:
        """Collect quotes for every product across every competitor.

        A failure for one pair becomes an ``error`` quote with zero
        confidence; the rest of the batch still runs.
        """
        quotes: list[CompetitorQuote] = []
        for product in products:
            for source in self.sources:
                try:
                    quote = await asyncio.to_thread(
                        self.collector.collect, product, source
                    )
                    quotes.append(quote)
                    await self._sleep(self._request_delay())
                except Exception as exc:
                    logger.warning(
                        "Competitor quote failed for %s at %s: %s",
                        product.product_id,
                        source.get("name", "?"),
                        exc,
                    )
                    quotes.append(
                        self._error_quote(product, source, exc)
                    )

        found = sum(1 for q in quotes if q.price is not None)
        logger.info(
            "Competitor monitoring collected %d quotes (%d priced) "
            "for %d products",
            len(quotes),
            found,
            len(products),
        )
        return quotes
