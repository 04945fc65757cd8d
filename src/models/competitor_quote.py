# src/models/competitor_quote.py

"""Competitor price observation models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Availability = Literal["in_stock", "out_of_stock", "limited", "unknown"]


@dataclass
class PriceRange:
    """Caller-supplied expected price band for a product."""

    min: float
    max: float

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2


@dataclass
class ProductSearchTerm:
    """A product to look up on each competitor site."""

    product_id: str
    search_term: str
    expected_price_range: PriceRange


@dataclass(frozen=True)
class CompetitorQuote:
    """A single (product, competitor) observation from one monitoring run.

    ``confidence`` runs from 0 to 100. ``price`` is ``None`` when the
    competitor had no usable listing or collection failed.
    """

    product_id: str
    competitor: str
    currency: str
    availability: Availability
    source_url: str
    collected_at: datetime
    confidence: int
    price: float | None = None
    error: str | None = None
