# src/models/rate_snapshot.py

"""Exchange-rate snapshot models passed between providers and the cache."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class ProviderResult:
    """Raw output of a single provider fetch. Never stored."""

    success: bool
    base: str
    rates: dict[str, float] = field(
        default_factory=lambda: dict[str, float]()
    )
    timestamp: float | None = None


@dataclass
class RateSnapshot:
    """A complete rate table for one base currency.

    ``rates`` maps quote currency to units of quote per one unit of
    base; every value is strictly positive.
    """

    base_currency: str
    rates: dict[str, float]
    fetched_at: datetime
    source: str

    def __post_init__(self) -> None:
        bad = [c for c, r in self.rates.items() if r <= 0]
        if bad:
            msg = f"Non-positive rates for {', '.join(sorted(bad))}"
            raise ValueError(msg)
