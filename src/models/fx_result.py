# src/models/fx_result.py

"""Result envelopes returned by the rate acquisition engine."""

from dataclasses import dataclass, field


@dataclass
class FxRatesResult:
    """Outcome of a full-table lookup for one base currency."""

    success: bool
    rates: dict[str, float] = field(
        default_factory=lambda: dict[str, float]()
    )
    source: str = "none"
    cached: bool = False
    error: str | None = None


@dataclass
class CurrencyRateResult:
    """Outcome of a single currency-pair lookup."""

    success: bool
    source: str
    rate: float | None = None
    inverse: float | None = None
    error: str | None = None
