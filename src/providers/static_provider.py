# src/providers/static_provider.py

"""Last-resort hardcoded rate table."""

import time

from src.models.rate_snapshot import ProviderResult
from src.providers.base_provider import BaseRateProvider, ProviderError

# Units of currency per 1 USD. Rough and periodically hand-updated.
STATIC_USD_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.85,
    "GBP": 0.73,
    "JPY": 110.0,
    "AOA": 830.0,
    "BRL": 5.20,
    "CAD": 1.25,
    "AUD": 1.35,
    "CHF": 0.92,
    "CNY": 7.10,
}

STATIC_BASES: tuple[str, ...] = ("USD", "EUR", "AOA")

STATIC_SOURCE = "Static"


def static_table(base: str) -> dict[str, float]:
    """Cross every anchor rate through USD for the requested base.

    Deriving all bases from one anchor keeps the table internally
    consistent: ``table(A)[B] * table(B)[A] == 1``.
    """
    anchor = STATIC_USD_RATES[base]
    return {
        code: usd_rate / anchor
        for code, usd_rate in STATIC_USD_RATES.items()
        if code != base
    }


class StaticRateProvider(BaseRateProvider):
    """Never touches the network; guarantees rates for a few common bases."""

    def __init__(
        self, provider_id: str = "static", label: str = STATIC_SOURCE,
    ) -> None:
        super().__init__(provider_id, label)

    def fetch(self, base: str) -> ProviderResult:
        if base not in STATIC_BASES:
            raise ProviderError(
                f"No static fallback rates available for {base}"
            )
        self.logger.warning(
            "Using static fallback FX rates for %s - "
            "consider updating external API keys",
            base,
        )
        return ProviderResult(
            success=True,
            base=base,
            rates=static_table(base),
            timestamp=time.time(),
        )
