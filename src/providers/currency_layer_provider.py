# src/providers/currency_layer_provider.py

"""Provider for the currencylayer.com live-quotes API (API key required)."""

import time
import urllib.parse
from typing import Any

from src.models.rate_snapshot import ProviderResult
from src.providers.base_provider import BaseRateProvider, ProviderError


class CurrencyLayerProvider(BaseRateProvider):
    """Third tier. Quotes come back keyed by pair (``USDEUR``) and are
    re-keyed to the plain quote currency.
    """

    LIVE_URL = "https://api.currencylayer.com/live?{query}"

    def __init__(
        self,
        api_key: str | None = None,
        provider_id: str = "currency_layer",
        label: str = "CurrencyLayer",
    ) -> None:
        super().__init__(provider_id, label)
        self.api_key = api_key or self.settings.CURRENCY_LAYER_API_KEY

    @staticmethod
    def quotes_to_rates(
        source: str, quotes: dict[str, Any],
    ) -> dict[str, Any]:
        """Strip the source prefix from pair-keyed quotes."""
        prefix = source.upper()
        rates: dict[str, Any] = {}
        for pair, value in quotes.items():
            key = str(pair).upper()
            if key.startswith(prefix) and len(key) > len(prefix):
                rates[key[len(prefix):]] = value
        return rates

    def fetch(self, base: str) -> ProviderResult:
        if not self.api_key:
            raise ProviderError("CurrencyLayer API key not configured")

        query = urllib.parse.urlencode(
            {"access_key": self.api_key, "source": base}
        )
        data: dict[str, Any] = self._fetch_json(
            self.LIVE_URL.format(query=query)
        )
        if not data.get("success"):
            error: Any = data.get("error") or {}
            code = error.get("code") if isinstance(error, dict) else error
            raise ProviderError(f"CurrencyLayer API error: {code}")

        source = str(data.get("source", base)).upper()
        quotes: Any = data.get("quotes") or {}
        if not isinstance(quotes, dict):
            raise ProviderError("CurrencyLayer returned malformed quotes")
        rates = self.clean_rates(self.quotes_to_rates(source, quotes))
        if not rates:
            raise ProviderError("CurrencyLayer returned no rates")
        return ProviderResult(
            success=True,
            base=source,
            rates=rates,
            timestamp=float(data.get("timestamp") or time.time()),
        )
