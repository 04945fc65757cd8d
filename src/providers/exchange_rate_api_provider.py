# src/providers/exchange_rate_api_provider.py

"""Provider for exchangerate-api.com (keyless v4, or keyed v6)."""

import time
import urllib.parse
from typing import Any

from src.models.rate_snapshot import ProviderResult
from src.providers.base_provider import BaseRateProvider, ProviderError


class ExchangeRateApiProvider(BaseRateProvider):
    """First tier of the chain: any base currency.

    Without an API key the open v4 endpoint is used. With
    ``EXCHANGE_RATES_API_KEY`` set, the keyed v6 endpoint is used
    instead; it reports errors in a ``result`` field.
    """

    OPEN_URL = "https://api.exchangerate-api.com/v4/latest/{base}"
    KEYED_URL = "https://v6.exchangerate-api.com/v6/{key}/latest/{base}"

    def __init__(
        self,
        api_key: str | None = None,
        provider_id: str = "exchangerate_api",
        label: str = "ExchangeRates-API",
    ) -> None:
        super().__init__(provider_id, label)
        self.api_key = api_key or self.settings.EXCHANGE_RATES_API_KEY

    def _url(self, base: str) -> str:
        quoted = urllib.parse.quote(base, safe="")
        if self.api_key:
            return self.KEYED_URL.format(
                key=urllib.parse.quote(self.api_key, safe=""),
                base=quoted,
            )
        return self.OPEN_URL.format(base=quoted)

    def fetch(self, base: str) -> ProviderResult:
        data: dict[str, Any] = self._fetch_json(self._url(base))
        if data.get("result") == "error":
            raise ProviderError(
                f"{self.label} error: {data.get('error-type')}"
            )

        raw = data.get("conversion_rates") or data.get("rates")
        rates = self.clean_rates(raw)
        if not rates:
            raise ProviderError(f"{self.label} returned no rates")
        return ProviderResult(
            success=True,
            base=str(
                data.get("base_code") or data.get("base") or base
            ).upper(),
            rates=rates,
            timestamp=float(
                data.get("time_last_update_unix")
                or data.get("time_last_updated")
                or time.time()
            ),
        )
