# src/providers/fixer_provider.py

"""Provider for the fixer.io latest-rates API (API key required)."""

import time
import urllib.parse
from typing import Any

from src.models.rate_snapshot import ProviderResult
from src.providers.base_provider import BaseRateProvider, ProviderError


class FixerProvider(BaseRateProvider):
    """Second tier. Fixer reports logical errors with HTTP 200 and
    ``success: false``, so the payload flag is checked explicitly.
    """

    LATEST_URL = "https://data.fixer.io/api/latest?{query}"

    def __init__(
        self,
        api_key: str | None = None,
        provider_id: str = "fixer",
        label: str = "Fixer",
    ) -> None:
        super().__init__(provider_id, label)
        self.api_key = api_key or self.settings.FIXER_API_KEY

    def fetch(self, base: str) -> ProviderResult:
        if not self.api_key:
            raise ProviderError("Fixer API key not configured")

        query = urllib.parse.urlencode(
            {"access_key": self.api_key, "base": base}
        )
        data: dict[str, Any] = self._fetch_json(
            self.LATEST_URL.format(query=query)
        )
        if not data.get("success"):
            error: Any = data.get("error") or {}
            code = error.get("code") if isinstance(error, dict) else error
            raise ProviderError(f"Fixer API error: {code}")

        rates = self.clean_rates(data.get("rates"))
        if not rates:
            raise ProviderError("Fixer returned no rates")
        return ProviderResult(
            success=True,
            base=str(data.get("base", base)).upper(),
            rates=rates,
            timestamp=float(data.get("timestamp") or time.time()),
        )
