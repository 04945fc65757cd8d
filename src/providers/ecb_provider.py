# src/providers/ecb_provider.py

"""European Central Bank daily reference rates (EUR base only)."""

import time

from bs4 import BeautifulSoup

from src.models.rate_snapshot import ProviderResult
from src.providers.base_provider import BaseRateProvider, ProviderError


class EcbProvider(BaseRateProvider):
    """Fourth tier: free, keyless, but only publishes EUR-based rates.

    The feed is an XML document of nested ``<Cube>`` elements::

        <Cube><Cube time="2026-10-16">
            <Cube currency="USD" rate="1.0884"/>
            ...
    """

    DAILY_URL = (
        "https://www.ecb.europa.eu/stats/eurofxref/eurofxref-daily.xml"
    )

    def __init__(
        self, provider_id: str = "ecb", label: str = "ECB",
    ) -> None:
        super().__init__(provider_id, label)

    @staticmethod
    def parse_reference_rates(xml_text: str) -> dict[str, str]:
        """Extract ``currency -> rate`` attributes from the ECB feed."""
        soup = BeautifulSoup(xml_text, "xml")
        raw: dict[str, str] = {}
        for cube in soup.find_all("Cube"):
            currency = cube.get("currency")
            rate = cube.get("rate")
            if currency and rate:
                raw[str(currency)] = str(rate)
        return raw

    def fetch(self, base: str) -> ProviderResult:
        if base != "EUR":
            raise ProviderError("ECB API only supports EUR base")

        text = self._fetch_text(self.DAILY_URL)
        rates = self.clean_rates(self.parse_reference_rates(text))
        if not rates:
            raise ProviderError("ECB feed contained no rates")
        return ProviderResult(
            success=True,
            base="EUR",
            rates=rates,
            timestamp=time.time(),
        )
