# tests/test_providers.py

"""Tests for the FX provider adapters using mocked HTTP responses."""

import json
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from src.config.settings import Settings
from src.providers.base_provider import BaseRateProvider, ProviderError
from src.providers.currency_layer_provider import CurrencyLayerProvider
from src.providers.ecb_provider import EcbProvider
from src.providers.exchange_rate_api_provider import ExchangeRateApiProvider
from src.providers.fixer_provider import FixerProvider
from src.providers.static_provider import (
    STATIC_BASES,
    StaticRateProvider,
    static_table,
)

ECB_XML = """<?xml version="1.0" encoding="UTF-8"?>
<gesmes:Envelope xmlns:gesmes="http://www.gesmes.org/xml/2002-08-01"
    xmlns="http://www.ecb.int/vocabulary/2002-08-01/eurofxref">
  <gesmes:subject>Reference rates</gesmes:subject>
  <Cube>
    <Cube time="2026-10-16">
      <Cube currency="USD" rate="1.0884"/>
      <Cube currency="JPY" rate="162.35"/>
      <Cube currency="GBP" rate="0.8421"/>
    </Cube>
  </Cube>
</gesmes:Envelope>
"""


def _response(payload: Any, status: int = 200) -> MagicMock:
    """Build a mock curl_cffi response."""
    resp = MagicMock()
    resp.status_code = status
    resp.text = (
        payload if isinstance(payload, str) else json.dumps(payload)
    )
    return resp


class ProviderTestCase(unittest.TestCase):
    """Patches the curl_cffi session and cloudscraper for every test."""

    def setUp(self) -> None:
        session_patcher = patch(
            "src.providers.base_provider.curl_requests.Session"
        )
        self.mock_session_cls = session_patcher.start()
        self.addCleanup(session_patcher.stop)
        self.session = MagicMock()
        self.mock_session_cls.return_value = self.session

        cs_patcher = patch("src.providers.base_provider.cloudscraper")
        self.mock_cloudscraper = cs_patcher.start()
        self.addCleanup(cs_patcher.stop)
        self.fallback = MagicMock()
        self.fallback.get.return_value = _response("", status=503)
        self.mock_cloudscraper.create_scraper.return_value = self.fallback


class TestCleanRates(unittest.TestCase):
    """Rate sanitising shared by every provider."""

    def test_drops_non_positive_and_non_numeric(self) -> None:
        rates = BaseRateProvider.clean_rates({
            "eur": 0.9,
            "GBP": "0.8",
            "ZERO": 0,
            "NEG": -1.5,
            "BAD": "n/a",
            "FLAG": True,
            "NONE": None,
        })
        self.assertEqual(rates, {"EUR": 0.9, "GBP": 0.8})

    def test_non_dict_returns_empty(self) -> None:
        self.assertEqual(BaseRateProvider.clean_rates(["USD"]), {})
        self.assertEqual(BaseRateProvider.clean_rates(None), {})


class TestExchangeRateApiProvider(ProviderTestCase):
    """First-tier provider."""

    def test_open_endpoint_parses_rates(self) -> None:
        self.session.get.return_value = _response({
            "base": "USD",
            "rates": {"USD": 1, "EUR": 0.91, "GBP": 0.78, "BAD": -1},
            "time_last_updated": 1760000000,
        })
        provider = ExchangeRateApiProvider()
        provider.api_key = None
        result = provider.fetch("USD")

        self.assertTrue(result.success)
        self.assertEqual(result.base, "USD")
        self.assertEqual(
            result.rates, {"USD": 1.0, "EUR": 0.91, "GBP": 0.78}
        )
        self.assertEqual(result.timestamp, 1760000000.0)
        url = self.session.get.call_args[0][0]
        self.assertTrue(url.endswith("/v4/latest/USD"))

    def test_keyed_endpoint_uses_conversion_rates(self) -> None:
        self.session.get.return_value = _response({
            "result": "success",
            "base_code": "EUR",
            "conversion_rates": {"USD": 1.09},
            "time_last_update_unix": 1760000000,
        })
        provider = ExchangeRateApiProvider(api_key="secret")
        result = provider.fetch("EUR")

        self.assertEqual(result.rates, {"USD": 1.09})
        url = self.session.get.call_args[0][0]
        self.assertIn("/v6/secret/latest/EUR", url)

    def test_keyed_error_result_raises(self) -> None:
        self.session.get.return_value = _response({
            "result": "error",
            "error-type": "invalid-key",
        })
        provider = ExchangeRateApiProvider(api_key="bad")
        with self.assertRaises(ProviderError) as ctx:
            provider.fetch("USD")
        self.assertIn("invalid-key", str(ctx.exception))

    def test_empty_rates_raise(self) -> None:
        self.session.get.return_value = _response(
            {"base": "USD", "rates": {}}
        )
        provider = ExchangeRateApiProvider()
        provider.api_key = None
        with self.assertRaises(ProviderError):
            provider.fetch("USD")

    def test_invalid_json_raises(self) -> None:
        self.session.get.return_value = _response("<html>oops</html>")
        provider = ExchangeRateApiProvider()
        with self.assertRaises(ProviderError) as ctx:
            provider.fetch("USD")
        self.assertIn("invalid JSON", str(ctx.exception))


class TestTransport(ProviderTestCase):
    """Retry, fallback transport and circuit breaker behaviour."""

    def _provider(self) -> ExchangeRateApiProvider:
        provider = ExchangeRateApiProvider()
        provider.api_key = None
        return provider

    def test_server_errors_retry_then_raise(self) -> None:
        self.session.get.return_value = _response("", status=500)
        provider = self._provider()
        with self.assertRaises(ProviderError) as ctx:
            provider.fetch("USD")
        self.assertEqual(
            self.session.get.call_count, Settings.MAX_RETRIES
        )
        self.assertIn("HTTP 503", str(ctx.exception))

    def test_client_error_is_not_retried(self) -> None:
        self.session.get.return_value = _response("", status=401)
        provider = self._provider()
        with self.assertRaises(ProviderError):
            provider.fetch("USD")
        self.assertEqual(self.session.get.call_count, 1)

    def test_cloudscraper_fallback_rescues_request(self) -> None:
        self.session.get.side_effect = ConnectionError("reset")
        self.fallback.get.return_value = _response(
            {"base": "USD", "rates": {"EUR": 0.9}}
        )
        provider = self._provider()
        result = provider.fetch("USD")
        self.assertEqual(result.rates, {"EUR": 0.9})
        self.fallback.get.assert_called_once()

    def test_circuit_opens_after_threshold(self) -> None:
        self.session.get.side_effect = ConnectionError("down")
        provider = self._provider()
        for _ in range(Settings.CIRCUIT_BREAKER_THRESHOLD):
            with self.assertRaises(ProviderError):
                provider.fetch("USD")
        calls_before = self.session.get.call_count

        with self.assertRaises(ProviderError) as ctx:
            provider.fetch("USD")
        self.assertIn("circuit breaker open", str(ctx.exception))
        self.assertEqual(self.session.get.call_count, calls_before)

    def test_circuit_half_opens_after_cooldown(self) -> None:
        provider = self._provider()
        provider._circuit_open = True
        provider._circuit_opened_at = 0.0
        self.session.get.return_value = _response(
            {"base": "USD", "rates": {"EUR": 0.9}}
        )
        result = provider.fetch("USD")
        self.assertTrue(result.success)
        self.assertFalse(provider._circuit_open)


class TestFixerProvider(ProviderTestCase):
    """Second-tier provider (API key required)."""

    def test_missing_key_raises_without_request(self) -> None:
        with patch.object(Settings, "FIXER_API_KEY", None):
            provider = FixerProvider()
        with self.assertRaises(ProviderError) as ctx:
            provider.fetch("USD")
        self.assertIn("not configured", str(ctx.exception))
        self.session.get.assert_not_called()

    def test_success_false_payload_raises(self) -> None:
        self.session.get.return_value = _response({
            "success": False,
            "error": {"code": 105, "type": "base_currency_access_restricted"},
        })
        provider = FixerProvider(api_key="k")
        with self.assertRaises(ProviderError) as ctx:
            provider.fetch("USD")
        self.assertIn("105", str(ctx.exception))

    def test_success_payload(self) -> None:
        self.session.get.return_value = _response({
            "success": True,
            "base": "EUR",
            "timestamp": 1760000000,
            "rates": {"USD": 1.09, "AOA": 1010.5},
        })
        provider = FixerProvider(api_key="k")
        result = provider.fetch("EUR")
        self.assertEqual(result.base, "EUR")
        self.assertEqual(result.rates["AOA"], 1010.5)
        url = self.session.get.call_args[0][0]
        self.assertIn("access_key=k", url)
        self.assertIn("base=EUR", url)


class TestCurrencyLayerProvider(ProviderTestCase):
    """Third-tier provider (pair-keyed quotes)."""

    def test_quotes_to_rates_strips_prefix(self) -> None:
        rates = CurrencyLayerProvider.quotes_to_rates(
            "USD", {"USDEUR": 0.9, "USDGBP": 0.8, "EURUSD": 1.1}
        )
        self.assertEqual(rates, {"EUR": 0.9, "GBP": 0.8})

    def test_success_payload(self) -> None:
        self.session.get.return_value = _response({
            "success": True,
            "source": "USD",
            "timestamp": 1760000000,
            "quotes": {"USDEUR": 0.92, "USDAOA": 915.0},
        })
        provider = CurrencyLayerProvider(api_key="k")
        result = provider.fetch("USD")
        self.assertEqual(result.rates, {"EUR": 0.92, "AOA": 915.0})

    def test_missing_key_raises(self) -> None:
        with patch.object(Settings, "CURRENCY_LAYER_API_KEY", None):
            provider = CurrencyLayerProvider()
        with self.assertRaises(ProviderError):
            provider.fetch("USD")
        self.session.get.assert_not_called()


class TestEcbProvider(ProviderTestCase):
    """Fourth-tier provider (EUR base only)."""

    def test_non_eur_base_raises_without_request(self) -> None:
        provider = EcbProvider()
        with self.assertRaises(ProviderError) as ctx:
            provider.fetch("USD")
        self.assertIn("only supports EUR", str(ctx.exception))
        self.session.get.assert_not_called()

    def test_parses_reference_rates(self) -> None:
        self.session.get.return_value = _response(ECB_XML)
        provider = EcbProvider()
        result = provider.fetch("EUR")
        self.assertEqual(result.base, "EUR")
        self.assertEqual(
            result.rates,
            {"USD": 1.0884, "JPY": 162.35, "GBP": 0.8421},
        )

    def test_empty_feed_raises(self) -> None:
        self.session.get.return_value = _response(
            "<Envelope><Cube/></Envelope>"
        )
        provider = EcbProvider()
        with self.assertRaises(ProviderError):
            provider.fetch("EUR")


class TestStaticRateProvider(ProviderTestCase):
    """Last-resort hardcoded table."""

    def test_supported_bases_always_succeed(self) -> None:
        provider = StaticRateProvider()
        for base in ("USD", "EUR", "AOA"):
            with self.subTest(base=base):
                result = provider.fetch(base)
                self.assertTrue(result.success)
                self.assertNotIn(base, result.rates)
                self.assertTrue(all(r > 0 for r in result.rates.values()))
        self.session.get.assert_not_called()

    def test_never_opens_http_session(self) -> None:
        provider = StaticRateProvider()
        provider.fetch("EUR")
        self.mock_session_cls.assert_not_called()

    def test_network_provider_opens_session_once(self) -> None:
        self.session.get.return_value = _response(ECB_XML)
        provider = EcbProvider()
        self.mock_session_cls.assert_not_called()
        provider.fetch("EUR")
        provider.fetch("EUR")
        self.mock_session_cls.assert_called_once_with(
            impersonate=Settings.IMPERSONATE_BROWSER
        )

    def test_unsupported_base_raises(self) -> None:
        provider = StaticRateProvider()
        with self.assertRaises(ProviderError):
            provider.fetch("XYZ")

    def test_usage_logs_warning(self) -> None:
        provider = StaticRateProvider()
        with self.assertLogs("pharma_fx.providers.static", "WARNING"):
            provider.fetch("USD")

    def test_table_is_internally_consistent(self) -> None:
        for a in STATIC_BASES:
            for b in STATIC_BASES:
                if a == b:
                    continue
                with self.subTest(pair=f"{a}/{b}"):
                    product = static_table(a)[b] * static_table(b)[a]
                    self.assertAlmostEqual(product, 1.0, places=9)

    def test_usd_anchor_values(self) -> None:
        table = static_table("USD")
        self.assertEqual(table["EUR"], 0.85)
        self.assertEqual(table["AOA"], 830.0)


if __name__ == "__main__":
    unittest.main()
