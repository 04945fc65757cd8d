# tests/test_health_checker.py

"""Tests for the external-service health checker."""

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from src.models.fx_result import FxRatesResult
from src.services.health_checker import HealthChecker


def _fx_service(result: FxRatesResult | None = None) -> MagicMock:
    service = MagicMock()
    service.get_fx_rates_with_fallbacks = AsyncMock(return_value=result)
    return service


class TestHealthChecker(unittest.IsolatedAsyncioTestCase):
    """Latency grading of the FX rate check."""

    @patch("src.services.health_checker.time.perf_counter")
    async def test_fast_fresh_lookup_is_healthy(
        self, mock_clock: MagicMock,
    ) -> None:
        mock_clock.side_effect = [100.0, 100.25]
        service = _fx_service(FxRatesResult(
            success=True, rates={"EUR": 0.9}, source="Fixer",
        ))
        report = await HealthChecker(service).check_external_services_health()

        self.assertEqual(report.fx_rates.status, "healthy")
        self.assertAlmostEqual(report.fx_rates.latency_ms or 0, 250.0)
        service.get_fx_rates_with_fallbacks.assert_awaited_once_with("USD")

    @patch("src.services.health_checker.time.perf_counter")
    async def test_slow_fresh_lookup_is_degraded(
        self, mock_clock: MagicMock,
    ) -> None:
        mock_clock.side_effect = [0.0, 6.0]
        service = _fx_service(FxRatesResult(
            success=True, rates={"EUR": 0.9}, source="ECB",
        ))
        report = await HealthChecker(service).check_external_services_health()
        self.assertEqual(report.fx_rates.status, "degraded")
        self.assertIsNone(report.fx_rates.error)

    @patch("src.services.health_checker.time.perf_counter")
    async def test_cached_lookup_is_healthy_even_if_slow(
        self, mock_clock: MagicMock,
    ) -> None:
        mock_clock.side_effect = [0.0, 6.0]
        service = _fx_service(FxRatesResult(
            success=True, rates={"EUR": 0.9}, source="cache", cached=True,
        ))
        report = await HealthChecker(service).check_external_services_health()
        self.assertEqual(report.fx_rates.status, "healthy")

    async def test_failed_lookup_is_unhealthy(self) -> None:
        service = _fx_service(FxRatesResult(
            success=False,
            rates={},
            source="none",
            error="All FX rate providers failed for USD",
        ))
        report = await HealthChecker(service).check_external_services_health()
        self.assertEqual(report.fx_rates.status, "unhealthy")
        self.assertIn("All FX rate providers failed", report.fx_rates.error or "")

    async def test_raising_lookup_is_unhealthy(self) -> None:
        service = MagicMock()
        service.get_fx_rates_with_fallbacks = AsyncMock(
            side_effect=RuntimeError("loop closed")
        )
        report = await HealthChecker(service).check_external_services_health()
        self.assertEqual(report.fx_rates.status, "unhealthy")
        self.assertEqual(report.fx_rates.error, "loop closed")

    async def test_competitor_monitoring_always_healthy(self) -> None:
        service = _fx_service(FxRatesResult(
            success=False, rates={}, source="none", error="down",
        ))
        report = await HealthChecker(service).check_external_services_health()
        self.assertEqual(report.competitor_monitoring.status, "healthy")

    async def test_report_to_dict(self) -> None:
        service = _fx_service(FxRatesResult(
            success=True, rates={"EUR": 0.9}, source="Fixer",
        ))
        data = (
            await HealthChecker(service).check_external_services_health()
        ).to_dict()
        self.assertEqual(
            set(data), {"fxRates", "competitorMonitoring", "timestamp"}
        )
        fx_rates = data["fxRates"]
        assert isinstance(fx_rates, dict)
        self.assertEqual(fx_rates["status"], "healthy")


if __name__ == "__main__":
    unittest.main()
