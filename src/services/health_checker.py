# src/services/health_checker.py

"""External-service health checker for the FX and competitor feeds."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from src.config.settings import Settings
from src.services.fx_rate_service import FxRateService

logger = logging.getLogger("pharma_fx.health")

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


@dataclass
class ServiceHealth:
    """Health of one external dependency."""

    status: HealthStatus
    latency_ms: float | None = None
    error: str | None = None


@dataclass
class HealthReport:
    """Combined health of every external dependency."""

    fx_rates: ServiceHealth
    competitor_monitoring: ServiceHealth
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, object]:
        return {
            "fxRates": {
                "status": self.fx_rates.status,
                "latency": self.fx_rates.latency_ms,
                "error": self.fx_rates.error,
            },
            "competitorMonitoring": {
                "status": self.competitor_monitoring.status,
                "error": self.competitor_monitoring.error,
            },
            "timestamp": self.timestamp.isoformat(),
        }


class HealthChecker:
    """Checks the rate acquisition engine and grades it by latency."""

    def __init__(self, fx_service: FxRateService) -> None:
        self.fx_service = fx_service
        self._degraded_ms: float = Settings.FX_DEGRADED_LATENCY_MS

    async def _check_fx_rates(self) -> ServiceHealth:
        start = time.perf_counter()
        try:
            result = await self.fx_service.get_fx_rates_with_fallbacks(
                "USD"
            )
        except Exception as exc:
            return ServiceHealth(status="unhealthy", error=str(exc))
        elapsed_ms = (time.perf_counter() - start) * 1000

        if not result.success:
            return ServiceHealth(
                status="unhealthy",
                latency_ms=elapsed_ms,
                error=result.error,
            )
        if not result.cached and elapsed_ms > self._degraded_ms:
            return ServiceHealth(
                status="degraded", latency_ms=elapsed_ms,
            )
        return ServiceHealth(status="healthy", latency_ms=elapsed_ms)

    async def check_external_services_health(self) -> HealthReport:
        """Time one USD lookup; competitor monitoring is always healthy."""
        fx_health = await self._check_fx_rates()
        # The competitor feed is simulated and has no upstream to fail
        report = HealthReport(
            fx_rates=fx_health,
            competitor_monitoring=ServiceHealth(status="healthy"),
        )
        logger.info(
            "Health check fx_rates: %s (%s) %s",
            fx_health.status,
            (
                f"{fx_health.latency_ms:.0f}ms"
                if fx_health.latency_ms is not None
                else "n/a"
            ),
            fx_health.error or "",
        )
        return report
