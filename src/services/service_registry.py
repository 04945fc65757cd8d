# src/services/service_registry.py

"""Composition root: builds one instance of each FX service per process."""

import logging
from dataclasses import dataclass
from pathlib import Path

from src.models.scheduler_state import SchedulerConfig
from src.services.clock import Clock
from src.services.competitor_monitor import CompetitorPriceMonitor
from src.services.fx_rate_service import FxRateService
from src.services.fx_refresh import FxRefreshService
from src.services.fx_scheduler import FxRateScheduler
from src.services.health_checker import HealthChecker
from src.storage.fx_rate_db import FxRateDB

logger = logging.getLogger("pharma_fx.registry")


@dataclass
class ServiceRegistry:
    """Everything the control surface needs, wired together once."""

    fx_service: FxRateService
    db: FxRateDB
    refresher: FxRefreshService
    scheduler: FxRateScheduler
    competitor_monitor: CompetitorPriceMonitor
    health_checker: HealthChecker

    def close(self) -> None:
        """Stop the scheduler and release the database."""
        if self.scheduler.is_running:
            self.scheduler.stop()
        self.db.close()


def build_service_registry(
    db_path: Path | None = None,
    config: SchedulerConfig | None = None,
    clock: Clock | None = None,
) -> ServiceRegistry:
    """Construct and wire the FX services.

    Call once per process; the returned scheduler is the only one
    that should ever be started.
    """
    fx_service = FxRateService()
    db = FxRateDB(db_path)
    refresher = FxRefreshService(fx_service, db)
    registry = ServiceRegistry(
        fx_service=fx_service,
        db=db,
        refresher=refresher,
        scheduler=FxRateScheduler(refresher, config=config, clock=clock),
        competitor_monitor=CompetitorPriceMonitor(),
        health_checker=HealthChecker(fx_service),
    )
    logger.debug(
        "Service registry built with %d FX providers",
        len(fx_service.providers),
    )
    return registry
