# src/services/fx_scheduler.py

"""Supervised periodic refresh of persisted FX rates."""

import asyncio
import dataclasses
import logging
import time
from datetime import timedelta
from typing import Any, Protocol

from src.config.settings import Settings
from src.models.fx_rate_record import FxRateRecord
from src.models.scheduler_state import (
    RefreshPhase,
    SchedulerConfig,
    SchedulerState,
    SchedulerStatistics,
)
from src.services.clock import Clock, SystemClock

logger = logging.getLogger("pharma_fx.scheduler")


class RateRefresher(Protocol):
    """Persistence-side operation the scheduler drives."""

    async def refresh_fx_rates(self) -> list[FxRateRecord]: ...


class FxRateScheduler:
    """Runs ``refresh_fx_rates()`` on a fixed cadence with bounded retries.

    Lifecycle is Stopped -> Running -> Stopped; reconfiguration is a
    stop followed by a start, so at most one timer task exists at any
    time. Counters survive stop/start cycles. Failures only ever
    surface through :meth:`get_status` and :meth:`get_statistics`.

    Refresh cycles are serialised by a lock: a manual trigger that
    arrives during a scheduled cycle waits for it to finish. A cycle
    runs in its own task, shielded from the timer, so :meth:`stop`
    never aborts a cycle that has already begun.
    """

    def __init__(
        self,
        refresher: RateRefresher,
        config: SchedulerConfig | None = None,
        clock: Clock | None = None,
        startup_delay: float | None = None,
    ) -> None:
        self._refresher = refresher
        self._clock: Clock = clock or SystemClock()
        self.config = config or SchedulerConfig.from_settings()
        self.state = SchedulerState(config=self.config)
        self._startup_delay: float = (
            Settings.FX_SCHEDULER_STARTUP_DELAY
            if startup_delay is None
            else startup_delay
        )
        self._timer_task: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[bool]] = set()
        self._cycle_lock = asyncio.Lock()
        logger.info(
            "FX rate scheduler initialised - refresh interval: %sh, "
            "retry attempts: %d, enabled: %s",
            self.config.refresh_interval_hours,
            self.config.retry_attempts,
            self.config.enabled,
        )

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    # ── Lifecycle ────────────────────────────────────────

    def start(self) -> bool:
        """Arm the timer. Returns False if already running or disabled.

        Must be called from inside a running event loop. The first
        refresh happens after the startup delay, then every
        ``refresh_interval_hours`` measured from the end of the
        previous cycle.
        """
        if self.state.is_running:
            logger.info("FX rate scheduler is already running")
            return False
        if not self.config.enabled:
            logger.info("FX rate scheduler is disabled by configuration")
            return False

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.error(
                "Failed to start FX rate scheduler: no running event loop"
            )
            return False

        interval = self.config.interval_seconds
        try:
            next_refresh_at = self._clock.now() + timedelta(seconds=interval)
        except OverflowError:
            logger.error(
                "Failed to start FX rate scheduler: refresh interval of "
                "%sh is out of range",
                self.config.refresh_interval_hours,
            )
            return False

        self._timer_task = asyncio.create_task(
            self._run_timer(interval), name="fx-rate-refresh-timer",
        )
        self.state.is_running = True
        self.state.next_refresh_at = next_refresh_at
        logger.info(
            "FX rate scheduler started - next refresh in %sh (%s)",
            self.config.refresh_interval_hours,
            next_refresh_at.isoformat(),
        )
        return True

    def stop(self) -> bool:
        """Cancel the timer. Returns False if the scheduler was not running."""
        if not self.state.is_running:
            logger.info("FX rate scheduler is not running")
            return False

        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

        self.state.is_running = False
        self.state.next_refresh_at = None
        logger.info("FX rate scheduler stopped")
        return True

    def update_config(
        self,
        changes: dict[str, Any] | None = None,
        **options: Any,
    ) -> bool:
        """Merge new options, restarting the timer if it was running.

        Invalid values are clamped to defaults by ``SchedulerConfig``.
        The merge happens before the timer is touched, so an update
        that fails leaves a running scheduler on its old settings. If
        the restart itself fails, the previous config is restored and
        re-armed, and ``False`` is returned.
        """
        updates = {**(changes or {}), **options}
        try:
            new_config = self.config.merged(updates)
        except Exception as exc:
            logger.error(
                "Failed to update FX rate scheduler configuration: %s",
                exc,
                exc_info=True,
            )
            return False

        previous = self.config
        was_running = self.state.is_running
        if was_running:
            self.stop()

        self.config = new_config
        self.state.config = new_config
        logger.info("FX rate scheduler configuration updated: %s", updates)

        if not (was_running and new_config.enabled):
            return True
        if self.start():
            return True

        logger.warning(
            "Restoring previous FX rate scheduler configuration"
        )
        self.config = previous
        self.state.config = previous
        self.start()
        return False

    async def trigger_immediate_refresh(self) -> bool:
        """Run one refresh cycle now, with the usual retry policy."""
        logger.info("Triggering immediate FX rate refresh")
        return await self._perform_scheduled_refresh()

    async def wait_for_inflight(self) -> None:
        """Block until every in-flight refresh cycle has finished."""
        if self._inflight:
            await asyncio.gather(
                *self._inflight, return_exceptions=True
            )

    # ── Timer ────────────────────────────────────────────

    async def _run_timer(self, interval: float) -> None:
        await self._clock.sleep(self._startup_delay)
        logger.info("Performing initial FX rate refresh")
        await self._run_detached_refresh()
        while True:
            await self._clock.sleep(interval)
            await self._run_detached_refresh()

    async def _run_detached_refresh(self) -> None:
        """Run a cycle in its own task so cancelling the timer spares it."""
        task = asyncio.create_task(self._perform_scheduled_refresh())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        try:
            await asyncio.shield(task)
        except Exception:
            logger.error(
                "Unexpected error in scheduled FX refresh", exc_info=True
            )

    # ── Refresh cycle ────────────────────────────────────

    async def _perform_scheduled_refresh(self) -> bool:
        if self._cycle_lock.locked():
            logger.info(
                "FX refresh already in progress, waiting for it to finish"
            )
        async with self._cycle_lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> bool:
        """Up to ``retry_attempts + 1`` tries with a fixed delay between."""
        config = self.config
        total_attempts = config.retry_attempts + 1
        started = time.monotonic()
        last_error: str | None = None

        for attempt in range(1, total_attempts + 1):
            self.state.phase = RefreshPhase.ATTEMPTING
            self.state.current_attempt = attempt
            logger.info(
                "FX rate refresh attempt %d/%d", attempt, total_attempts
            )
            try:
                records = await self._refresher.refresh_fx_rates()
            except Exception as exc:
                last_error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "FX rate refresh attempt %d failed: %s",
                    attempt,
                    last_error,
                )
                if attempt < total_attempts:
                    logger.info(
                        "Retrying in %.1f seconds",
                        config.retry_delay_ms / 1000,
                    )
                    await self._clock.sleep(config.retry_delay_ms / 1000)
                continue

            self._record_success(len(records or []), started)
            return True

        self._record_failure(total_attempts, last_error, started)
        return False

    def _schedule_next(self) -> None:
        if self.state.is_running:
            self.state.next_refresh_at = self._clock.now() + timedelta(
                seconds=self.config.interval_seconds
            )

    def _record_success(self, count: int, started: float) -> None:
        self.state.last_refresh_at = self._clock.now()
        self.state.last_refresh_success = True
        self.state.last_refresh_error = None
        self.state.total_refreshes += 1
        self.state.phase = RefreshPhase.SUCCEEDED
        self._schedule_next()
        logger.info(
            "FX rate refresh completed in %.0fms - updated %d rates. "
            "Next refresh: %s",
            (time.monotonic() - started) * 1000,
            count,
            (
                self.state.next_refresh_at.isoformat()
                if self.state.next_refresh_at
                else "N/A"
            ),
        )

    def _record_failure(
        self, attempts: int, error: str | None, started: float,
    ) -> None:
        self.state.last_refresh_at = self._clock.now()
        self.state.last_refresh_success = False
        self.state.last_refresh_error = error
        self.state.total_errors += 1
        self.state.phase = RefreshPhase.FAILED
        self._schedule_next()
        logger.error(
            "FX rate refresh failed after %d attempts in %.0fms. Error: %s",
            attempts,
            (time.monotonic() - started) * 1000,
            error,
        )

    # ── Introspection ────────────────────────────────────

    def get_status(self) -> SchedulerState:
        """Snapshot copy of the current state."""
        return dataclasses.replace(self.state)

    def get_statistics(self) -> SchedulerStatistics:
        state = self.state
        cycles = state.total_refreshes + state.total_errors
        success_rate = (
            f"{state.total_refreshes / cycles * 100:.1f}%"
            if cycles
            else "N/A"
        )
        is_healthy = (
            self.config.enabled
            and state.is_running
            and (cycles == 0 or state.last_refresh_success is True)
        )
        return SchedulerStatistics(
            uptime="Running" if state.is_running else "Stopped",
            success_rate=success_rate,
            avg_refresh_interval=f"{self.config.refresh_interval_hours}h",
            next_refresh=(
                state.next_refresh_at.isoformat()
                if state.next_refresh_at
                else "N/A"
            ),
            is_healthy=is_healthy,
        )

    def get_status_report(self) -> dict[str, object]:
        """Combined status and statistics, as served to the control surface."""
        report = self.state.to_dict()
        report["statistics"] = self.get_statistics().to_dict()
        return report
