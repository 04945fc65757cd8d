# src/models/scheduler_state.py

"""Configuration and observable state of the FX refresh scheduler."""

import logging
import math
from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any

from src.config.settings import Settings

logger = logging.getLogger("pharma_fx.scheduler")

DEFAULT_REFRESH_INTERVAL_HOURS = 6.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_MS = 30000


def _parse_bool(raw: object) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() != "false"


def _coerce(
    name: str,
    raw: object,
    cast: type[float] | type[int],
    default: float,
    minimum: float,
    inclusive: bool,
) -> Any:
    """Convert *raw* with *cast*, falling back to *default* when out of range."""
    try:
        value = cast(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        logger.warning(
            "%s=%r is not a valid number, defaulting to %s",
            name, raw, default,
        )
        return cast(default)
    ok = value >= minimum if inclusive else value > minimum
    if not ok or not math.isfinite(value):
        bound = ">=" if inclusive else ">"
        logger.warning(
            "%s must be %s %s (got %r), defaulting to %s",
            name, bound, minimum, raw, default,
        )
        return cast(default)
    return value


@dataclass
class SchedulerConfig:
    """Tunable scheduler parameters; invalid values are clamped, not rejected."""

    refresh_interval_hours: float = DEFAULT_REFRESH_INTERVAL_HOURS
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    enabled: bool = True

    def __post_init__(self) -> None:
        self.refresh_interval_hours = _coerce(
            "refresh_interval_hours",
            self.refresh_interval_hours,
            float,
            DEFAULT_REFRESH_INTERVAL_HOURS,
            0,
            inclusive=False,
        )
        self.retry_attempts = _coerce(
            "retry_attempts",
            self.retry_attempts,
            int,
            DEFAULT_RETRY_ATTEMPTS,
            0,
            inclusive=True,
        )
        self.retry_delay_ms = _coerce(
            "retry_delay_ms",
            self.retry_delay_ms,
            int,
            DEFAULT_RETRY_DELAY_MS,
            0,
            inclusive=True,
        )
        self.enabled = _parse_bool(self.enabled)

    @classmethod
    def from_settings(cls) -> "SchedulerConfig":
        """Build a config from the environment-backed Settings."""
        return cls(
            refresh_interval_hours=Settings.FX_REFRESH_INTERVAL_HOURS,  # type: ignore[arg-type]
            retry_attempts=Settings.FX_RETRY_ATTEMPTS,  # type: ignore[arg-type]
            retry_delay_ms=Settings.FX_RETRY_DELAY_MS,  # type: ignore[arg-type]
            enabled=_parse_bool(Settings.FX_SCHEDULER_ENABLED),
        )

    def merged(self, changes: dict[str, Any]) -> "SchedulerConfig":
        """Return a new config with *changes* applied.

        Unknown keys are ignored with a warning.
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            logger.warning(
                "Ignoring unknown scheduler option(s): %s",
                ", ".join(unknown),
            )
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in changes.items() if k in known})
        return SchedulerConfig(**values)

    @property
    def interval_seconds(self) -> float:
        return self.refresh_interval_hours * 3600


class RefreshPhase(str, Enum):
    """Where the most recent refresh cycle stands."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SchedulerState:
    """Process-lifetime scheduler status, mutated only by the scheduler.

    ``total_refreshes`` counts successful cycles; failed cycles are
    counted in ``total_errors``.
    """

    config: SchedulerConfig
    is_running: bool = False
    next_refresh_at: datetime | None = None
    last_refresh_at: datetime | None = None
    last_refresh_success: bool | None = None
    last_refresh_error: str | None = None
    total_refreshes: int = 0
    total_errors: int = 0
    phase: RefreshPhase = RefreshPhase.IDLE
    current_attempt: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "isRunning": self.is_running,
            "nextRefreshAt": _iso(self.next_refresh_at),
            "lastRefreshAt": _iso(self.last_refresh_at),
            "lastRefreshSuccess": self.last_refresh_success,
            "lastRefreshError": self.last_refresh_error,
            "totalRefreshes": self.total_refreshes,
            "totalErrors": self.total_errors,
            "phase": self.phase.value,
            "currentAttempt": self.current_attempt,
            "config": {
                "refreshIntervalHours": self.config.refresh_interval_hours,
                "retryAttempts": self.config.retry_attempts,
                "retryDelayMs": self.config.retry_delay_ms,
                "enabled": self.config.enabled,
            },
        }


@dataclass
class SchedulerStatistics:
    """Derived monitoring view over :class:`SchedulerState`."""

    uptime: str
    success_rate: str
    avg_refresh_interval: str
    next_refresh: str
    is_healthy: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "uptime": self.uptime,
            "successRate": self.success_rate,
            "avgRefreshInterval": self.avg_refresh_interval,
            "nextRefresh": self.next_refresh,
            "isHealthy": self.is_healthy,
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
