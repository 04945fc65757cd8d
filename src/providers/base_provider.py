# src/providers/base_provider.py

"""Abstract base class for all FX rate providers."""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.models.rate_snapshot import ProviderResult


class ProviderError(Exception):
    """Raised when a provider cannot produce a usable rate table."""


class BaseRateProvider(ABC):
    """Uniform ``fetch(base) -> ProviderResult`` contract over a data source.

    Network-backed providers share one curl_cffi session, a bounded
    retry loop, a cloudscraper fallback transport and a circuit
    breaker so a dead upstream is skipped instead of hammered.
    """

    def __init__(self, provider_id: str, label: str) -> None:
        self.provider_id = provider_id
        self.label = label
        self.logger = logging.getLogger(
            f"pharma_fx.providers.{provider_id}"
        )
        self.settings = Settings()
        self._session: curl_requests.Session | None = None
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0

    @property
    def session(self) -> curl_requests.Session:
        """curl_cffi session, opened on first network use."""
        if self._session is None:
            self._session = curl_requests.Session(
                impersonate=self.settings.IMPERSONATE_BROWSER
            )
        return self._session

    # ── Circuit breaker ──────────────────────────────────

    def _check_circuit(self) -> bool:
        """Return True if the circuit breaker blocks this request.

        After CIRCUIT_BREAKER_COOLDOWN seconds the breaker enters
        a half-open state, allowing a single trial request through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.time() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            self.logger.info(
                "[%s] Circuit breaker half-open after %.0fs",
                self.provider_id,
                elapsed,
            )
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        self._consecutive_failures = 0
        self._circuit_open = False
        self._circuit_opened_at = 0.0

    def _record_failure(self) -> None:
        """Track failure and open circuit breaker if needed."""
        self._consecutive_failures += 1
        if (
            self._consecutive_failures
            >= self.settings.CIRCUIT_BREAKER_THRESHOLD
        ):
            self._circuit_open = True
            self._circuit_opened_at = time.time()
            self.logger.error(
                "[%s] Circuit breaker opened after %d "
                "consecutive failures",
                self.provider_id,
                self._consecutive_failures,
            )

    # ── Transport ────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        return dict(self.settings.DEFAULT_HEADERS)

    def _fetch_text(self, url: str) -> str:
        """GET *url* with retries, falling back to cloudscraper.

        Raises ``ProviderError`` when every transport fails or the
        circuit breaker is open.
        """
        if self._check_circuit():
            raise ProviderError(
                f"{self.label} circuit breaker open"
            )

        headers = self._headers()
        last_error = "no response"
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    headers=headers,
                    timeout=self._request_timeout,
                )
            except Exception as exc:
                last_error = str(exc)
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.provider_id,
                    attempt + 1,
                    exc,
                )
                time.sleep(
                    self.settings.REQUEST_DELAY * (attempt + 1)
                )
                continue
            if resp.status_code == 200:
                self._record_success()
                return str(resp.text)
            last_error = f"HTTP {resp.status_code}"
            self.logger.warning(
                "[%s] HTTP %d on attempt %d",
                self.provider_id,
                resp.status_code,
                attempt + 1,
            )
            # Client errors (bad key, unsupported base) will not heal on retry
            if 400 <= resp.status_code < 500 and resp.status_code != 429:
                break
            time.sleep(self.settings.REQUEST_DELAY * (attempt + 1))

        self.logger.info(
            "[%s] curl_cffi exhausted, falling back to cloudscraper",
            self.provider_id,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            fallback_resp: Any = scraper.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
            if fallback_resp.status_code == 200:
                self._record_success()
                return str(fallback_resp.text)
            last_error = f"HTTP {fallback_resp.status_code}"
        except Exception as exc:
            last_error = str(exc)
            self.logger.warning(
                "[%s] cloudscraper fallback also failed: %s",
                self.provider_id,
                exc,
            )

        self._record_failure()
        raise ProviderError(f"{self.label} API failed: {last_error}")

    def _fetch_json(self, url: str) -> dict[str, Any]:
        """Fetch *url* and decode a JSON object body."""
        text = self._fetch_text(url)
        try:
            data: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ProviderError(
                f"{self.label} returned invalid JSON: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.label} returned unexpected payload"
            )
        return data

    # ── Parsing helpers ──────────────────────────────────

    @staticmethod
    def clean_rates(raw: Any) -> dict[str, float]:
        """Keep only currency codes with strictly positive numeric rates."""
        if not isinstance(raw, dict):
            return {}
        rates: dict[str, float] = {}
        for code, value in raw.items():
            if isinstance(value, bool):
                continue
            try:
                rate = float(value)
            except (TypeError, ValueError):
                continue
            if rate > 0 and rate != float("inf"):
                rates[str(code).upper()] = rate
        return rates

    @abstractmethod
    def fetch(self, base: str) -> ProviderResult:
        """Fetch the full rate table for *base*.

        Raises ``ProviderError`` on any failure.
        """
        ...
