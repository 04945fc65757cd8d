# src/config/settings.py

"""Central configuration for the pharma_fx rate feed."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the pharma_fx rate feed."""

    # --- HTTP ---
    REQUEST_DELAY: float = 1.0          # Base backoff between retries
    REQUEST_TIMEOUT: int = 10           # Seconds before a request times out
    MAX_RETRIES: int = 2                # Attempts per provider call

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 300.0
    FX_PROVIDER_TIMEOUT: float = 30.0   # Ceiling for one provider call

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json, text/xml;q=0.9, */*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
    }

    # --- FX rates ---
    FX_CACHE_TTL: float = 3600.0        # One hour per base currency
    FX_DEFAULT_BASE: str = "USD"
    FX_DEGRADED_LATENCY_MS: float = 5000.0
    FX_TRACKED_BASES: list[str] = ["USD", "EUR", "AOA"]
    FX_TRACKED_CURRENCIES: list[str] = [
        "USD", "EUR", "GBP", "JPY", "AOA",
        "BRL", "CAD", "AUD", "CHF", "CNY",
    ]
    FX_PERSIST_STATIC_RATES: bool = False

    EXCHANGE_RATES_API_KEY: str | None = os.getenv("EXCHANGE_RATES_API_KEY")
    FIXER_API_KEY: str | None = os.getenv("FIXER_API_KEY")
    CURRENCY_LAYER_API_KEY: str | None = os.getenv("CURRENCY_LAYER_API_KEY")

    # Fallback chain, tried top to bottom
    FX_PROVIDERS: list[dict[str, str]] = [
        {
            "id": "exchangerate_api",
            "label": "ExchangeRates-API",
            "provider": "src.providers.exchange_rate_api_provider.ExchangeRateApiProvider",
        },
        {
            "id": "fixer",
            "label": "Fixer",
            "provider": "src.providers.fixer_provider.FixerProvider",
        },
        {
            "id": "currency_layer",
            "label": "CurrencyLayer",
            "provider": "src.providers.currency_layer_provider.CurrencyLayerProvider",
        },
        {
            "id": "ecb",
            "label": "ECB",
            "provider": "src.providers.ecb_provider.EcbProvider",
        },
        {
            "id": "static",
            "label": "Static",
            "provider": "src.providers.static_provider.StaticRateProvider",
        },
    ]

    # --- Refresh scheduler (raw env values, clamped by SchedulerConfig) ---
    FX_REFRESH_INTERVAL_HOURS: str = os.getenv(
        "FX_REFRESH_INTERVAL_HOURS", "6"
    )
    FX_RETRY_ATTEMPTS: str = os.getenv("FX_RETRY_ATTEMPTS", "3")
    FX_RETRY_DELAY_MS: str = os.getenv("FX_RETRY_DELAY_MS", "30000")
    FX_SCHEDULER_ENABLED: str = os.getenv("FX_SCHEDULER_ENABLED", "true")
    FX_SCHEDULER_STARTUP_DELAY: float = 5.0

    # --- Competitor monitoring (simulated feed) ---
    COMPETITOR_DEFAULT_CURRENCY: str = "USD"
    COMPETITOR_HIT_PROBABILITY: float = 0.8
    COMPETITOR_PRICE_VARIANCE: float = 0.2  # +/- share of the midpoint
    COMPETITOR_DELAY_RANGE: tuple[float, float] = (0.5, 1.5)
    COMPETITOR_SOURCES: list[dict[str, str]] = [
        {
            "name": "PharmaCorp",
            "url": "https://pharmacorp.com/search",
        },
        {
            "name": "MediSupply",
            "url": "https://medisupply.com/products",
        },
        {
            "name": "HealthDistribution",
            "url": "https://healthdist.com/catalog",
        },
    ]

    # --- Logging ---
    CONSOLE_LOG_LEVEL: str = os.getenv("PHARMA_FX_LOG_LEVEL", "WARNING")

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"
    FX_DB_PATH: Path = BASE_DIR / "data" / "fx_rates.db"
