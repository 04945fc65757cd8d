# src/models/fx_rate_record.py

"""Persisted exchange-rate observation."""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass
class FxRateRecord:
    """One stored rate for a currency pair on a given day."""

    base_currency: str
    quote_currency: str
    rate: float
    as_of_date: date
    source: str
    created_at: datetime
