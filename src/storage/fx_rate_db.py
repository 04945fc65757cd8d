# src/storage/fx_rate_db.py

"""SQLite-backed history of FX rates and competitor price quotes."""

import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path

from src.config.settings import Settings
from src.models.competitor_quote import CompetitorQuote
from src.models.fx_rate_record import FxRateRecord

logger = logging.getLogger("pharma_fx.fx_rate_db")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS fx_rates (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    base_currency  TEXT    NOT NULL,
    quote_currency TEXT    NOT NULL,
    rate           REAL    NOT NULL CHECK (rate > 0),
    as_of_date     TEXT    NOT NULL,
    source         TEXT    NOT NULL,
    created_at     TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_fx_rates_pair_date
    ON fx_rates(base_currency, quote_currency, created_at);

CREATE TABLE IF NOT EXISTS competitor_prices (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id   TEXT    NOT NULL,
    competitor   TEXT    NOT NULL,
    price        REAL    NOT NULL,
    currency     TEXT    NOT NULL DEFAULT 'USD',
    availability TEXT    NOT NULL,
    confidence   INTEGER NOT NULL,
    source_url   TEXT    NOT NULL DEFAULT '',
    collected_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_competitor_product
    ON competitor_prices(product_id, competitor, collected_at);
"""

_RATE_COLUMNS = (
    "base_currency, quote_currency, rate, as_of_date, source, created_at"
)


def _row_to_record(row: tuple[object, ...]) -> FxRateRecord:
    return FxRateRecord(
        base_currency=str(row[0]),
        quote_currency=str(row[1]),
        rate=float(row[2]),  # type: ignore[arg-type]
        as_of_date=date.fromisoformat(str(row[3])),
        source=str(row[4]),
        created_at=datetime.fromisoformat(str(row[5])),
    )


class FxRateDB:
    """SQLite-backed store for rate records and competitor quotes."""

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.FX_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("FxRateDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── FX rates ─────────────────────────────────────────

    def record_rates(self, records: list[FxRateRecord]) -> int:
        """Insert rate records; non-positive rates are skipped.

        Returns the number of rows inserted.
        """
        rows = [
            (
                r.base_currency,
                r.quote_currency,
                r.rate,
                r.as_of_date.isoformat(),
                r.source,
                r.created_at.isoformat(),
            )
            for r in records
            if r.rate > 0
        ]
        self._conn.executemany(
            f"INSERT INTO fx_rates ({_RATE_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            rows,
        )
        self._conn.commit()
        if rows:
            logger.info("Recorded %d FX rate rows", len(rows))
        return len(rows)

    def get_fx_rates(
        self,
        base_currency: str | None = None,
        quote_currency: str | None = None,
        limit: int = 100,
    ) -> list[FxRateRecord]:
        """Return stored rates, newest first, optionally filtered by pair."""
        clauses: list[str] = []
        params: list[object] = []
        if base_currency:
            clauses.append("base_currency = ?")
            params.append(base_currency.upper())
        if quote_currency:
            clauses.append("quote_currency = ?")
            params.append(quote_currency.upper())
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        params.append(limit)
        rows = self._conn.execute(
            f"SELECT {_RATE_COLUMNS} FROM fx_rates {where}"
            "ORDER BY created_at DESC, id DESC LIMIT ?",
            params,
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def get_fx_rate_latest(
        self, base_currency: str, quote_currency: str,
    ) -> FxRateRecord | None:
        """Most recent stored rate for one pair, or ``None``."""
        latest = self.get_fx_rates(
            base_currency, quote_currency, limit=1
        )
        return latest[0] if latest else None

    # ── Competitor prices ────────────────────────────────

    def record_competitor_quotes(
        self, quotes: list[CompetitorQuote],
    ) -> int:
        """Append priced quotes; quotes without a price are not stored."""
        rows = [
            (
                q.product_id,
                q.competitor,
                q.price,
                q.currency,
                q.availability,
                q.confidence,
                q.source_url,
                q.collected_at.isoformat(),
            )
            for q in quotes
            if q.price is not None
        ]
        self._conn.executemany(
            "INSERT INTO competitor_prices "
            "(product_id, competitor, price, currency, availability, "
            " confidence, source_url, collected_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            rows,
        )
        self._conn.commit()
        if rows:
            logger.info(
                "Recorded %d competitor quotes", len(rows),
            )
        return len(rows)

    def get_competitor_prices(
        self,
        product_id: str | None = None,
        competitor: str | None = None,
    ) -> list[CompetitorQuote]:
        """Stored quotes, newest first, optionally filtered."""
        clauses: list[str] = []
        params: list[object] = []
        if product_id:
            clauses.append("product_id = ?")
            params.append(product_id)
        if competitor:
            clauses.append("competitor = ?")
            params.append(competitor)
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        rows = self._conn.execute(
            "SELECT product_id, competitor, price, currency, "
            "       availability, confidence, source_url, collected_at "
            f"FROM competitor_prices {where}"
            "ORDER BY collected_at DESC, id DESC",
            params,
        ).fetchall()
        return [
            CompetitorQuote(
                product_id=r[0],
                competitor=r[1],
                price=r[2],
                currency=r[3],
                availability=r[4],
                confidence=r[5],
                source_url=r[6],
                collected_at=datetime.fromisoformat(r[7]),
            )
            for r in rows
        ]

    def get_competitor_analysis(
        self, product_id: str,
    ) -> dict[str, object] | None:
        """Min / max / avg price per competitor plus the overall band."""
        rows = self._conn.execute(
            "SELECT competitor, MIN(price), MAX(price), "
            "       AVG(price), COUNT(id) "
            "FROM competitor_prices WHERE product_id = ? "
            "GROUP BY competitor ORDER BY competitor",
            (product_id,),
        ).fetchall()
        if not rows:
            return None
        overall = self._conn.execute(
            "SELECT MIN(price), MAX(price), AVG(price), COUNT(id) "
            "FROM competitor_prices WHERE product_id = ?",
            (product_id,),
        ).fetchone()
        return {
            "product_id": product_id,
            "min": overall[0],
            "max": overall[1],
            "avg": round(overall[2], 2),
            "count": overall[3],
            "competitors": {
                r[0]: {
                    "min": r[1],
                    "max": r[2],
                    "avg": round(r[3], 2),
                    "count": r[4],
                }
                for r in rows
            },
        }
