# src/cli/runner.py

"""Headless CLI commands over the FX services."""

import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from src.models.competitor_quote import (
    CompetitorQuote,
    PriceRange,
    ProductSearchTerm,
)
from src.services.service_registry import ServiceRegistry

logger = logging.getLogger("pharma_fx.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _dump_json(payload: object) -> None:
    json.dump(
        payload, sys.stdout, ensure_ascii=False, indent=2, default=str,
    )
    sys.stdout.write("\n")


def load_products(path: Path) -> list[ProductSearchTerm]:
    """Read a JSON list of products to monitor.

    Each entry needs ``productId``, ``searchTerm`` and
    ``expectedPriceRange: {min, max}``; snake_case keys also work.
    Raises ``ValueError`` on malformed input.
    """
    with open(path, encoding="utf-8") as f:
        data: Any = json.load(f)
    if not isinstance(data, list):
        raise ValueError("Product file must contain a JSON list")

    products: list[ProductSearchTerm] = []
    for idx, row in enumerate(data):
        if not isinstance(row, dict):
            raise ValueError(f"Entry {idx} is not an object")
        price_range: Any = row.get(
            "expectedPriceRange", row.get("expected_price_range")
        )
        product_id = row.get("productId", row.get("product_id"))
        if not product_id or not isinstance(price_range, dict):
            raise ValueError(
                f"Entry {idx} needs productId and expectedPriceRange"
            )
        products.append(ProductSearchTerm(
            product_id=str(product_id),
            search_term=str(
                row.get("searchTerm", row.get("search_term", product_id))
            ),
            expected_price_range=PriceRange(
                min=float(price_range["min"]),
                max=float(price_range["max"]),
            ),
        ))
    return products


# ── FX lookups ───────────────────────────────────────────


async def cli_rates(
    registry: ServiceRegistry, base: str | None, output_format: str,
) -> int:
    """Print the full rate table for *base*."""
    result = await registry.fx_service.get_fx_rates_with_fallbacks(base)
    if not result.success:
        _err.print(f"[red]{result.error}[/red]")
        return 1

    _err.print(
        f"[green]✓ {len(result.rates)} rates[/green] "
        f"[dim]source={result.source} cached={result.cached}[/dim]"
    )
    if output_format == "table":
        table = Table(
            title=f"FX rates ({registry.fx_service.normalize_currency(base)})",
            title_style="bold cyan",
        )
        table.add_column("Currency", style="bold")
        table.add_column("Rate", justify="right", style="green")
        for code in sorted(result.rates):
            table.add_row(code, f"{result.rates[code]:,.6f}")
        Console().print(table)
    else:
        _dump_json(dataclasses.asdict(result))
    return 0


async def cli_pair(
    registry: ServiceRegistry,
    from_currency: str,
    to_currency: str,
    output_format: str,
) -> int:
    """Print a single currency-pair rate and its inverse."""
    result = await registry.fx_service.get_currency_rate(
        from_currency, to_currency
    )
    if not result.success:
        _err.print(f"[red]{result.error}[/red]")
        return 1
    if output_format == "table":
        Console().print(
            f"1 {from_currency.upper()} = {result.rate:,.6f} "
            f"{to_currency.upper()}  "
            f"[dim](inverse {result.inverse:,.6f}, "
            f"source={result.source})[/dim]"
        )
    else:
        _dump_json(dataclasses.asdict(result))
    return 0


def cli_history(
    registry: ServiceRegistry,
    base: str,
    quote: str,
    output_format: str,
) -> int:
    """Print stored rate history for one pair."""
    records = registry.db.get_fx_rates(base, quote)
    if not records:
        _err.print("[yellow]No stored rates for that pair.[/yellow]")
        return 1
    if output_format == "table":
        table = Table(
            title=f"{base.upper()}/{quote.upper()} history",
            title_style="bold cyan",
        )
        table.add_column("Date")
        table.add_column("Rate", justify="right", style="green")
        table.add_column("Source", style="magenta")
        table.add_column("Recorded", style="dim")
        for r in records:
            table.add_row(
                r.as_of_date.isoformat(),
                f"{r.rate:,.6f}",
                r.source,
                r.created_at.strftime("%Y-%m-%d %H:%M"),
            )
        Console().print(table)
    else:
        _dump_json([dataclasses.asdict(r) for r in records])
    return 0


# ── Refresh / scheduler ──────────────────────────────────


async def run_refresh(registry: ServiceRegistry) -> int:
    """Run one refresh cycle with the scheduler's retry policy."""
    _err.print("[bold]Refreshing FX rates...[/bold]")
    ok = await registry.scheduler.trigger_immediate_refresh()
    status = registry.scheduler.get_status()
    if ok:
        _err.print(
            f"[green]✓ Refresh succeeded at "
            f"{status.last_refresh_at:%Y-%m-%d %H:%M:%S}[/green]"
        )
        return 0
    _err.print(f"[red]Refresh failed: {status.last_refresh_error}[/red]")
    return 1


async def run_scheduler(
    registry: ServiceRegistry,
    stop_event: asyncio.Event | None = None,
) -> int:
    """Run the refresh scheduler until interrupted."""
    scheduler = registry.scheduler
    if not scheduler.start():
        _err.print(
            "[yellow]Scheduler did not start (disabled?).[/yellow]"
        )
        return 1

    _err.print(
        f"[bold]FX scheduler running[/bold] [dim]every "
        f"{scheduler.config.refresh_interval_hours}h, Ctrl+C to stop[/dim]"
    )
    event = stop_event or asyncio.Event()
    try:
        await event.wait()
    except asyncio.CancelledError:
        logger.info("Scheduler run interrupted")
    finally:
        scheduler.stop()
        await scheduler.wait_for_inflight()
        _dump_json(scheduler.get_status_report())
    return 0


# ── Health / competitors ─────────────────────────────────


async def run_health_check(registry: ServiceRegistry) -> int:
    """Check external services and render a status table."""
    _err.print("[bold]Running external services health check...[/bold]")
    report = await registry.health_checker.check_external_services_health()

    table = Table(
        title="External Services Health",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Service", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    rows = [
        ("fx_rates", report.fx_rates),
        ("competitor_monitoring", report.competitor_monitoring),
    ]
    any_down = False
    for name, health in rows:
        if health.status == "healthy":
            status = "[green]✅ HEALTHY[/green]"
        elif health.status == "degraded":
            status = "[yellow]⚠️  DEGRADED[/yellow]"
        else:
            status = "[red]❌ UNHEALTHY[/red]"
            any_down = True
        latency = (
            f"{health.latency_ms:.0f}ms"
            if health.latency_ms is not None
            else "—"
        )
        table.add_row(name, status, latency, health.error or "")

    Console().print(table)
    return 1 if any_down else 0


def _print_quotes(quotes: list[CompetitorQuote]) -> None:
    table = Table(
        title="Competitor Prices",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Product", style="bold")
    table.add_column("Competitor", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Availability", justify="center")
    table.add_column("Confidence", justify="right")
    table.add_column("Notes", style="dim")
    for q in quotes:
        price = (
            f"{q.currency} {q.price:,.2f}" if q.price is not None else "N/A"
        )
        table.add_row(
            q.product_id,
            q.competitor,
            price,
            q.availability,
            str(q.confidence),
            q.error or "",
        )
    Console().print(table)


async def run_monitor(
    registry: ServiceRegistry, products_file: str, output_format: str,
) -> int:
    """Collect competitor quotes for the products listed in a JSON file."""
    try:
        products = load_products(Path(products_file))
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.error("Cannot read product file: %s", exc)
        _err.print(f"[red]Cannot read product file: {exc}[/red]")
        return 1

    _err.print(
        f"[bold]Monitoring {len(products)} products[/bold] "
        f"[dim]across {len(registry.competitor_monitor.sources)} "
        "competitors[/dim]"
    )
    quotes = await registry.competitor_monitor.monitor_competitor_prices(
        products
    )
    stored = await asyncio.to_thread(
        registry.db.record_competitor_quotes, quotes
    )
    _err.print(f"[dim]Stored {stored} priced quotes[/dim]")

    if output_format == "table":
        _print_quotes(quotes)
    else:
        _dump_json([dataclasses.asdict(q) for q in quotes])
    return 0
