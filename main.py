# main.py

"""Entry point for the pharma_fx rate feed CLI."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("pharma_fx.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    providers = " > ".join(p["label"] for p in Settings.FX_PROVIDERS)

    parser = argparse.ArgumentParser(
        prog="pharma_fx",
        description=(
            "Resilient FX rate acquisition and competitor price feed."
        ),
        epilog=f"Provider fallback chain: {providers}",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--rates",
        nargs="?",
        const=Settings.FX_DEFAULT_BASE,
        default=None,
        metavar="BASE",
        help="Show all rates for a base currency (default: USD).",
    )
    mode.add_argument(
        "--pair",
        nargs=2,
        default=None,
        metavar=("FROM", "TO"),
        help="Show the rate for one currency pair.",
    )
    mode.add_argument(
        "--history",
        nargs=2,
        default=None,
        metavar=("BASE", "QUOTE"),
        help="Show stored rate history for one pair.",
    )
    mode.add_argument(
        "--refresh",
        action="store_true",
        default=False,
        help="Run one FX refresh cycle now and store the rates.",
    )
    mode.add_argument(
        "--schedule",
        action="store_true",
        default=False,
        help="Run the periodic FX refresh scheduler until interrupted.",
    )
    mode.add_argument(
        "--monitor",
        default=None,
        metavar="FILE",
        help="Collect competitor prices for products in a JSON file.",
    )
    mode.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Check the health of external services.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Echo INFO-level log records to the console.",
    )
    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    """Build the services once and run the selected command."""
    from src.cli import runner
    from src.services.service_registry import build_service_registry

    registry = build_service_registry()
    try:
        if args.rates is not None:
            return await runner.cli_rates(
                registry, args.rates, args.output_format
            )
        if args.pair is not None:
            return await runner.cli_pair(
                registry, args.pair[0], args.pair[1], args.output_format
            )
        if args.history is not None:
            return runner.cli_history(
                registry,
                args.history[0],
                args.history[1],
                args.output_format,
            )
        if args.refresh:
            return await runner.run_refresh(registry)
        if args.schedule:
            return await runner.run_scheduler(registry)
        if args.monitor is not None:
            return await runner.run_monitor(
                registry, args.monitor, args.output_format
            )
        return await runner.run_health_check(registry)
    finally:
        registry.close()


def main() -> None:
    """Parse arguments and run one command."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging("INFO" if args.verbose else None)
    logger.info("pharma_fx starting, log file: %s", log_file)

    has_command = any((
        args.rates is not None,
        args.pair is not None,
        args.history is not None,
        args.refresh,
        args.schedule,
        args.monitor is not None,
        args.health,
    ))
    if not has_command:
        parser.print_help()
        sys.exit(0)

    try:
        exit_code = asyncio.run(_dispatch(args))
    except KeyboardInterrupt:
        logger.info("pharma_fx interrupted")
        exit_code = 130
    except Exception:
        logger.critical("Fatal error", exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
