# src/config/logging_config.py

"""Per-run timestamped logging configuration for pharma_fx.

Each process launch creates a dedicated log file inside ``logs/``
(e.g. ``logs/run_20261019_060000.log``) that receives every
``pharma_fx.*`` record at DEBUG. The console only shows WARNING and
above unless ``PHARMA_FX_LOG_LEVEL`` or ``--verbose`` lowers it, which
matters when ``--schedule`` runs unattended for days and the log file
is the only trace of a failed refresh.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(name: str | None, default: int = logging.WARNING) -> int:
    """Map a level name such as ``"info"`` to its numeric value.

    Unknown or empty names fall back to *default*.
    """
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(console_level: str | None = None) -> Path:
    """Attach the per-run file handler and the console handler.

    Args:
        console_level: Level name for the stderr handler. Defaults to
            ``Settings.CONSOLE_LOG_LEVEL``.

    Returns:
        The path of the log file for this run.
    """
    Settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    log_file = (
        Settings.LOGS_DIR
        / f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    )

    pharma_logger = logging.getLogger("pharma_fx")
    pharma_logger.setLevel(logging.DEBUG)

    # Repeated calls (tests, re-entry) keep the first run's handlers
    if pharma_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(
        resolve_level(console_level or Settings.CONSOLE_LOG_LEVEL)
    )
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    pharma_logger.addHandler(file_handler)
    pharma_logger.addHandler(console_handler)
    pharma_logger.info("Logging initialised, log file: %s", log_file)
    return log_file
