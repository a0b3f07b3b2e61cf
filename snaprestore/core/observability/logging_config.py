"""
Logging configuration — set up once by the CLI before a restore.

Every module does ``logger = logging.getLogger(__name__)`` and inherits
this config. Operator-facing progress goes through click, not logging,
so the default console level stays quiet.

Level precedence:
    -v (INFO)  >  SNAPRESTORE_LOG_LEVEL  >  WARNING

A full-detail copy can be written to SNAPRESTORE_LOG_FILE, at
SNAPRESTORE_LOG_FILE_LEVEL (default DEBUG) regardless of the console.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "SNAPRESTORE_LOG_LEVEL"
LOG_FILE_ENV = "SNAPRESTORE_LOG_FILE"
LOG_FILE_LEVEL_ENV = "SNAPRESTORE_LOG_FILE_LEVEL"

# ── Format strings ──────────────────────────────────────────────

_FMT_MINIMAL = "%(message)s"

_FMT_VERBOSE = "%(asctime)s %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


def resolve_level(verbose: bool = False) -> str:
    """Console level for this process."""
    if verbose:
        env_level = os.environ.get(LOG_LEVEL_ENV, "")
        # -v never raises the level above INFO, but DEBUG from env wins
        if _parse_level(env_level) == logging.DEBUG:
            return "DEBUG"
        return "INFO"
    return os.environ.get(LOG_LEVEL_ENV, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ...).
        log_file: Optional path to a log file.
        log_file_level: Separate level for the log file (default DEBUG).
    """
    numeric_level = _parse_level(level)

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level or "DEBUG")
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    logging.raiseExceptions = False


def setup_from_env(verbose: bool = False) -> None:
    """setup_logging() with levels and file taken from the environment."""
    setup_logging(
        level=resolve_level(verbose),
        log_file=os.environ.get(LOG_FILE_ENV) or None,
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
    )


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
