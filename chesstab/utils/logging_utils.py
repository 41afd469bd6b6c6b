# ==============================================================================
# logging_utils.py  –  Console + file logging for chesstab modules
#
# Features:
#   ✔ Console output on stdout, optional timestamped log file
#   ✔ Log directory from CHESSTAB_LOG_DIR, else <repo>/logs
#   ✔ Idempotent: clears handlers before re-adding
# ==============================================================================

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

_FMT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DEFAULT_LEVEL = logging.INFO


def _logs_dir() -> Optional[Path]:
    """Resolve the log directory; ``CHESSTAB_LOG_DIR=""`` disables file output."""
    configured = os.getenv("CHESSTAB_LOG_DIR")
    if configured is None:
        return Path(__file__).resolve().parents[2] / "logs"
    return Path(configured) if configured.strip() else None


def _init_file_handler(
    logs_dir: Path, logger_name: str, fmt: logging.Formatter
) -> Optional[logging.Handler]:
    """Create a timestamped FileHandler, or None if the directory is not writable."""
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d")
        fh = logging.FileHandler(logs_dir / f"{logger_name}_{timestamp}.log", encoding="utf-8")
        fh.setFormatter(fmt)
        return fh
    except OSError:
        logging.getLogger().warning("Cannot write logs to %s", logs_dir)
        return None


def setup_logger(
    name: str,
    level: int = _DEFAULT_LEVEL,
    logs_dir: Union[str, Path, None] = None,
) -> logging.Logger:
    """
    Return a configured `logging.Logger`.

    Parameters
    ----------
    name : str
        Logger name (also used in the log file name).
    level : int
        Logging level (INFO by default, DEBUG when CHESSTAB_DEBUG is set).
    logs_dir : str | Path | None
        Override log directory (default: CHESSTAB_LOG_DIR or <repo>/logs).
    """
    if os.getenv("CHESSTAB_DEBUG", "").strip().lower() in {"1", "true", "yes"}:
        level = logging.DEBUG

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(_FMT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    target_dir = Path(logs_dir) if logs_dir else _logs_dir()
    if target_dir is not None:
        file_handler = _init_file_handler(target_dir, name, formatter)
        if file_handler:
            logger.addHandler(file_handler)

    return logger
