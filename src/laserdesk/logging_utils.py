"""Logging setup for the import and report commands.

Two logs are written under ``paths.logs_dir``:
  - system.log: every ``laserdesk.*`` module logger, machine-friendly format
  - import_log.txt: the operator-facing import transcript (per-file summaries,
    ghost lists), plain messages

If a file handler cannot be attached, console logging keeps working.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, Optional

from .config import LaserdeskConfig


SYSTEM_FMT = "[%(asctime)s] [%(levelname)s] %(message)s"
HUMAN_FMT = "[%(asctime)s] %(message)s"
HUMAN_DATEFMT = "%H:%M:%S"

ROOT_LOGGER = "laserdesk"
USER_LOGGER = "laserdesk.user"


def _ensure_logs_dir(config: Optional[LaserdeskConfig]) -> Path:
    logs_dir = Path(config.paths.logs_dir if config is not None else "logs").expanduser().resolve()
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def _safe_add_file_handler(logger: logging.Logger, path: Path, formatter: logging.Formatter, level: int) -> None:
    try:
        fh = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        logger.warning("[WARNING] Failed to attach file handler %s (%s)", str(path), exc)
        return
    fh.setLevel(level)
    fh.setFormatter(formatter)
    logger.addHandler(fh)


def get_logger(config: Optional[LaserdeskConfig] = None, level: int = logging.INFO) -> logging.Logger:
    """Attach console + system.log handlers to the package logger.

    Module loggers (``laserdesk.importer``, ``laserdesk.metrics``...) propagate
    here. Calling it again replaces the handlers instead of stacking them.
    """
    logs_dir = _ensure_logs_dir(config)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logger.handlers = []

    formatter = logging.Formatter(SYSTEM_FMT)
    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    _safe_add_file_handler(logger, logs_dir / "system.log", formatter, level)
    return logger


def get_user_logger(config: Optional[LaserdeskConfig] = None) -> logging.Logger:
    """Operator transcript: console and import_log.txt, no level prefix."""
    logs_dir = _ensure_logs_dir(config)
    logger = logging.getLogger(USER_LOGGER)
    logger.setLevel(logging.INFO)
    logger.handlers = []
    logger.propagate = False

    formatter = logging.Formatter(HUMAN_FMT, datefmt=HUMAN_DATEFMT)
    sh = logging.StreamHandler()
    sh.setLevel(logging.INFO)
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    _safe_add_file_handler(logger, logs_dir / "import_log.txt", formatter, logging.INFO)
    return logger


def start_phase_timer(phase_name: str) -> float:
    return time.perf_counter()


def end_phase_timer(phase_name: str, start_time: float, timing_dict: Dict[str, float], user_logger: logging.Logger) -> float:
    """Record the elapsed time of ``phase_name`` and report it."""
    elapsed = time.perf_counter() - float(start_time)
    timing_dict[phase_name] = elapsed
    user_logger.info(f"{phase_name} completed in {elapsed:.2f} seconds")
    return elapsed


def log_system_event(logger: logging.Logger, message: str):
    logger.info("[SYSTEM] %s", message)


def log_warning(logger: logging.Logger, message: str):
    logger.warning("[WARNING] %s", message)


def log_error(logger: logging.Logger, message: str):
    logger.error("[ERROR] %s", message)
