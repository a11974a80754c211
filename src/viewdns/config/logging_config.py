from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

_TAGS = {
    logging.DEBUG: "[debug]",
    logging.INFO: "[info]",
    logging.WARNING: "[warn]",
    logging.ERROR: "[error]",
    logging.CRITICAL: "[crit]",
}


class SyslogFormatter(logging.Formatter):
    """Formatter for syslog output without timestamps (syslog adds its own)."""

    def format(self, record):
        record.level_tag = _TAGS.get(record.levelno, f"[lvl{record.levelno}]")
        return f"viewdns: {record.level_tag} {record.name}: {record.getMessage()}"


class BracketLevelFormatter(logging.Formatter):
    """Custom formatter that adds bracketed lowercase level tags and UTC timestamps."""

    def formatTime(self, record, datefmt=None):
        """Format time as UTC ISO-8601 with Z suffix."""
        return datetime.fromtimestamp(record.created, timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        )

    def format(self, record):
        """Add level_tag attribute and format the record."""
        record.level_tag = _TAGS.get(record.levelno, f"[lvl{record.levelno}]")
        return super().format(record)


def init_logging(cfg: Optional[Dict[str, Any]], *, debug: bool = False) -> None:
    """
    Initialize logging configuration based on the provided config.

    Args:
        cfg: Logging configuration dictionary with optional keys:
            - level: debug, info, warn, error, crit (default: info)
            - include_date: prefix lines with a UTC timestamp (default: True)
            - stderr: boolean to log to stderr (default: True)
            - file: string path to log file (optional)
            - syslog: boolean or dict with address/facility (optional)
        debug: When True the level is forced to debug regardless of cfg.

    Example config:
        {
            "level": "info",
            "include_date": False,
            "file": "./viewdns.log",
        }
    """
    cfg = cfg or {}

    level_str = "debug" if debug else str(cfg.get("level", "info")).lower()
    level = _LEVELS.get(level_str, logging.INFO)

    if cfg.get("include_date", True):
        fmt = "%(asctime)s %(level_tag)s %(name)s: %(message)s"
    else:
        fmt = "%(level_tag)s %(name)s: %(message)s"
    formatter = BracketLevelFormatter(fmt=fmt)

    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for h in list(root.handlers):
        root.removeHandler(h)

    if cfg.get("stderr", True):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        root.addHandler(stderr_handler)

    file_path = cfg.get("file")
    if isinstance(file_path, str) and file_path.strip():
        path = os.path.abspath(os.path.expanduser(file_path.strip()))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    syslog_cfg = cfg.get("syslog")
    if syslog_cfg:
        try:
            if isinstance(syslog_cfg, dict):
                address = syslog_cfg.get("address", "/dev/log")
                facility = getattr(
                    logging.handlers.SysLogHandler,
                    f"LOG_{str(syslog_cfg.get('facility', 'USER')).upper()}",
                    logging.handlers.SysLogHandler.LOG_USER,
                )
            else:
                address = "/dev/log"
                facility = logging.handlers.SysLogHandler.LOG_USER

            syslog_handler = logging.handlers.SysLogHandler(
                address=address, facility=facility
            )
            syslog_handler.setFormatter(SyslogFormatter())
            root.addHandler(syslog_handler)
        except (OSError, ValueError) as e:  # pragma: no cover - environment-specific
            root.warning("Failed to configure syslog: %s", e)

    logging.captureWarnings(True)
