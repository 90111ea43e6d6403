"""Centralised reporter logger.

Usage
-----
::

    from logger import log

    log.info("Pushgateway reporter ready")
    log.debug("observed 120 latencies")
    log.warn("Push to gateway failed")
    log.error("The configuration parameter testName is required.")

Log levels (lowest → highest):
    DEBUG < INFO < WARN < ERROR < SILENT

The initial level comes from the ``REPORTER_LOG_LEVEL`` environment
variable and can be changed at runtime with :func:`configure` (the plugin
does so when its configuration carries ``logLevel``).
"""

from __future__ import annotations

from datetime import datetime, timezone
import os

_LEVELS = {
    "DEBUG": 0,
    "INFO": 1,
    "WARN": 2,
    "ERROR": 3,
    "SILENT": 4,
}

_PREFIX = "prometheus"


def parse_level(level: str) -> str:
    """Return the canonical name of ``level`` or raise ``ValueError``."""
    name = str(level).strip().upper()
    if name not in _LEVELS:
        raise ValueError(
            f"Invalid log level '{level}'. "
            f"Choose from: {', '.join(_LEVELS)}"
        )
    return name


class Logger:
    """Level-filtered logger that writes plugin-prefixed lines to stdout."""

    def __init__(self, level: str = "INFO") -> None:
        self.set_level(level)

    @property
    def level(self) -> str:
        return self._level_name

    def set_level(self, level: str) -> None:
        level = parse_level(level)
        self._level = _LEVELS[level]
        self._level_name = level

    def _log(self, tag: str, msg: str) -> None:
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
        print(f"{ts} [{_PREFIX}] [{tag}] {msg}")

    def debug(self, msg: str) -> None:
        if self._level <= _LEVELS["DEBUG"]:
            self._log("DEBUG", msg)

    def info(self, msg: str) -> None:
        if self._level <= _LEVELS["INFO"]:
            self._log("INFO", msg)

    def warn(self, msg: str) -> None:
        if self._level <= _LEVELS["WARN"]:
            self._log("WARN", msg)

    def error(self, msg: str) -> None:
        if self._level <= _LEVELS["ERROR"]:
            self._log("ERROR", msg)


ENV_LOG_LEVEL = "REPORTER_LOG_LEVEL"


def _initial_level() -> str:
    try:
        return parse_level(os.environ.get(ENV_LOG_LEVEL, "INFO"))
    except ValueError as exc:
        print(f"[{_PREFIX}] [WARN] Ignoring {ENV_LOG_LEVEL}: {exc}")
        return "INFO"


# Singleton – import and use directly: from logger import log
log = Logger(_initial_level())


def configure(level: str) -> None:
    """Reconfigure the global log level."""
    log.set_level(level)
