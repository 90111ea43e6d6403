"""Runner plugin entry point.

The runner loads the plugin by calling :func:`init` with the whole script
configuration and its event emitter::

    import plugin

    plugin.init(script_config, events)

All reporters created through :func:`init` share :data:`INSTRUMENTS`, so
loading the plugin twice in one process reuses the same instruments.
"""

from __future__ import annotations

from typing import Any, Mapping

from metric.instruments import InstrumentRegistry
from plugin.config import ConfigurationError, ReporterConfig, extract_plugin_config, resolve
from plugin.reporter import Notifier, PrometheusReporter

INSTRUMENTS = InstrumentRegistry()


def init(script_config: Mapping[str, Any] | None, events: Notifier) -> PrometheusReporter:
    """Validate ``plugins.prometheus`` and subscribe a reporter to ``events``."""
    raw = extract_plugin_config(script_config)
    return PrometheusReporter(instruments=INSTRUMENTS).initialize(raw, events)


__all__ = [
    "INSTRUMENTS",
    "ConfigurationError",
    "Notifier",
    "PrometheusReporter",
    "ReporterConfig",
    "init",
    "resolve",
]
