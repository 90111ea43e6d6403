"""Instruments, report translation and pushing."""

from metric.collector import MetricCollector, PushableMetric
from metric.instruments import (
    InstrumentRegistry,
    Instruments,
    MetricKind,
    RegistrationConflictError,
    standard_instruments,
)
from metric.report import LatencyRecord, ReportFormatError, StatsReport, normalize, translate
from client.prometheus import PushGatewayClient

__all__ = [
    "InstrumentRegistry",
    "Instruments",
    "LatencyRecord",
    "MetricCollector",
    "MetricKind",
    "PushGatewayClient",
    "PushableMetric",
    "RegistrationConflictError",
    "ReportFormatError",
    "StatsReport",
    "normalize",
    "standard_instruments",
    "translate",
]
