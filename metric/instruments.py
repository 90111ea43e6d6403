"""Get-or-create registry of the reporter's Prometheus instruments."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Sequence, Union

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from logger import log
from metric.collector import PushableMetric
from monitor.measurement import (
    CLIENT_ERRORS,
    CONNECTION_TIMINGS,
    REQUEST_DURATION,
    RUNNER_STATS,
    MetricName,
)

Instrument = Union[Histogram, Counter, Gauge]


class RegistrationConflictError(Exception):
    """Raised when a metric name is already registered as another kind."""


class MetricKind(Enum):
    HISTOGRAM = "histogram"
    COUNTER = "counter"
    GAUGE = "gauge"


_FACTORIES = {
    MetricKind.HISTOGRAM: Histogram,
    MetricKind.COUNTER: Counter,
    MetricKind.GAUGE: Gauge,
}


class InstrumentRegistry(PushableMetric):
    """Instruments keyed by name on one ``CollectorRegistry``.

    Asking twice for the same name returns the instrument created the first
    time, so plugin re-initialisation in the same process never registers a
    duplicate. Default labels are pushed as the grouping key and therefore
    end up on every pushed series.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()
        self._lock = Lock()
        self._instruments: dict[str, tuple[MetricKind, Instrument]] = {}
        self._default_labels: dict[str, str] = {}

    def get_or_create(
        self,
        kind: MetricKind,
        name: str,
        help: str,
        labelnames: Sequence[str] = (),
        buckets: Sequence[float] | None = None,
    ) -> Instrument:
        with self._lock:
            existing = self._instruments.get(name)
            if existing is not None:
                existing_kind, instrument = existing
                if existing_kind is not kind:
                    raise RegistrationConflictError(
                        f"Metric '{name}' is already registered as a "
                        f"{existing_kind.value}, not a {kind.value}"
                    )
                log.debug(f"Reusing {kind.value} '{name}'")
                return instrument

            kwargs = {"labelnames": tuple(labelnames), "registry": self._registry}
            if kind is MetricKind.HISTOGRAM and buckets is not None:
                kwargs["buckets"] = tuple(buckets)
            instrument = _FACTORIES[kind](name, help, **kwargs)
            self._instruments[name] = (kind, instrument)
            log.debug(f"Registered {kind.value} '{name}'")
            return instrument

    def names(self) -> list[str]:
        return list(self._instruments)

    def set_default_labels(self, labels: dict[str, str | None]) -> None:
        self._default_labels = {
            str(key): str(value)
            for key, value in labels.items()
            if value is not None and str(value) != ""
        }

    @property
    def default_labels(self) -> dict[str, str]:
        return dict(self._default_labels)

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def get_registry(self) -> CollectorRegistry:
        return self.registry

    def get_grouping_key(self) -> dict[str, str]:
        return self.default_labels


@dataclass(frozen=True)
class Instruments:
    request_duration: Histogram
    connection_timings: Histogram
    client_errors: Counter
    runner_stats: Gauge


def _get_or_create(
    registry: InstrumentRegistry,
    kind: MetricKind,
    metric: MetricName,
    buckets: Sequence[float] | None = None,
) -> Instrument:
    return registry.get_or_create(
        kind,
        metric.name,
        metric.help,
        labelnames=metric.labelnames,
        buckets=buckets,
    )


def standard_instruments(
    registry: InstrumentRegistry,
    buckets: Sequence[float],
) -> Instruments:
    """Return the reporter's four instruments, creating them on first use."""
    return Instruments(
        request_duration=_get_or_create(registry, MetricKind.HISTOGRAM, REQUEST_DURATION, buckets),
        connection_timings=_get_or_create(registry, MetricKind.HISTOGRAM, CONNECTION_TIMINGS, buckets),
        client_errors=_get_or_create(registry, MetricKind.COUNTER, CLIENT_ERRORS),
        runner_stats=_get_or_create(registry, MetricKind.GAUGE, RUNNER_STATS),
    )
