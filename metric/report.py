"""Translate runner result batches into instrument observations.

A runner emits one report per reporting period. Two field layouts exist:

* legacy: ``_entries``, ``_errors``, ``_pendingRequests``, ``_scenariosAvoided``
* current: ``latencies``, ``errors``, ``pendingRequests``, ``scenariosAvoided``

:func:`normalize` resolves the layout once and returns a :class:`StatsReport`.
:func:`translate` records every observation of that report. All values are
converted to seconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from logger import log
from metric.instruments import Instruments
from monitor import measurement

UNITS_PER_SECOND = {
    "ns": 1e9,
    "us": 1e6,
    "ms": 1e3,
    "s": 1.0,
}


class ReportFormatError(Exception):
    """Raised when a result batch cannot be read."""


class ReportShape(Enum):
    LEGACY = ("_entries", "_errors", "_pendingRequests", "_scenariosAvoided")
    CURRENT = ("latencies", "errors", "pendingRequests", "scenariosAvoided")

    @property
    def latencies_key(self) -> str:
        return self.value[0]

    @property
    def errors_key(self) -> str:
        return self.value[1]

    @property
    def pending_requests_key(self) -> str:
        return self.value[2]

    @property
    def scenarios_avoided_key(self) -> str:
        return self.value[3]

    @classmethod
    def detect(cls, raw: Mapping[str, Any]) -> ReportShape:
        if cls.LEGACY.latencies_key in raw or cls.LEGACY.errors_key in raw:
            return cls.LEGACY
        return cls.CURRENT


@dataclass(frozen=True, slots=True)
class LatencyRecord:
    timestamp: Any
    request_id: Any
    latency: float
    status_code: Any
    path: str
    timings: Mapping[str, float] | None = None

    @classmethod
    def from_entry(cls, entry: Any) -> LatencyRecord:
        if isinstance(entry, (str, bytes)) or not hasattr(entry, "__getitem__"):
            raise ReportFormatError(f"Latency record must be a sequence, got {entry!r}")
        try:
            latency = float(entry[measurement.LATENCY])
            record = cls(
                timestamp=entry[measurement.TIMESTAMP],
                request_id=entry[measurement.REQUEST_ID],
                latency=latency,
                status_code=entry[measurement.STATUS_CODE],
                path=entry[measurement.PATH],
                timings=entry[measurement.TIMINGS] if len(entry) > measurement.TIMINGS else None,
            )
        except (IndexError, KeyError, TypeError, ValueError) as exc:
            raise ReportFormatError(f"Malformed latency record {entry!r}: {exc}") from exc
        if record.timings is None:
            return record
        if not isinstance(record.timings, Mapping):
            raise ReportFormatError(f"Phase timings must be a mapping, got {record.timings!r}")
        try:
            timings = {
                str(phase): float(duration)
                for phase, duration in record.timings.items()
                if duration is not None
            }
        except (TypeError, ValueError) as exc:
            raise ReportFormatError(f"Malformed phase timings {record.timings!r}: {exc}") from exc
        return replace(record, timings=timings)


@dataclass(slots=True)
class StatsReport:
    latencies: list[LatencyRecord] = field(default_factory=list)
    errors: dict[str, Any] = field(default_factory=dict)
    pending_requests: int = 0
    scenarios_avoided: int = 0


def _pick(raw: Mapping[str, Any], shape: ReportShape, key: str, fallback: str) -> Any:
    value = raw.get(key)
    if value is None and shape is ReportShape.LEGACY:
        value = raw.get(fallback)
    return value


def normalize(raw: Mapping[str, Any] | StatsReport) -> StatsReport:
    """Resolve a raw runner report into the canonical :class:`StatsReport`."""
    if isinstance(raw, StatsReport):
        return raw
    if not isinstance(raw, Mapping):
        raise ReportFormatError(f"Report must be a mapping, got {type(raw).__name__}")

    shape = ReportShape.detect(raw)
    current = ReportShape.CURRENT
    entries = _pick(raw, shape, shape.latencies_key, current.latencies_key) or []
    errors = _pick(raw, shape, shape.errors_key, current.errors_key) or {}
    pending = _pick(raw, shape, shape.pending_requests_key, current.pending_requests_key)
    avoided = _pick(raw, shape, shape.scenarios_avoided_key, current.scenarios_avoided_key)

    if not isinstance(errors, Mapping):
        raise ReportFormatError(f"Report errors must be a mapping, got {errors!r}")

    try:
        pending_requests = int(pending or 0)
        scenarios_avoided = int(avoided or 0)
    except (TypeError, ValueError) as exc:
        raise ReportFormatError(f"Malformed runner counters: {exc}") from exc

    return StatsReport(
        latencies=[LatencyRecord.from_entry(entry) for entry in entries],
        errors=dict(errors),
        pending_requests=pending_requests,
        scenarios_avoided=scenarios_avoided,
    )


def _error_increments(errors: Mapping[str, Any]) -> list[tuple[str, int]]:
    # {"a": "TIMEOUT"} names the kind in the value; {"ETIMEDOUT": 3} counts it.
    increments: list[tuple[str, int]] = []
    for key, value in errors.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            increments.append((str(value), 1))
        elif value > 0:
            increments.append((str(key), int(value)))
    return increments


def translate(
    report: Mapping[str, Any] | StatsReport,
    instruments: Instruments,
    latency_unit: str = "ns",
) -> StatsReport:
    """Record every observation of ``report`` and return its canonical form."""
    try:
        divisor = UNITS_PER_SECOND[latency_unit]
    except KeyError:
        raise ReportFormatError(f"Unknown latency unit '{latency_unit}'") from None

    canonical = normalize(report)

    for record in canonical.latencies:
        instruments.request_duration.labels(
            path=record.path,
            status_code=record.status_code,
        ).observe(record.latency / divisor)

        for phase, duration in (record.timings or {}).items():
            instruments.connection_timings.labels(
                path=record.path,
                status_code=record.status_code,
                phase=phase,
            ).observe(duration / divisor)

    for kind, amount in _error_increments(canonical.errors):
        instruments.client_errors.labels(error=kind).inc(amount)

    log.debug(
        f"Translated report: latencies={len(canonical.latencies)} "
        f"errors={len(canonical.errors)}"
    )
    return canonical
