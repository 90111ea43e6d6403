"""Central metric names, label names and runner stat fields."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

# Positions inside one runner latency record.
TIMESTAMP = 0
REQUEST_ID = 1
LATENCY = 2
STATUS_CODE = 3
PATH = 4
TIMINGS = 5


@dataclass(frozen=True, slots=True)
class MetricName:
    """Name, help text and label names of one emitted instrument."""

    name: str
    help: str
    labelnames: tuple[str, ...]


REQUEST_DURATION = MetricName(
    name="request_duration_seconds",
    help="Duration of outgoing requests in seconds",
    labelnames=("path", "status_code"),
)

CONNECTION_TIMINGS = MetricName(
    name="connection_timings_seconds",
    help="Duration of each request phase (dns, connect, firstByte, ...) in seconds",
    labelnames=("path", "status_code", "phase"),
)

CLIENT_ERRORS = MetricName(
    name="clientErrors",
    help="Counter of client errors like TIMEOUT/EAI_AGAIN",
    labelnames=("error",),
)

RUNNER_STATS = MetricName(
    name="runnerStats",
    help="runner stats",
    labelnames=("field",),
)


@dataclass(frozen=True, slots=True)
class RunnerStatFields:
    """Values used for the ``field`` label of the runner stats gauge."""

    DEFAULT_CPU: ClassVar[str] = "cpu"
    DEFAULT_MEMORY: ClassVar[str] = "memory"
    DEFAULT_PENDING_REQUESTS: ClassVar[str] = "pending_requests"
    DEFAULT_AVOIDED_SCENARIOS: ClassVar[str] = "avoided_scenarios"

    cpu: str = DEFAULT_CPU
    memory: str = DEFAULT_MEMORY
    pending_requests: str = DEFAULT_PENDING_REQUESTS
    avoided_scenarios: str = DEFAULT_AVOIDED_SCENARIOS
