"""Tests for the get-or-create instrument registry."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram
import pytest

from metric.instruments import (
    InstrumentRegistry,
    MetricKind,
    RegistrationConflictError,
    standard_instruments,
)
from plugin.config import DEFAULT_BUCKETS


def test_get_or_create_returns_existing_instrument(registry: InstrumentRegistry) -> None:
    first = registry.get_or_create(MetricKind.COUNTER, "widgets", "Widgets made.", ["colour"])
    second = registry.get_or_create(MetricKind.COUNTER, "widgets", "Widgets made.", ["colour"])

    assert first is second
    assert registry.names() == ["widgets"]


def test_kind_mismatch_is_a_conflict(registry: InstrumentRegistry) -> None:
    registry.get_or_create(MetricKind.GAUGE, "depth", "Queue depth.")

    with pytest.raises(RegistrationConflictError, match="gauge"):
        registry.get_or_create(MetricKind.COUNTER, "depth", "Queue depth.")


def test_histogram_buckets_are_applied(registry: InstrumentRegistry) -> None:
    histogram = registry.get_or_create(
        MetricKind.HISTOGRAM, "wait_seconds", "Wait.", ["queue"], buckets=[0.5, 1.0]
    )
    histogram.labels(queue="a").observe(0.7)

    collector = registry.get_registry()
    assert collector.get_sample_value("wait_seconds_bucket", {"queue": "a", "le": "0.5"}) == 0.0
    assert collector.get_sample_value("wait_seconds_bucket", {"queue": "a", "le": "1.0"}) == 1.0
    assert collector.get_sample_value("wait_seconds_bucket", {"queue": "a", "le": "+Inf"}) == 1.0


def test_standard_instruments_are_stable_across_calls(registry: InstrumentRegistry) -> None:
    first = standard_instruments(registry, DEFAULT_BUCKETS)
    second = standard_instruments(registry, DEFAULT_BUCKETS)

    assert first == second
    assert isinstance(first.request_duration, Histogram)
    assert isinstance(first.connection_timings, Histogram)
    assert isinstance(first.client_errors, Counter)
    assert isinstance(first.runner_stats, Gauge)
    assert sorted(registry.names()) == [
        "clientErrors",
        "connection_timings_seconds",
        "request_duration_seconds",
        "runnerStats",
    ]


def test_default_labels_become_the_grouping_key(registry: InstrumentRegistry) -> None:
    registry.set_default_labels({"testName": "smoke", "cluster": None, "testRunId": ""})

    assert registry.get_grouping_key() == {"testName": "smoke"}

    registry.set_default_labels({"testName": "soak"})

    assert registry.default_labels == {"testName": "soak"}
