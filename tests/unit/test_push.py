"""Tests for the fire-and-forget Pushgateway client and the collector."""

from __future__ import annotations

from threading import Event
import time
from urllib.error import URLError

from prometheus_client import CollectorRegistry
import pytest

import client.prometheus
from client.prometheus import PushGatewayClient
from metric.collector import MetricCollector
from metric.instruments import InstrumentRegistry


def test_push_is_sent_with_job_and_grouping_key(push_client: PushGatewayClient, push_recorder) -> None:
    registry = CollectorRegistry()

    push_client.push(job="artillery", registry=registry, grouping_key={"testName": "smoke"})

    assert push_client.join(timeout=5)
    assert push_recorder.calls == [
        {
            "gateway": "http://pushgateway.test:9091",
            "job": "artillery",
            "registry": registry,
            "grouping_key": {"testName": "smoke"},
        }
    ]


def test_push_does_not_wait_for_the_gateway(monkeypatch: pytest.MonkeyPatch) -> None:
    release = Event()
    started = Event()

    def slow_push(**kwargs) -> None:
        started.set()
        release.wait(timeout=5)

    monkeypatch.setattr(client.prometheus, "pushadd_to_gateway", slow_push)
    push_client = PushGatewayClient("http://pushgateway.test:9091")

    push_client.push(job="artillery", registry=CollectorRegistry())

    assert started.wait(timeout=5)
    assert push_client.join(timeout=0.01) is False
    release.set()
    assert push_client.join(timeout=5)


def test_failed_push_is_logged_and_dropped(
    push_client: PushGatewayClient, push_recorder, capsys: pytest.CaptureFixture[str]
) -> None:
    push_recorder.error = URLError("connection refused")

    push_client.push(job="artillery", registry=CollectorRegistry())

    assert push_client.join(timeout=5)
    assert push_client.attempts == 1
    assert push_client.failures == 1
    assert len(push_recorder.calls) == 1
    assert "Error pushing metrics to push gateway" in capsys.readouterr().out


def test_identical_pushes_are_not_coalesced(push_client: PushGatewayClient, push_recorder) -> None:
    collector = MetricCollector(push_client, job="artillery")
    registry = InstrumentRegistry()
    registry.set_default_labels({"testName": "smoke"})

    collector.push(registry)
    collector.push(registry)

    assert push_client.join(timeout=5)
    assert push_client.attempts == 2
    assert len(push_recorder.calls) == 2
    assert all(call["job"] == "artillery" for call in push_recorder.calls)
    assert all(call["grouping_key"] == {"testName": "smoke"} for call in push_recorder.calls)
    assert all(call["registry"] is registry.get_registry() for call in push_recorder.calls)


def test_close_waits_for_in_flight_pushes(monkeypatch: pytest.MonkeyPatch) -> None:
    delivered = Event()

    def slow_push(**kwargs) -> None:
        time.sleep(0.2)
        delivered.set()

    monkeypatch.setattr(client.prometheus, "pushadd_to_gateway", slow_push)
    push_client = PushGatewayClient("http://pushgateway.test:9091")

    push_client.push(job="artillery", registry=CollectorRegistry())

    assert push_client.close(timeout=5)
    assert delivered.is_set()


def test_close_is_bounded_by_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    release = Event()
    monkeypatch.setattr(client.prometheus, "pushadd_to_gateway", lambda **kwargs: release.wait(5))
    push_client = PushGatewayClient("http://pushgateway.test:9091")

    push_client.push(job="artillery", registry=CollectorRegistry())

    assert push_client.close(timeout=0.05) is False
    release.set()
    assert push_client.join(timeout=5)


def test_push_after_close_is_dropped(push_client: PushGatewayClient, push_recorder) -> None:
    push_client.close()

    push_client.push(job="artillery", registry=CollectorRegistry())

    assert push_client.join(timeout=5)
    assert push_client.attempts == 0
    assert push_recorder.calls == []
