"""Shared fixtures for the reporter test-suite."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
from typing import Any, Callable

import pytest

import client.prometheus
from client.prometheus import PushGatewayClient
from metric.instruments import InstrumentRegistry
from monitor.resources import ResourceUsage, SamplingError


class FakeEmitter:
    """Minimal runner event emitter."""

    def __init__(self) -> None:
        self.listeners: dict[str, list[Callable[[Any], Any]]] = defaultdict(list)

    def on(self, event: str, listener: Callable[[Any], Any]) -> "FakeEmitter":
        self.listeners[event].append(listener)
        return self

    def emit(self, event: str, payload: Any) -> None:
        for listener in list(self.listeners[event]):
            listener(payload)


class FakeSampler:
    def __init__(self, usage: ResourceUsage | None = None, error: Exception | None = None) -> None:
        self.usage = usage or ResourceUsage(cpu_percent=12.5, memory_mb=64.0)
        self.error = error
        self.calls: list[int | None] = []

    def sample(self, pid: int | None = None) -> ResourceUsage:
        self.calls.append(pid)
        if self.error is not None:
            raise self.error
        return self.usage


class PushRecorder:
    """Stand-in for ``pushadd_to_gateway`` that records every call."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.calls: list[dict[str, Any]] = []
        self.error: Exception | None = None

    def __call__(self, gateway, job, registry, grouping_key=None, timeout=None, **kwargs) -> None:
        with self._lock:
            self.calls.append(
                {
                    "gateway": gateway,
                    "job": job,
                    "registry": registry,
                    "grouping_key": dict(grouping_key or {}),
                }
            )
        if self.error is not None:
            raise self.error


@pytest.fixture(autouse=True)
def _clear_gateway_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PUSH_GATEWAY_URL", raising=False)


@pytest.fixture
def push_recorder(monkeypatch: pytest.MonkeyPatch) -> PushRecorder:
    recorder = PushRecorder()
    monkeypatch.setattr(client.prometheus, "pushadd_to_gateway", recorder)
    return recorder


@pytest.fixture
def push_client(push_recorder: PushRecorder) -> PushGatewayClient:
    return PushGatewayClient("http://pushgateway.test:9091")


@pytest.fixture
def registry() -> InstrumentRegistry:
    return InstrumentRegistry()


@pytest.fixture
def emitter() -> FakeEmitter:
    return FakeEmitter()


@pytest.fixture
def sampler() -> FakeSampler:
    return FakeSampler()


@pytest.fixture
def failing_sampler() -> FakeSampler:
    return FakeSampler(error=SamplingError("Cannot sample process 999999: process no longer exists"))


@pytest.fixture
def plugin_config() -> dict[str, Any]:
    return {
        "testName": "checkout-flow",
        "pushGatewayUrl": "http://pushgateway.test:9091",
        "environment": "staging",
    }
