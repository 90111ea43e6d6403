"""Metric collector that pushes Prometheus registry objects."""

from __future__ import annotations

from abc import ABC, abstractmethod

from prometheus_client import CollectorRegistry

from client.prometheus import PushGatewayClient


class PushableMetric(ABC):
    """Metric contract accepted by MetricCollector.push()."""

    @abstractmethod
    def get_registry(self) -> CollectorRegistry:
        ...

    @abstractmethod
    def get_grouping_key(self) -> dict[str, str]:
        ...


class MetricCollector:
    """Push registry snapshots under one job name for the life of the process."""

    DEFAULT_JOB = "artillery"

    def __init__(self, prometheus_client: PushGatewayClient, job: str = DEFAULT_JOB) -> None:
        self._prometheus_client = prometheus_client
        self._job = job

    @property
    def job(self) -> str:
        return self._job

    def push(self, metric: PushableMetric) -> None:
        self._prometheus_client.push(
            job=self._job,
            registry=metric.get_registry(),
            grouping_key=metric.get_grouping_key(),
        )
