"""Runner plugin that reports load-test results to a Prometheus Pushgateway."""

from __future__ import annotations

from enum import Enum
import os
from typing import Any, Callable, Mapping, Protocol

from client.prometheus import PushGatewayClient
from logger import configure, log
from metric.collector import MetricCollector
from metric.instruments import InstrumentRegistry, Instruments, standard_instruments
from metric.report import ReportFormatError, StatsReport, translate
from monitor.resources import ResourceSampler, SamplingError
from plugin import config as plugin_config
from plugin.config import ReporterConfig

STATS_EVENT = "stats"


class Notifier(Protocol):
    def on(self, event: str, listener: Callable[[Any], Any]) -> Any:
        ...


class ReporterState(Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"


class PrometheusReporter:
    """Subscribe to runner ``stats`` events and push them to Pushgateway.

    Each report is translated and pushed, then the process is sampled and
    the runner stats gauge is pushed. A failure inside a cycle is logged
    and never reaches the notifier, so the next report is still handled.

    Parameters
    ----------
    instruments : InstrumentRegistry, optional
        Registry to create instruments on. Pass the same instance to
        every reporter of a process so re-initialisation reuses them.
    client : PushGatewayClient, optional
        Push client. Built from the resolved ``pushGatewayUrl`` if omitted.
    sampler : ResourceSampler, optional
        Process sampler for the runner stats gauge.
    pid : int, optional
        Process to sample. Defaults to the current process.
    """

    def __init__(
        self,
        instruments: InstrumentRegistry | None = None,
        client: PushGatewayClient | None = None,
        sampler: ResourceSampler | None = None,
        pid: int | None = None,
    ) -> None:
        self._registry = instruments if instruments is not None else InstrumentRegistry()
        self._client = client
        self._sampler = sampler or ResourceSampler()
        self._pid = pid if pid is not None else os.getpid()
        self._state = ReporterState.UNINITIALIZED
        self.config: ReporterConfig | None = None
        self._instruments: Instruments | None = None
        self._collector: MetricCollector | None = None

    @property
    def state(self) -> ReporterState:
        return self._state

    @property
    def registry(self) -> InstrumentRegistry:
        return self._registry

    @property
    def client(self) -> PushGatewayClient | None:
        return self._client

    @property
    def instruments(self) -> Instruments | None:
        return self._instruments

    def initialize(self, raw_config: Mapping[str, Any] | None, events: Notifier) -> PrometheusReporter:
        config = plugin_config.resolve(raw_config)
        if config.log_level:
            configure(config.log_level)

        self._instruments = standard_instruments(self._registry, config.buckets)
        self._registry.set_default_labels(config.default_labels())

        if self._client is None:
            self._client = PushGatewayClient(config.push_gateway_url)
        self._collector = MetricCollector(self._client, job=config.job_name)
        self.config = config

        events.on(STATS_EVENT, self.handle_report)
        self._state = ReporterState.ACTIVE
        log.info(
            f"Reporting to {config.push_gateway_url} as job '{config.job_name}' "
            f"(testRunId={config.test_run_id})"
        )
        return self

    def handle_report(self, report: Mapping[str, Any]) -> None:
        if self._state is not ReporterState.ACTIVE:
            log.warn("Dropping report received before initialisation")
            return

        canonical = self._report_results(report)
        if canonical is not None:
            self._report_runner_stats(canonical)

    def push(self) -> None:
        self._collector.push(self._registry)

    def _report_results(self, report: Mapping[str, Any]) -> StatsReport | None:
        canonical: StatsReport | None = None
        try:
            canonical = translate(report, self._instruments, self.config.latency_unit)
        except ReportFormatError as exc:
            log.error(f"Skipping malformed report: {exc}")
        self.push()
        if canonical is not None:
            log.debug(f"{len(canonical.latencies)} metrics reported to Prometheus.")
        return canonical

    def _report_runner_stats(self, report: StatsReport) -> None:
        try:
            usage = self._sampler.sample(self._pid)
        except SamplingError as exc:
            log.warn(f"Skipping runner stats: {exc}")
            return

        fields = self.config.label_names
        gauge = self._instruments.runner_stats
        gauge.labels(field=fields.cpu).set(usage.cpu_percent)
        gauge.labels(field=fields.memory).set(usage.memory_mb)
        gauge.labels(field=fields.pending_requests).set(report.pending_requests)
        gauge.labels(field=fields.avoided_scenarios).set(report.scenarios_avoided)
        self.push()
