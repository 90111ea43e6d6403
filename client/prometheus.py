"""Prometheus Pushgateway client."""

from __future__ import annotations

import atexit
from threading import Event, Lock, Thread, current_thread
import time

from prometheus_client import CollectorRegistry, pushadd_to_gateway

from logger import log


class PushError(Exception):
    """Raised inside a push worker when the gateway rejects or is unreachable."""


class PushGatewayClient:
    """Fire-and-forget Pushgateway client.

    Every :meth:`push` starts its own daemon thread and returns at once.
    Failures are logged and dropped: nothing is retried, buffered or
    coalesced, so two pushes of the same registry are two requests.

    :meth:`close` is registered to run at interpreter exit. It waits for
    the pushes still in flight, bounded by the push timeout, so the last
    batch of a short-lived runner still reaches the gateway.
    """

    _TIMEOUT_SECONDS = 30.0

    def __init__(self, gateway_url: str, timeout_seconds: float | None = None) -> None:
        self.gateway_url = gateway_url
        self._timeout_seconds = float(
            self._TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        self._lock = Lock()
        self._in_flight: set[Thread] = set()
        self._attempts = 0
        self._failures = 0
        self._closed = Event()
        atexit.register(self.close)

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def failures(self) -> int:
        return self._failures

    def push(
        self,
        *,
        job: str,
        registry: CollectorRegistry,
        grouping_key: dict[str, str] | None = None,
    ) -> None:
        if self._closed.is_set():
            log.warn("Pushgateway client is closed; dropping push")
            return

        grouping = {str(k): str(v) for k, v in (grouping_key or {}).items()}
        worker = Thread(
            target=self._run,
            kwargs={"job": str(job), "registry": registry, "grouping_key": grouping},
            name="pushgateway-push",
            daemon=True,
        )
        with self._lock:
            self._attempts += 1
            self._in_flight.add(worker)
        worker.start()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for in-flight pushes. Returns ``False`` if some are still running."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = list(self._in_flight)
            if not pending:
                return True
            for worker in pending:
                remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
                worker.join(remaining)
                if worker.is_alive():
                    return False

    def close(self, timeout: float | None = None) -> bool:
        """Stop accepting pushes and wait for the ones in flight."""
        if self._closed.is_set():
            return self.join(timeout=0)

        self._closed.set()
        timeout = self._timeout_seconds if timeout is None else float(timeout)
        with self._lock:
            pending = len(self._in_flight)
        if pending:
            log.debug(f"Waiting for {pending} in-flight push(es) to {self.gateway_url}")
        done = self.join(timeout=timeout)
        if not done:
            log.warn(f"Pushes to {self.gateway_url} still running after {timeout:.1f}s; abandoning them")
        return done

    def __enter__(self) -> PushGatewayClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _run(
        self,
        *,
        job: str,
        registry: CollectorRegistry,
        grouping_key: dict[str, str],
    ) -> None:
        try:
            self._send(job=job, registry=registry, grouping_key=grouping_key)
        except PushError as exc:
            with self._lock:
                self._failures += 1
            log.warn(f"Error pushing metrics to push gateway: {exc}")
        finally:
            with self._lock:
                self._in_flight.discard(current_thread())

    def _send(
        self,
        *,
        job: str,
        registry: CollectorRegistry,
        grouping_key: dict[str, str],
    ) -> None:
        try:
            pushadd_to_gateway(
                gateway=self.gateway_url,
                job=job,
                registry=registry,
                grouping_key=grouping_key,
                timeout=self._timeout_seconds,
            )
        except Exception as exc:  # urllib raises URLError, HTTPError, OSError, ...
            raise PushError(f"{self.gateway_url} job={job}: {exc}") from exc
        log.debug(f"Pushed metrics: gateway={self.gateway_url} job={job}")
