"""Point-in-time CPU and memory usage of a process."""

from __future__ import annotations

from dataclasses import dataclass
import os

import psutil

from logger import log

_BYTES_PER_MB = 1048576


class SamplingError(Exception):
    """Raised when a process cannot be inspected."""


@dataclass(frozen=True, slots=True)
class ResourceUsage:
    cpu_percent: float
    memory_mb: float


class ResourceSampler:
    """Sample CPU percent and resident memory of a process.

    ``cpu_percent`` is measured since the previous sample of the same pid,
    so ``psutil.Process`` handles are kept between calls. The first sample
    of a pid reports ``0.0``.
    """

    def __init__(self) -> None:
        self._processes: dict[int, psutil.Process] = {}

    def sample(self, pid: int | None = None) -> ResourceUsage:
        pid = os.getpid() if pid is None else int(pid)
        try:
            process = self._processes.get(pid)
            if process is None:
                process = psutil.Process(pid)
                self._processes[pid] = process
            with process.oneshot():
                cpu_percent = float(process.cpu_percent(interval=None))
                rss = process.memory_info().rss
        except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
            self._processes.pop(pid, None)
            raise SamplingError(f"Cannot sample process {pid}: {exc}") from exc

        usage = ResourceUsage(cpu_percent=cpu_percent, memory_mb=rss / _BYTES_PER_MB)
        log.debug(
            f"Sampled pid={pid}: cpu={usage.cpu_percent:.1f}% "
            f"memory={usage.memory_mb:.1f}MB"
        )
        return usage
