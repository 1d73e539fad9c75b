"""
Process-level resource sampling.

Reads the current interpreter process through psutil. Each call returns a
fresh reading; storing it is the caller's business.
"""

import os
import platform
import time
from datetime import UTC, datetime

import psutil

from telemetry.domain.models import CpuUsage, MemoryUsage, SystemSnapshot
from telemetry.services.analytics import round_half_up

_BYTES_PER_MB = 1024 * 1024


def _mb(value: float) -> float:
    return round_half_up(value / _BYTES_PER_MB)


class SystemMetricsSource:
    """
    Takes ``SystemSnapshot`` readings of one process.

    Memory mapping: resident is RSS, heap total is the virtual size, heap
    used is private resident memory (RSS minus shared pages) and external is
    the shared pages. ``shared`` is only reported on Linux; elsewhere it is 0.
    """

    def __init__(self, pid: int | None = None) -> None:
        self._process = psutil.Process(pid or os.getpid())
        # prime cpu_percent so the first real reading is meaningful
        self._process.cpu_percent(interval=None)

    def capture(self, timestamp: datetime | None = None) -> SystemSnapshot:
        with self._process.oneshot():
            memory = self._process.memory_info()
            cpu_times = self._process.cpu_times()
            cpu_percent = self._process.cpu_percent(interval=None)
            created = self._process.create_time()

        shared = getattr(memory, "shared", 0)
        return SystemSnapshot(
            timestamp=timestamp or datetime.now(UTC),
            memory=MemoryUsage(
                resident_mb=_mb(memory.rss),
                heap_total_mb=_mb(memory.vms),
                heap_used_mb=_mb(max(memory.rss - shared, 0)),
                external_mb=_mb(shared),
            ),
            cpu=CpuUsage(
                user_seconds=round_half_up(cpu_times.user),
                system_seconds=round_half_up(cpu_times.system),
                percent=round_half_up(cpu_percent),
            ),
            uptime_seconds=round_half_up(max(time.time() - created, 0.0)),
            process_id=self._process.pid,
            runtime_version=platform.python_version(),
        )
