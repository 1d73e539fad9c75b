"""
Bounded in-memory logs of raw telemetry samples.

Each log is a ring buffer: appends are O(1) and, once the log is full, the
oldest sample is evicted to make room. Nothing here performs I/O.
"""

from collections import deque
from collections.abc import Iterator
from datetime import datetime
from typing import Generic, Protocol, TypeVar

from telemetry.domain.models import RequestSample, ServiceHealthSample, SystemSnapshot


class Timestamped(Protocol):
    @property
    def timestamp(self) -> datetime: ...


SampleT = TypeVar("SampleT", bound=Timestamped)


class SampleLog(Generic[SampleT]):
    """
    Fixed-capacity, insertion-ordered log of samples.

    Args:
        capacity: Maximum number of samples to keep.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._buffer: deque[SampleT] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._buffer.maxlen  # type: ignore[return-value]

    def __len__(self) -> int:
        return len(self._buffer)

    def __iter__(self) -> Iterator[SampleT]:
        return iter(self._buffer)

    def append(self, sample: SampleT) -> SampleT | None:
        """Append a sample, returning the one evicted to make room (if any)."""
        evicted = self._buffer[0] if len(self._buffer) == self.capacity else None
        self._buffer.append(sample)
        return evicted

    def since(self, from_time: datetime) -> list[SampleT]:
        """Samples with ``timestamp >= from_time``, in insertion order."""
        return [s for s in self._buffer if s.timestamp >= from_time]

    def prune_older_than(self, cutoff: datetime) -> list[SampleT]:
        """Drop every sample stamped before ``cutoff`` and return them."""
        removed = [s for s in self._buffer if s.timestamp < cutoff]
        if removed:
            kept = [s for s in self._buffer if s.timestamp >= cutoff]
            self._buffer = deque(kept, maxlen=self.capacity)
        return removed

    def snapshot(self) -> tuple[SampleT, ...]:
        return tuple(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()


class SampleStore:
    """The three raw logs the dashboard keeps: requests, health checks, system snapshots."""

    def __init__(
        self,
        request_capacity: int = 1000,
        health_capacity: int = 5000,
        snapshot_capacity: int = 1440,
    ) -> None:
        self._requests: SampleLog[RequestSample] = SampleLog(request_capacity)
        self._health: SampleLog[ServiceHealthSample] = SampleLog(health_capacity)
        self._snapshots: SampleLog[SystemSnapshot] = SampleLog(snapshot_capacity)

    @property
    def requests(self) -> tuple[RequestSample, ...]:
        return self._requests.snapshot()

    @property
    def health_checks(self) -> tuple[ServiceHealthSample, ...]:
        return self._health.snapshot()

    @property
    def system_snapshots(self) -> tuple[SystemSnapshot, ...]:
        return self._snapshots.snapshot()

    def append_request(self, sample: RequestSample) -> RequestSample | None:
        return self._requests.append(sample)

    def append_health(self, sample: ServiceHealthSample) -> ServiceHealthSample | None:
        return self._health.append(sample)

    def append_system_snapshot(self, sample: SystemSnapshot) -> SystemSnapshot | None:
        return self._snapshots.append(sample)

    def requests_since(self, from_time: datetime) -> list[RequestSample]:
        return self._requests.since(from_time)

    def health_since(self, from_time: datetime) -> list[ServiceHealthSample]:
        return self._health.since(from_time)

    def prune_older_than(self, cutoff: datetime) -> list[RequestSample]:
        """
        Remove samples stamped before ``cutoff`` from all three logs.

        Returns the removed request samples so derived counters can be
        rolled back to match.
        """
        removed_requests = self._requests.prune_older_than(cutoff)
        self._health.prune_older_than(cutoff)
        self._snapshots.prune_older_than(cutoff)
        return removed_requests

    def sizes(self) -> dict[str, int]:
        return {
            "requests": len(self._requests),
            "health_checks": len(self._health),
            "system_snapshots": len(self._snapshots),
        }

    def clear(self) -> None:
        self._requests.clear()
        self._health.clear()
        self._snapshots.clear()
