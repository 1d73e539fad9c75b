"""
Incremental per-endpoint rollups over the request log.

The aggregator is a cache, not a source of truth: it is updated on every
append and rolled back on every eviction so its counters always describe
exactly the samples still held in the raw log. Counts and error counts are
exact; the response-time total accumulates float rounding and is only
approximately equal to a fresh sum until ``rebuild`` recomputes it.
"""

from collections.abc import Iterable

from telemetry.domain.models import EndpointStat, RequestSample
from telemetry.services.analytics import percentage


class EndpointAggregator:
    """Running ``EndpointStat`` counters keyed by ``"{METHOD} {PATH}"``."""

    def __init__(self) -> None:
        self._stats: dict[str, EndpointStat] = {}

    def __len__(self) -> int:
        return len(self._stats)

    def __contains__(self, key: object) -> bool:
        return key in self._stats

    def record(self, sample: RequestSample) -> EndpointStat:
        stat = self._stats.setdefault(sample.endpoint, EndpointStat())
        stat.count += 1
        stat.total_response_time_ms += sample.response_time_ms or 0.0
        if sample.is_error:
            stat.error_count += 1
        stat.last_used_at = sample.timestamp
        return stat

    def discard(self, sample: RequestSample) -> None:
        """Undo ``record`` for a sample that left the raw log."""
        stat = self._stats.get(sample.endpoint)
        if stat is None:
            return
        stat.count -= 1
        if stat.count <= 0:
            del self._stats[sample.endpoint]
            return
        stat.total_response_time_ms -= sample.response_time_ms or 0.0
        if sample.is_error:
            stat.error_count -= 1

    def rebuild(self, samples: Iterable[RequestSample]) -> None:
        self._stats.clear()
        for sample in samples:
            self.record(sample)

    def get(self, key: str) -> EndpointStat | None:
        stat = self._stats.get(key)
        return stat.model_copy() if stat is not None else None

    def error_rate_for(self, key: str) -> float:
        stat = self._stats.get(key)
        if stat is None:
            return 0.0
        return percentage(stat.error_count, stat.count)

    def stats(self) -> dict[str, EndpointStat]:
        return {key: stat.model_copy() for key, stat in self._stats.items()}

    def clear(self) -> None:
        self._stats.clear()
