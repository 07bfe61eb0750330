"""In-process API call metrics.

ApiMetricsCollector keeps the last N upstream calls in a bounded ring
buffer (oldest evicted). One collector is built per process and injected
into the HTTP client; nothing here is module-global.
"""

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


def _status_for(error_kind: str | None) -> str:
    if error_kind is None:
        return "success"
    # The caller went away; the upstream never answered either way
    return CANCELLED if error_kind == CANCELLED else "error"


@dataclass
class ApiMetric:
    """One logical upstream call (all of its retry attempts together)."""

    endpoint: str
    timestamp: float
    duration_ms: float
    status: str                     # "success" | "error" | "cancelled"
    attempts: int = 1
    error_kind: str | None = None


class ApiMetricsCollector:
    """Bounded history of upstream calls with per-endpoint aggregates."""

    def __init__(self, capacity: int = 100, slow_call_threshold: float = 3.0) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.slow_call_threshold = slow_call_threshold
        self._metrics: deque[ApiMetric] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._metrics)

    def record(self, metric: ApiMetric) -> None:
        self._metrics.append(metric)
        if metric.duration_ms > self.slow_call_threshold * 1000:
            logger.warning(
                "Slow API call: %s took %.0fms",
                metric.endpoint, metric.duration_ms,
                extra={"endpoint": metric.endpoint, "duration_ms": round(metric.duration_ms, 1)},
            )

    def record_call(
        self,
        endpoint: str,
        duration_ms: float,
        *,
        error_kind: str | None = None,
        attempts: int = 1,
    ) -> ApiMetric:
        metric = ApiMetric(
            endpoint=endpoint,
            timestamp=time.time(),
            duration_ms=duration_ms,
            status=_status_for(error_kind),
            attempts=attempts,
            error_kind=error_kind,
        )
        self.record(metric)
        return metric

    def all(self) -> list[ApiMetric]:
        return list(self._metrics)

    def recent(self, count: int = 10) -> list[ApiMetric]:
        if count <= 0:
            return []
        return list(self._metrics)[-count:]

    def _filtered(self, endpoint: str | None) -> list[ApiMetric]:
        if endpoint is None:
            return list(self._metrics)
        return [m for m in self._metrics if m.endpoint == endpoint]

    def average_duration(self, endpoint: str | None = None) -> float:
        metrics = self._filtered(endpoint)
        if not metrics:
            return 0.0
        return sum(m.duration_ms for m in metrics) / len(metrics)

    def error_rate(self, endpoint: str | None = None) -> float:
        metrics = self._filtered(endpoint)
        if not metrics:
            return 0.0
        return sum(1 for m in metrics if m.status == "error") / len(metrics)

    def summary(self) -> dict:
        """Totals plus a per-endpoint breakdown."""
        endpoints = {}
        for endpoint in dict.fromkeys(m.endpoint for m in self._metrics):
            calls = self._filtered(endpoint)
            endpoints[endpoint] = {
                "calls": len(calls),
                "average_duration_ms": round(self.average_duration(endpoint), 2),
                "error_rate": round(self.error_rate(endpoint), 4),
            }
        return {
            "total_calls": len(self._metrics),
            "capacity": self.capacity,
            "average_duration_ms": round(self.average_duration(), 2),
            "error_rate": round(self.error_rate(), 4),
            "endpoints": endpoints,
            "recent": [asdict(m) for m in self.recent(10)],
        }

    def log_summary(self) -> None:
        if not self._metrics:
            logger.info("No API metrics collected yet")
            return
        summary = self.summary()
        logger.info(
            "API metrics: %d calls, avg %.2fms, error rate %.2f%%",
            summary["total_calls"], summary["average_duration_ms"], summary["error_rate"] * 100,
        )
        for endpoint, stats in summary["endpoints"].items():
            logger.info(
                "  %s: %d calls, avg %.2fms, error rate %.2f%%",
                endpoint, stats["calls"], stats["average_duration_ms"], stats["error_rate"] * 100,
            )

    def clear(self) -> None:
        self._metrics.clear()
