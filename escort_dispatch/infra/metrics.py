# escort_dispatch/infra/metrics.py
"""
In-process delivery metrics, served as JSON on ``/metrics``.

Series are keyed ``name{label=value,...}`` with labels sorted. Values live
for the life of the process; there is no exporter.
"""
from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Any

from escort_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)

# Samples kept per histogram series; older samples roll off
HISTOGRAM_WINDOW = 1000


def series_key(name: str, labels: dict | None = None) -> str:
    if not labels:
        return name
    rendered = ",".join(f"{k}={labels[k]}" for k in sorted(labels))
    return f"{name}{{{rendered}}}"


def summarize(samples: list[float]) -> dict[str, Any]:
    """count/min/max/avg/p95 over a list of samples (zeros when empty)."""
    if not samples:
        return {"count": 0, "min": 0, "max": 0, "avg": 0, "p95": 0}

    ordered = sorted(samples)
    n = len(ordered)
    return {
        "count": n,
        "min": ordered[0],
        "max": ordered[-1],
        "avg": sum(ordered) / n,
        "p95": ordered[min(int(n * 0.95), n - 1)],
    }


class MetricsCollector:

    def __init__(self, window: int = HISTOGRAM_WINDOW):
        self._window = window
        self._counters: dict[str, int] = {}
        self._samples: dict[str, deque[float]] = {}
        self._lock = Lock()

    def inc_counter(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        key = series_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def observe_histogram(self, name: str, value: float, labels: dict | None = None) -> None:
        key = series_key(name, labels)
        with self._lock:
            if key not in self._samples:
                self._samples[key] = deque(maxlen=self._window)
            self._samples[key].append(value)

    def get_metrics(self) -> dict:
        with self._lock:
            counters = dict(self._counters)
            samples = {k: list(v) for k, v in self._samples.items()}
        return {
            "counters": counters,
            "histograms": {k: summarize(v) for k, v in samples.items()},
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._samples.clear()
        logger.info("Metrics reset")


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector"""
    return _metrics


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    _metrics.inc_counter(name, amount, labels or None)


def observe_histogram(name: str, value: float, **labels) -> None:
    _metrics.observe_histogram(name, value, labels or None)


class Timer:
    """Observe the wall time of a ``with`` block into a histogram"""

    def __init__(self, metric_name: str, **labels):
        self.metric_name = metric_name
        self.labels = labels
        self.started: float | None = None

    def __enter__(self) -> "Timer":
        self.started = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.started is not None:
            observe_histogram(self.metric_name, time.monotonic() - self.started, **self.labels)


class DispatchMetrics:
    """Named metrics recorded by the dispatcher and the bulk processor"""

    @staticmethod
    def notification_sent(channel: str) -> None:
        inc_counter("notifications_sent", channel=channel)

    @staticmethod
    def notification_failed(channel: str, reason: str) -> None:
        inc_counter("notifications_failed", channel=channel, reason=reason)

    @staticmethod
    def bulk_batch_completed(channel: str) -> None:
        inc_counter("bulk_batches_total", channel=channel)

    @staticmethod
    def track_bulk_batch() -> Timer:
        return Timer("bulk_batch_duration_seconds")
