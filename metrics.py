"""
In-process metrics for image fetch outcomes.

Thread-safe counters and duration histograms, exposed by the service's
/metrics endpoint.
"""

import time
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Any, Optional


@dataclass
class MetricCounter:
    """Thread-safe counter metric."""
    _value: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def increment(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount


@dataclass
class MetricHistogram:
    """Count/total/min/max tracker for durations."""
    _count: int = 0
    _total: float = 0.0
    _min: float = float('inf')
    _max: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def observe(self, value: float) -> None:
        with self._lock:
            self._count += 1
            self._total += value
            self._min = min(self._min, value)
            self._max = max(self._max, value)

    def stats(self) -> Dict[str, float]:
        with self._lock:
            return {
                "count": self._count,
                "avg": round(self._total / self._count, 2) if self._count > 0 else 0.0,
                "min": round(self._min, 2) if self._min != float('inf') else 0.0,
                "max": round(self._max, 2),
            }


class Metrics:
    """
    Thread-safe metrics collector.

    Usage:
        metrics.inc("image_fetch_total", labels={"outcome": "success"})

        with metrics.timer("tmdb_request_duration_ms"):
            response = session.get(url)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, MetricCounter] = defaultdict(MetricCounter)
        self._histograms: Dict[str, MetricHistogram] = defaultdict(MetricHistogram)

    @staticmethod
    def _make_key(name: str, labels: Optional[Dict[str, str]] = None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def inc(self, name: str, amount: int = 1, labels: Optional[Dict[str, str]] = None) -> None:
        """Increment a counter."""
        key = self._make_key(name, labels)
        with self._lock:
            counter = self._counters[key]
        counter.increment(amount)

    def observe(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        """Record a histogram observation."""
        key = self._make_key(name, labels)
        with self._lock:
            histogram = self._histograms[key]
        histogram.observe(value)

    @contextmanager
    def timer(self, name: str, labels: Optional[Dict[str, str]] = None):
        """Time the enclosed block in milliseconds."""
        start = time.monotonic()
        try:
            yield
        finally:
            self.observe(name, (time.monotonic() - start) * 1000, labels)

    def get_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> int:
        key = self._make_key(name, labels)
        with self._lock:
            counter = self._counters.get(key)
        return counter.value if counter else 0

    def get_stats(self) -> Dict[str, Any]:
        """All metrics as a JSON-serializable dict."""
        with self._lock:
            counters = dict(self._counters)
            histograms = dict(self._histograms)
        return {
            "counters": {k: v.value for k, v in counters.items()},
            "histograms": {k: v.stats() for k, v in histograms.items()},
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


# Global instance
metrics = Metrics()
