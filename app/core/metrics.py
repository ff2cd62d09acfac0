from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from math import sqrt
from time import perf_counter
from typing import Dict, Iterator


@dataclass(slots=True)
class TimingStats:
    """Running aggregates (Welford) for a timing label."""

    count: float = 0.0
    total_ms: float = 0.0
    max_ms: float = 0.0
    _mean_ms: float = 0.0
    _m2: float = 0.0

    def update(self, elapsed_ms: float) -> None:
        value = float(elapsed_ms)
        self.count += 1.0
        self.total_ms += value
        if value > self.max_ms:
            self.max_ms = value
        delta = value - self._mean_ms
        self._mean_ms += delta / self.count
        self._m2 += delta * (value - self._mean_ms)

    def snapshot(self) -> Dict[str, float]:
        variance = self._m2 / (self.count - 1.0) if self.count > 1.0 else 0.0
        return {
            "count": self.count,
            "total_ms": self.total_ms,
            "max_ms": self.max_ms,
            "avg_ms": self._mean_ms,
            "stddev_ms": sqrt(variance) if variance > 0.0 else 0.0,
        }


class _MetricsRegistry:
    """Thread-safe in-process registry of timings and counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timings: Dict[str, TimingStats] = {}
        self._counters: Dict[str, float] = {}

    def record(self, label: str, elapsed_ms: float) -> None:
        if not label:
            return
        with self._lock:
            self._timings.setdefault(label, TimingStats()).update(elapsed_ms)

    def inc(self, label: str, amount: float = 1.0) -> None:
        if not label:
            return
        with self._lock:
            self._counters[label] = self._counters.get(label, 0.0) + float(amount)

    def timings_snapshot(self, reset: bool = False) -> Dict[str, Dict[str, float]]:
        with self._lock:
            data = {label: stats.snapshot() for label, stats in self._timings.items()}
            if reset:
                self._timings.clear()
            return data

    def counters_snapshot(self, reset: bool = False) -> Dict[str, float]:
        with self._lock:
            data = dict(self._counters)
            if reset:
                self._counters.clear()
            return data

    def reset(self) -> None:
        with self._lock:
            self._timings.clear()
            self._counters.clear()


metrics_registry = _MetricsRegistry()


@contextmanager
def timer(label: str) -> Iterator[None]:
    """Time a code block and record it under `label`."""
    t0 = perf_counter()
    try:
        yield
    finally:
        metrics_registry.record(label, (perf_counter() - t0) * 1000.0)


def inc_counter(label: str, amount: float = 1.0) -> None:
    metrics_registry.inc(label, amount)


def get_metrics(reset: bool = False) -> Dict[str, Dict[str, float]]:
    return metrics_registry.timings_snapshot(reset=reset)


def get_counters(reset: bool = False) -> Dict[str, float]:
    return metrics_registry.counters_snapshot(reset=reset)


__all__ = [
    "timer",
    "inc_counter",
    "get_metrics",
    "get_counters",
    "metrics_registry",
]
