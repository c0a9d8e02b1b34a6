"""In-process counters and timings for TaskLedger."""

from dataclasses import dataclass
from threading import Lock
from typing import Any


@dataclass
class Timing:
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def record(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)

    def snapshot(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "avg_ms": self.total_ms / self.count if self.count else 0.0,
            "max_ms": self.max_ms,
        }


class MetricsRegistry:
    """Thread-safe registry of named counters and timings."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.counters: dict[str, int] = {}
        self.timings: dict[str, Timing] = {}

    def inc_counter(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self.counters[name] = self.counters.get(name, 0) + amount

    def counter(self, name: str) -> int:
        with self._lock:
            return self.counters.get(name, 0)

    def observe(self, name: str, duration_ms: float) -> None:
        with self._lock:
            self.timings.setdefault(name, Timing()).record(duration_ms)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self.counters),
                "timings": {name: t.snapshot() for name, t in self.timings.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self.counters.clear()
            self.timings.clear()


metrics = MetricsRegistry()
