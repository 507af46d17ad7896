"""In-process request metrics for agent dispatches."""

from __future__ import annotations

import statistics
import threading
import time
from collections import Counter, deque
from datetime import UTC, datetime
from typing import Any

MAX_LATENCIES = 100
MAX_ERRORS = 50


class Metrics:
    """Counters plus a bounded window of latencies and errors."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.requests = 0
            self.successes = 0
            self.failures = 0
            self.latencies: deque[float] = deque(maxlen=MAX_LATENCIES)
            self.errors: deque[dict[str, str]] = deque(maxlen=MAX_ERRORS)
            self.by_agent: Counter[str] = Counter()
            self.by_role: Counter[str] = Counter()
            self.started = time.monotonic()

    def record_request(
        self,
        duration: float,
        success: bool,
        *,
        agent: str | None = None,
        role: str | None = None,
        error: str | None = None,
    ) -> None:
        with self._lock:
            self.requests += 1
            self.latencies.append(duration)
            if success:
                self.successes += 1
            else:
                self.failures += 1
                if error:
                    self.errors.append(
                        {"error": error, "timestamp": datetime.now(UTC).isoformat()}
                    )
            if agent:
                self.by_agent[agent] += 1
            if role:
                self.by_role[role] += 1

    def stats(self) -> dict[str, Any]:
        with self._lock:
            latencies = list(self.latencies)
            payload: dict[str, Any] = {
                "requests": self.requests,
                "successes": self.successes,
                "failures": self.failures,
                "success_rate": round(self.successes / self.requests, 4) if self.requests else 0.0,
                "by_agent": dict(self.by_agent),
                "by_role": dict(self.by_role),
                "recent_errors": list(self.errors)[-5:],
                "uptime_seconds": round(time.monotonic() - self.started, 3),
            }

        if latencies:
            payload["latency"] = {
                "average": round(statistics.fmean(latencies), 4),
                "median": round(statistics.median(latencies), 4),
                "min": round(min(latencies), 4),
                "max": round(max(latencies), 4),
            }
        else:
            payload["latency"] = {"average": 0.0, "median": 0.0, "min": 0.0, "max": 0.0}
        return payload
