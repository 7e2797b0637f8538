#!/usr/bin/env python3
"""
Metrics Aggregator

Thread-safe accumulation of request counters and latencies. Readers and
writers go through the same lock, so a snapshot never shows a half-applied
update.
"""

import threading
from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of the aggregate metrics"""
    total_requests: int = 0
    success_requests: int = 0
    failed_requests: int = 0
    latencies: Tuple[float, ...] = ()
    average_latency_ms: float = 0.0  # 0.0 until the first success


class MetricsAggregator:
    """Shared counters updated by every completed dispatch"""

    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0
        self._success = 0
        self._failed = 0
        self._latencies: List[float] = []
        self._latency_sum = 0.0
        self._average = 0.0

    def record_success(self, latency_ms: float):
        with self._lock:
            self._total += 1
            self._success += 1
            self._latencies.append(latency_ms)
            # Running sum gives the same mean as a full recompute
            self._latency_sum += latency_ms
            self._average = self._latency_sum / len(self._latencies)

    def record_failure(self):
        with self._lock:
            self._total += 1
            self._failed += 1

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                total_requests=self._total,
                success_requests=self._success,
                failed_requests=self._failed,
                latencies=tuple(self._latencies),
                average_latency_ms=self._average,
            )
