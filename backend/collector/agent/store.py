"""Agent-side metric buffer and runtime collectors."""

from __future__ import annotations

import gc
import random
import resource
import sys
import threading
import time
from typing import Dict, Tuple

POLL_COUNT = "PollCount"
RANDOM_VALUE = "RandomValue"


class AgentMetricsStore:
    """Gauges hold the last sample; counters hold deltas not yet reported."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._gauges: Dict[str, float] = {}
        self._counters: Dict[str, int] = {}

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = float(value)

    def increment_counter(self, name: str, delta: int) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + delta

    def snapshot(self) -> Tuple[Dict[str, float], Dict[str, int]]:
        with self._lock:
            return dict(self._gauges), dict(self._counters)

    def drain_counters(self) -> Dict[str, int]:
        """Hand pending deltas to the reporter and start a fresh window."""

        with self._lock:
            pending, self._counters = self._counters, {}
        return pending


def collect_runtime_metrics(store: AgentMetricsStore) -> None:
    """Sample interpreter and process statistics as gauges."""

    for generation, count in enumerate(gc.get_count()):
        store.set_gauge(f"GCGen{generation}Count", count)
    for generation, stats in enumerate(gc.get_stats()):
        store.set_gauge(f"GCGen{generation}Collections", stats.get("collections", 0))
        store.set_gauge(f"GCGen{generation}Collected", stats.get("collected", 0))
    store.set_gauge("GCObjects", len(gc.get_objects()))
    store.set_gauge("AllocatedBlocks", sys.getallocatedblocks())
    store.set_gauge("ThreadCount", threading.active_count())
    store.set_gauge("ProcessCPUSeconds", time.process_time())

    usage = resource.getrusage(resource.RUSAGE_SELF)
    store.set_gauge("MaxRSS", usage.ru_maxrss)
    store.set_gauge("UserCPUSeconds", usage.ru_utime)
    store.set_gauge("SystemCPUSeconds", usage.ru_stime)

    store.set_gauge(RANDOM_VALUE, random.random())
