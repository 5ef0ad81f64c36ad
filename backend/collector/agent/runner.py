"""Poll/report loop for the reporting agent."""

from __future__ import annotations

import threading
import time
from typing import Callable

from ..config import AgentSettings
from ..infra.logging import get_logger
from .reporter import MetricsReporter
from .store import POLL_COUNT, AgentMetricsStore, collect_runtime_metrics

logger = get_logger(__name__)

Collector = Callable[[AgentMetricsStore], None]


class MetricsAgent:
    """Samples on the poll interval and pushes on the report interval."""

    def __init__(
        self,
        settings: AgentSettings,
        reporter: MetricsReporter,
        *,
        store: AgentMetricsStore | None = None,
        collector: Collector = collect_runtime_metrics,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._reporter = reporter
        self._store = store or AgentMetricsStore()
        self._collector = collector
        self._clock = clock

    @property
    def store(self) -> AgentMetricsStore:
        return self._store

    def poll_once(self) -> None:
        self._collector(self._store)
        self._store.increment_counter(POLL_COUNT, 1)

    def report_once(self) -> None:
        self._reporter.report(self._store)

    def run(self, stop_event: threading.Event) -> None:
        poll_interval = self._settings.poll_interval
        report_interval = self._settings.report_interval
        logger.info(
            "agent_started",
            extra={
                "url": self._reporter.url,
                "poll_interval": poll_interval,
                "report_interval": report_interval,
            },
        )
        self.poll_once()
        start = self._clock()
        next_poll = start + poll_interval
        next_report = start + report_interval
        while True:
            timeout = max(0.0, min(next_poll, next_report) - self._clock())
            if stop_event.wait(timeout):
                break
            now = self._clock()
            if now >= next_poll:
                self.poll_once()
                next_poll += poll_interval
            if now >= next_report:
                self.report_once()
                next_report += report_interval
        logger.info("agent_stopped")

    def start(self, stop_event: threading.Event) -> threading.Thread:
        thread = threading.Thread(
            target=self.run, args=(stop_event,), name="metrics-agent", daemon=True
        )
        thread.start()
        return thread
