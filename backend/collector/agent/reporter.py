"""Pushes buffered metrics to the server's JSON update endpoint."""

from __future__ import annotations

import gzip
import json
from dataclasses import dataclass

import httpx

from ..domain.metrics import MetricEnvelope, MetricKind
from ..infra.logging import get_logger
from .store import AgentMetricsStore

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


@dataclass
class ReportResult:
    sent: int = 0
    failed: int = 0


class MetricsReporter:
    """Sends one gzip-compressed JSON envelope per metric via httpx."""

    def __init__(
        self,
        address: str,
        *,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._url = f"http://{address}/update/"
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def url(self) -> str:
        return self._url

    def send(self, envelope: MetricEnvelope) -> None:
        body = gzip.compress(json.dumps(envelope.to_dict()).encode("utf-8"))
        response = self._client.post(
            self._url,
            content=body,
            headers={
                "Content-Type": "application/json",
                "Content-Encoding": "gzip",
                "Accept-Encoding": "gzip",
            },
        )
        response.raise_for_status()

    def report(self, store: AgentMetricsStore) -> ReportResult:
        """Send every gauge and pending counter delta.

        A counter delta that fails to send is put back so the next report
        carries it again.
        """

        gauges, _ = store.snapshot()
        counters = store.drain_counters()
        result = ReportResult()
        for name, value in gauges.items():
            envelope = MetricEnvelope(id=name, kind=MetricKind.GAUGE.value, value=value)
            if self._try_send(envelope):
                result.sent += 1
            else:
                result.failed += 1
        for name, delta in counters.items():
            envelope = MetricEnvelope(id=name, kind=MetricKind.COUNTER.value, delta=delta)
            if self._try_send(envelope):
                result.sent += 1
            else:
                store.increment_counter(name, delta)
                result.failed += 1
        logger.info(
            "agent_report_completed",
            extra={"url": self._url, "sent": result.sent, "failed": result.failed},
        )
        return result

    def close(self) -> None:
        self._client.close()

    def _try_send(self, envelope: MetricEnvelope) -> bool:
        try:
            self.send(envelope)
        except httpx.HTTPError as exc:
            logger.warning(
                "agent_report_failed",
                extra={"metric": envelope.id, "type": envelope.kind, "error": str(exc)},
            )
            return False
        return True
