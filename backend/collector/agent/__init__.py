"""Reporting agent: samples runtime metrics and pushes them to the server."""

from .reporter import MetricsReporter, ReportResult
from .runner import MetricsAgent
from .store import AgentMetricsStore, collect_runtime_metrics

__all__ = [
    "AgentMetricsStore",
    "MetricsAgent",
    "MetricsReporter",
    "ReportResult",
    "collect_runtime_metrics",
]
