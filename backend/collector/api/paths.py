"""Parsing of ``/{action}/{type}/{name}[/{value}]`` request paths."""

from __future__ import annotations

from typing import NamedTuple

from .errors import NAME_REQUIRED, NOT_FOUND


class MetricPath(NamedTuple):
    kind: str
    name: str
    value: str


class MetricPathError(ValueError):
    """Path does not address a metric; ``message`` is the 404 body."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def parse_metric_path(metric_path: str) -> MetricPath:
    """Split the part after the action prefix into type, name and value.

    One trailing slash is ignored. The value segment is optional here; an
    empty value is rejected later as a bad value.
    """

    trimmed = metric_path[:-1] if metric_path.endswith("/") else metric_path
    parts = trimmed.split("/")
    if len(parts) not in (2, 3):
        raise MetricPathError(NOT_FOUND)
    kind, name = parts[0], parts[1]
    value = parts[2] if len(parts) == 3 else ""
    if not name:
        raise MetricPathError(NAME_REQUIRED)
    return MetricPath(kind=kind, name=name, value=value)
