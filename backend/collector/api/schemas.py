"""Wire models for the JSON metric envelope."""

from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..domain.metrics import BadValueError, MetricEnvelope, MetricKind
from ..domain.storage import INT64_MAX, INT64_MIN

_GAUGE_VALUE = TypeAdapter(
    Optional[Annotated[float, Field(strict=True, allow_inf_nan=False)]]
)
_COUNTER_DELTA = TypeAdapter(
    Optional[Annotated[int, Field(strict=True, ge=INT64_MIN, le=INT64_MAX)]]
)


class MetricPayload(BaseModel):
    """``{"id", "type", "value"?, "delta"?}`` as sent by agents.

    ``value`` and ``delta`` are checked only after ``type`` resolves, so an
    unknown type wins over a malformed number.
    """

    model_config = ConfigDict(strict=True)

    id: str = ""
    type: str = ""
    value: Any = None
    delta: Any = None

    def to_envelope(self) -> MetricEnvelope:
        kind = MetricKind.parse(self.type)
        try:
            value = _GAUGE_VALUE.validate_python(self.value)
            delta = _COUNTER_DELTA.validate_python(self.delta)
        except ValidationError as exc:
            raise BadValueError({"id": self.id, "errors": exc.error_count()}) from exc
        return MetricEnvelope(id=self.id, kind=kind.value, value=value, delta=delta)


def decode_envelope(raw: bytes) -> MetricEnvelope:
    """Validate a request body; envelope decoding failures are a bad value."""

    try:
        payload = MetricPayload.model_validate_json(raw)
    except ValidationError as exc:
        raise BadValueError({"errors": exc.error_count()}) from exc
    return payload.to_envelope()
