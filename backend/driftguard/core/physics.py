"""Pheromone physics: time-decaying signals for indirect coordination.

Every pheromone follows an exponential decay curve:

    I(t) = I0 * e^(-k * t)

Decay is lazy. Nothing is scheduled and nothing is rewritten in the store;
the current intensity is recomputed from ``created_at`` on every read, so
all readers agree as long as they share this formula.

Envelope wire format (orjson):

    {"pheromone": {"label": ..., "initial_strength": ..., "decay_rate": ...,
                   "created_at": "<ISO-8601 UTC>"},
     "data": <opaque JSON value>}

The ``pheromone`` field can be validated on its own, which is what
intensity-only queries do.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

import orjson
from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
)
from pydantic_core import to_jsonable_python

from driftguard.errors import DecodeError

T = TypeVar("T")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Pheromone(BaseModel):
    """Immutable decay descriptor attached to every deposited payload."""

    model_config = ConfigDict(frozen=True)

    label: str
    initial_strength: float = Field(default=1.0, ge=0.0, allow_inf_nan=False)
    decay_rate: float = Field(gt=0.0, allow_inf_nan=False)  # k; half-life = ln(2) / k
    created_at: AwareDatetime = Field(default_factory=utc_now)

    @classmethod
    def with_decay(
        cls,
        label: str,
        decay_rate: float,
        now: datetime | None = None,
    ) -> Pheromone:
        """Create a full-strength pheromone."""
        return cls(
            label=label,
            initial_strength=1.0,
            decay_rate=decay_rate,
            created_at=now or utc_now(),
        )

    def age_seconds(self, now: datetime | None = None) -> float:
        """Seconds elapsed since creation (negative if the clock is behind)."""
        now = now or utc_now()
        return (now - self.created_at).total_seconds()

    def current_strength(self, now: datetime | None = None) -> float:
        """Current intensity, clamped to [0, 1]."""
        elapsed = self.age_seconds(now)
        strength = self.initial_strength * math.exp(-self.decay_rate * elapsed)
        return max(0.0, min(1.0, strength))

    def is_active(self, threshold: float, now: datetime | None = None) -> bool:
        """True only while strictly above ``threshold``."""
        return self.current_strength(now) > threshold

    def time_until_inactive(
        self,
        threshold: float,
        now: datetime | None = None,
    ) -> float | None:
        """Seconds until the pheromone drops to ``threshold``.

        Returns None when it is already at or below the threshold, and
        ``math.inf`` for a non-positive threshold, which is never reached.
        """
        now = now or utc_now()
        if self.current_strength(now) <= threshold:
            return None
        if threshold <= 0:
            return math.inf

        # threshold = I0 * e^(-k t)  =>  t = -ln(threshold / I0) / k
        total = -math.log(threshold / self.initial_strength) / self.decay_rate
        return max(total - self.age_seconds(now), 0.0)

    def half_life(self) -> float:
        """Seconds for the intensity to halve."""
        return math.log(2) / self.decay_rate


class PheromonePayload(BaseModel, Generic[T]):
    """Payload data wrapped with the pheromone that governs its freshness."""

    model_config = ConfigDict(frozen=True)

    data: T
    pheromone: Pheromone

    def intensity(self, now: datetime | None = None) -> float:
        return self.pheromone.current_strength(now)

    def is_fresh(self, threshold: float, now: datetime | None = None) -> bool:
        return self.pheromone.is_active(threshold, now)


# =============================================================================
# Serialization
# =============================================================================

def encode_payload(data: Any, pheromone: Pheromone) -> bytes:
    """Serialize a payload envelope to JSON bytes."""
    envelope = {
        "pheromone": pheromone.model_dump(mode="json"),
        "data": to_jsonable_python(data),
    }
    return orjson.dumps(envelope)


def _load_envelope(raw: bytes, key: str) -> dict[str, Any]:
    try:
        envelope = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"Stored value is not valid JSON: {e}", key=key) from e

    if not isinstance(envelope, dict) or "pheromone" not in envelope:
        raise DecodeError("Stored value is not a pheromone envelope", key=key)
    return envelope


def _validate_pheromone(value: Any, key: str) -> Pheromone:
    try:
        return Pheromone.model_validate(value)
    except ValidationError as e:
        raise DecodeError(f"Invalid pheromone metadata: {e}", key=key) from e


def decode_pheromone(raw: bytes, key: str = "") -> Pheromone:
    """Decode only the pheromone metadata, leaving ``data`` untouched."""
    envelope = _load_envelope(raw, key)
    return _validate_pheromone(envelope["pheromone"], key)


def decode_payload(
    raw: bytes,
    payload_type: type[T] | None = None,
    key: str = "",
) -> PheromonePayload[Any]:
    """Decode a full envelope.

    Without ``payload_type`` the data is returned as plain JSON values.
    With one, the data is validated into that type.
    """
    envelope = _load_envelope(raw, key)
    if "data" not in envelope:
        raise DecodeError("Pheromone envelope has no data field", key=key)

    pheromone = _validate_pheromone(envelope["pheromone"], key)
    data = envelope["data"]

    if payload_type is not None:
        try:
            data = TypeAdapter(payload_type).validate_python(data)
        except ValidationError as e:
            raise DecodeError(
                f"Payload does not match {getattr(payload_type, '__name__', payload_type)}: {e}",
                key=key,
            ) from e

    return PheromonePayload[Any](data=data, pheromone=pheromone)
