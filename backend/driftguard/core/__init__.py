"""Pheromone model and type registry.

Pure logic with no I/O dependencies (no Redis, no network access).
"""

from driftguard.core.physics import (
    Pheromone,
    PheromonePayload,
    decode_payload,
    decode_pheromone,
    encode_payload,
    utc_now,
)
from driftguard.core.registry import KEY_PREFIX_PHEROMONE, PheromoneType

__all__ = [
    "Pheromone",
    "PheromonePayload",
    "PheromoneType",
    "KEY_PREFIX_PHEROMONE",
    "decode_payload",
    "decode_pheromone",
    "encode_payload",
    "utc_now",
]
