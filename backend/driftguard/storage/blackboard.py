"""Stigmergic blackboard.

Shared environment for agent coordination. Agents never talk to each
other directly; they deposit pheromone-wrapped payloads here and sense
them later.

Data structure:
- pheromone:{type} -> orjson envelope {"pheromone": {...}, "data": ...}

Each slot holds at most one envelope. A deposit overwrites it
unconditionally; sense and intensity never write. A decayed envelope stays
in place until the next deposit replaces it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, TypeVar

from pydantic import BaseModel

from driftguard.core.physics import (
    Pheromone,
    decode_payload,
    decode_pheromone,
    encode_payload,
    utc_now,
)
from driftguard.core.registry import PheromoneType
from driftguard.policy import SignalPolicy
from driftguard.storage.events import (
    EventChannel,
    PheromoneAction,
    PheromoneEvent,
    Subscription,
)
from driftguard.storage.store import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


class PheromoneStatus(BaseModel):
    """Point-in-time view of one pheromone slot."""

    name: str
    key: str
    intensity: float
    threshold: float
    is_active: bool
    half_life: float | None = None  # None when the slot is empty
    time_until_inactive: float | None = None


class Blackboard:
    """The shared environment for stigmergic coordination.

    The store handle, policy table and event channel are injected; the
    blackboard holds no locks and keeps no per-slot state of its own.
    """

    def __init__(
        self,
        store: KeyValueStore,
        policy: SignalPolicy,
        events: EventChannel | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.policy = policy
        self.events = events or EventChannel()
        self._clock = clock

    # =========================================================================
    # Deposit / sense
    # =========================================================================

    async def deposit(self, kind: PheromoneType, data: Any) -> None:
        """Deposit a fresh pheromone carrying ``data``, replacing the slot.

        Raises:
            StoreError: If the store write fails. Nothing is retried.
        """
        now = self._clock()
        pheromone = Pheromone.with_decay(kind.label, kind.decay_rate(self.policy), now=now)
        await self.store.set(kind.key, encode_payload(data, pheromone))

        intensity = pheromone.current_strength(now)
        logger.info(
            f"DEPOSIT [{kind.label}] intensity={intensity:.2f} "
            f"half-life={pheromone.half_life():.1f}s"
        )
        self._emit(kind, intensity, PheromoneAction.DEPOSITED)

    async def sense(
        self,
        kind: PheromoneType,
        payload_type: type[T] | None = None,
    ) -> T | Any | None:
        """Return the payload only while its pheromone is above threshold.

        Args:
            kind: Pheromone type to sense
            payload_type: Optional type to validate the payload into; plain
                JSON values are returned when omitted

        Returns:
            The payload, or None if the slot is empty or has decayed

        Raises:
            StoreError: If the store read fails
            DecodeError: If the stored value does not match the expected shape
        """
        threshold = kind.threshold(self.policy)
        raw = await self.store.get(kind.key)
        if raw is None:
            logger.debug(f"SENSE [{kind.label}] - no pheromone found")
            return None

        payload = decode_payload(raw, payload_type, key=kind.key)
        now = self._clock()
        intensity = payload.intensity(now)

        if payload.is_fresh(threshold, now):
            logger.debug(
                f"SENSE [{kind.label}] intensity={intensity:.2f} "
                f"(threshold={threshold:.2f}) ACTIVE"
            )
            self._emit(kind, intensity, PheromoneAction.SENSED)
            return payload.data

        logger.debug(
            f"SENSE [{kind.label}] intensity={intensity:.2f} "
            f"(threshold={threshold:.2f}) DECAYED"
        )
        self._emit(kind, intensity, PheromoneAction.DECAYED)
        return None

    # =========================================================================
    # Intensity queries (payload type not needed)
    # =========================================================================

    async def _load_pheromone(self, kind: PheromoneType) -> Pheromone | None:
        raw = await self.store.get(kind.key)
        if raw is None:
            return None
        return decode_pheromone(raw, key=kind.key)

    async def intensity(self, kind: PheromoneType) -> float:
        """Current intensity of a slot, 0.0 if empty. No threshold gating."""
        pheromone = await self._load_pheromone(kind)
        if pheromone is None:
            return 0.0
        return pheromone.current_strength(self._clock())

    async def all_intensities(self) -> list[tuple[str, float]]:
        """(label, intensity) for every pheromone type, in declaration order."""
        result = []
        for kind in PheromoneType:
            result.append((kind.label, await self.intensity(kind)))
        return result

    async def inspect(self, kind: PheromoneType) -> PheromoneStatus:
        """Intensity, threshold and timing for one slot."""
        threshold = kind.threshold(self.policy)
        pheromone = await self._load_pheromone(kind)
        if pheromone is None:
            return PheromoneStatus(
                name=kind.label,
                key=kind.key,
                intensity=0.0,
                threshold=threshold,
                is_active=False,
            )

        now = self._clock()
        intensity = pheromone.current_strength(now)
        return PheromoneStatus(
            name=kind.label,
            key=kind.key,
            intensity=intensity,
            threshold=threshold,
            is_active=intensity > threshold,
            half_life=pheromone.half_life(),
            time_until_inactive=pheromone.time_until_inactive(threshold, now),
        )

    async def status(self) -> list[PheromoneStatus]:
        """Status of every pheromone type, in declaration order."""
        return [await self.inspect(kind) for kind in PheromoneType]

    # =========================================================================
    # Events / maintenance
    # =========================================================================

    def subscribe(self) -> Subscription:
        """Subscribe to pheromone events (dashboard, tests, ...)."""
        return self.events.subscribe()

    def _emit(self, kind: PheromoneType, intensity: float, action: PheromoneAction) -> None:
        self.events.publish(
            PheromoneEvent(pheromone_type=kind.label, intensity=intensity, action=action)
        )

    async def clear(self) -> None:
        """Delete every pheromone slot. For tests and manual resets only."""
        await self.store.delete(*(kind.key for kind in PheromoneType))
        logger.warning("All pheromones cleared")
