"""Pheromone event fan-out for observers such as the dashboard.

Best-effort telemetry. Each subscriber owns a bounded queue; when it falls
behind, its oldest buffered event is dropped to make room for the newest.
Publishing never blocks and never raises into deposit/sense.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 100


class PheromoneAction(str, Enum):
    """What happened to a pheromone."""

    DEPOSITED = "Deposited"
    SENSED = "Sensed"
    DECAYED = "Decayed"


class PheromoneEvent(BaseModel):
    """Event emitted when pheromone state is written or read."""

    model_config = ConfigDict(frozen=True)

    pheromone_type: str  # display label
    intensity: float
    action: PheromoneAction


class Subscription:
    """Independent receive handle over an EventChannel.

    Usable as an async iterator and as an async context manager that
    unsubscribes on exit.
    """

    def __init__(self, channel: EventChannel, maxsize: int):
        self._channel = channel
        self._queue: asyncio.Queue[PheromoneEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def _offer(self, event: PheromoneEvent) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    def pending(self) -> int:
        """Number of buffered events."""
        return self._queue.qsize()

    async def get(self, timeout: float | None = None) -> PheromoneEvent | None:
        """Wait for the next event; None if ``timeout`` elapses first."""
        if timeout is None:
            return await self._queue.get()
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def get_nowait(self) -> PheromoneEvent | None:
        """Next buffered event, or None if the buffer is empty."""
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def close(self) -> None:
        """Stop receiving events."""
        if not self.closed:
            self.closed = True
            self._channel._unsubscribe(self)
            if self.dropped:
                logger.debug(f"Subscription closed after dropping {self.dropped} events")

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> PheromoneEvent:
        if self.closed:
            raise StopAsyncIteration
        return await self.get()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class EventChannel:
    """Fan-out of pheromone events to any number of subscribers."""

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE):
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be at least 1, got {buffer_size}")
        self._buffer_size = buffer_size
        self._subscribers: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Open a new subscription; it only sees events published afterwards."""
        subscription = Subscription(self, self._buffer_size)
        self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def publish(self, event: PheromoneEvent) -> None:
        """Deliver ``event`` to every subscriber, dropping on overflow."""
        for subscription in list(self._subscribers):
            try:
                subscription._offer(event)
            except Exception as e:
                # Telemetry only: a broken subscriber must not fail the caller
                logger.warning(f"Dropping event for subscriber: {e}")
