"""Blackboard storage layer."""

from driftguard.storage.store import KeyValueStore, RedisStore
from driftguard.storage.events import (
    EventChannel,
    PheromoneAction,
    PheromoneEvent,
    Subscription,
)
from driftguard.storage.blackboard import Blackboard, PheromoneStatus
from driftguard.storage import state_cache

__all__ = [
    "KeyValueStore",
    "RedisStore",
    "EventChannel",
    "PheromoneAction",
    "PheromoneEvent",
    "Subscription",
    "Blackboard",
    "PheromoneStatus",
    "state_cache",
]
