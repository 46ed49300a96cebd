"""Shared fixtures: in-memory store, controllable clock, default policy."""

from datetime import datetime, timedelta, timezone

import pytest

from driftguard.policy import PolicyConfig
from driftguard.storage import Blackboard, EventChannel


class MemoryStore:
    """Dict-backed KeyValueStore."""

    def __init__(self):
        self.data: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self.data[key] = value

    async def delete(self, *keys: str) -> int:
        count = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                count += 1
        return count


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy_config():
    return PolicyConfig()


@pytest.fixture
def policy(policy_config):
    return policy_config.resolve()


@pytest.fixture
def board(store, policy, clock):
    return Blackboard(store=store, policy=policy, events=EventChannel(16), clock=clock)
