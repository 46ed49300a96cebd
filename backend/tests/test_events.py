"""Tests for the pheromone event channel."""

import asyncio

import pytest

from driftguard.storage.events import (
    EventChannel,
    PheromoneAction,
    PheromoneEvent,
)


def make_event(intensity: float = 1.0, action: PheromoneAction = PheromoneAction.DEPOSITED):
    return PheromoneEvent(pheromone_type="Price Freshness", intensity=intensity, action=action)


class TestEventChannel:
    def test_publish_without_subscribers_is_noop(self):
        channel = EventChannel()
        channel.publish(make_event())
        assert channel.subscriber_count == 0

    def test_each_subscriber_gets_every_event(self):
        channel = EventChannel()
        first = channel.subscribe()
        second = channel.subscribe()

        channel.publish(make_event(0.9))
        channel.publish(make_event(0.8))

        assert [first.get_nowait().intensity, first.get_nowait().intensity] == [0.9, 0.8]
        assert [second.get_nowait().intensity, second.get_nowait().intensity] == [0.9, 0.8]
        assert first.get_nowait() is None

    def test_late_subscriber_misses_earlier_events(self):
        channel = EventChannel()
        channel.publish(make_event())
        subscription = channel.subscribe()
        assert subscription.get_nowait() is None

    def test_overflow_drops_oldest(self):
        channel = EventChannel(buffer_size=3)
        subscription = channel.subscribe()

        for i in range(5):
            channel.publish(make_event(i / 10))

        assert subscription.pending() == 3
        assert subscription.dropped == 2
        received = [subscription.get_nowait().intensity for _ in range(3)]
        assert received == [0.2, 0.3, 0.4]

    def test_slow_subscriber_does_not_affect_others(self):
        channel = EventChannel(buffer_size=2)
        slow = channel.subscribe()
        fast = channel.subscribe()

        for i in range(4):
            channel.publish(make_event(i / 10))
            assert fast.get_nowait().intensity == i / 10

        assert slow.dropped == 2
        assert fast.dropped == 0

    def test_close_unsubscribes(self):
        channel = EventChannel()
        subscription = channel.subscribe()
        subscription.close()
        subscription.close()

        channel.publish(make_event())
        assert channel.subscriber_count == 0
        assert subscription.get_nowait() is None

    def test_invalid_buffer_size(self):
        with pytest.raises(ValueError):
            EventChannel(buffer_size=0)

    @pytest.mark.asyncio
    async def test_get_with_timeout_returns_none(self):
        subscription = EventChannel().subscribe()
        assert await subscription.get(timeout=0.01) is None

    @pytest.mark.asyncio
    async def test_get_waits_for_publish(self):
        channel = EventChannel()
        subscription = channel.subscribe()

        async def publish_later():
            await asyncio.sleep(0.01)
            channel.publish(make_event(0.5, PheromoneAction.SENSED))

        task = asyncio.create_task(publish_later())
        event = await subscription.get(timeout=1.0)
        await task

        assert event.action == PheromoneAction.SENSED
        assert event.intensity == 0.5

    @pytest.mark.asyncio
    async def test_async_context_manager_and_iteration(self):
        channel = EventChannel()
        received = []

        async with channel.subscribe() as subscription:
            assert channel.subscriber_count == 1
            channel.publish(make_event(0.7))
            channel.publish(make_event(0.6))
            async for event in subscription:
                received.append(event.intensity)
                if len(received) == 2:
                    break

        assert received == [0.7, 0.6]
        assert channel.subscriber_count == 0
