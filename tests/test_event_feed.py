import pytest

from colorgg.events.event_feed import EventFeed


def test_listeners_receive_published_items():
    feed: EventFeed[int] = EventFeed("test")
    first, second = [], []
    feed.add_listener(first.append)
    feed.add_listener(second.append)

    feed.publish(1)

    assert first == [1]
    assert second == [1]
    assert feed.listener_count == 2


def test_failing_listener_is_isolated():
    feed: EventFeed[int] = EventFeed("test")
    received = []

    def broken(item):
        raise RuntimeError("boom")

    feed.add_listener(broken)
    feed.add_listener(received.append)

    feed.publish(7)

    assert received == [7]


def test_remove_listener():
    feed: EventFeed[int] = EventFeed("test")
    received = []
    remove = feed.add_listener(received.append)

    remove()
    remove()
    feed.publish(1)

    assert received == []
    assert feed.listener_count == 0


@pytest.mark.asyncio
async def test_subscription_queue_drops_oldest_when_full():
    feed: EventFeed[int] = EventFeed("test")
    subscription = feed.subscribe(maxsize=2)

    for item in (1, 2, 3):
        feed.publish(item)

    assert await subscription.get() == 2
    assert await subscription.get() == 3


@pytest.mark.asyncio
async def test_closed_subscription_stops_receiving():
    feed: EventFeed[int] = EventFeed("test")
    subscription = feed.subscribe()
    subscription.close()

    feed.publish(1)

    assert subscription.queue.empty()
    assert feed.listener_count == 0
