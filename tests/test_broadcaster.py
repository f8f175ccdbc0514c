from __future__ import annotations

import json

import pytest

from deadline_notifier.app.broadcaster import (
    CONNECTED_FRAME,
    HEARTBEAT_FRAME,
    EventBroadcaster,
    event_stream,
    format_event,
)


def _drain(subscriber) -> list[str]:
    frames = []
    while subscriber.pending():
        frames.append(subscriber._queue.get_nowait())
    return frames


def test_format_event_uses_compact_json() -> None:
    frame = format_event("deadline", {"id": "1", "name": "Report", "datetime": "2026-10-19T12:00:02.000Z"})

    assert frame == (
        'event: deadline\ndata: {"id":"1","name":"Report","datetime":"2026-10-19T12:00:02.000Z"}\n\n'
    )


def test_subscribe_sends_connected_acknowledgement(broadcaster: EventBroadcaster) -> None:
    subscriber = broadcaster.subscribe()

    assert broadcaster.subscriber_count == 1
    assert _drain(subscriber) == [CONNECTED_FRAME]


def test_broadcast_reaches_every_subscriber(broadcaster: EventBroadcaster) -> None:
    first = broadcaster.subscribe()
    second = broadcaster.subscribe()

    delivered = broadcaster.broadcast("deadline", {"id": "1", "name": "Report"})

    assert delivered == 2
    for subscriber in (first, second):
        frames = _drain(subscriber)
        assert frames[0] == CONNECTED_FRAME
        event_line, data_line = frames[1].strip().split("\n")
        assert event_line == "event: deadline"
        assert json.loads(data_line.removeprefix("data: ")) == {"id": "1", "name": "Report"}


def test_slow_subscriber_is_dropped_without_affecting_others() -> None:
    broadcaster = EventBroadcaster(queue_size=2)
    slow = broadcaster.subscribe()
    fast = broadcaster.subscribe()

    broadcaster.broadcast("deadline", {"id": "1"})
    _drain(fast)
    delivered = broadcaster.broadcast("deadline", {"id": "2"})

    assert delivered == 1
    assert slow.closed is True
    assert broadcaster.subscriber_count == 1
    assert _drain(fast) == [format_event("deadline", {"id": "2"})]


def test_closed_subscriber_is_dropped_on_next_write(broadcaster: EventBroadcaster) -> None:
    gone = broadcaster.subscribe()
    live = broadcaster.subscribe()
    gone.close()

    assert broadcaster.heartbeat() == 1
    assert broadcaster.subscriber_count == 1
    assert _drain(live)[-1] == HEARTBEAT_FRAME


def test_unsubscribe_is_safe_to_repeat(broadcaster: EventBroadcaster) -> None:
    subscriber = broadcaster.subscribe()

    broadcaster.unsubscribe(subscriber)
    broadcaster.unsubscribe(subscriber)

    assert broadcaster.subscriber_count == 0
    assert broadcaster.broadcast("deadline", {"id": "1"}) == 0


@pytest.mark.anyio
async def test_event_stream_yields_frames_and_unsubscribes_on_disconnect(
    broadcaster: EventBroadcaster,
) -> None:
    subscriber = broadcaster.subscribe()
    stream = event_stream(broadcaster, subscriber)

    assert await anext(stream) == CONNECTED_FRAME
    broadcaster.broadcast("deadline", {"id": "1"})
    assert await anext(stream) == format_event("deadline", {"id": "1"})

    await stream.aclose()

    assert broadcaster.subscriber_count == 0
    assert subscriber.closed is True


@pytest.mark.anyio
async def test_close_ends_open_streams(broadcaster: EventBroadcaster) -> None:
    subscriber = broadcaster.subscribe()
    stream = event_stream(broadcaster, subscriber)
    assert await anext(stream) == CONNECTED_FRAME

    broadcaster.close()

    with pytest.raises(StopAsyncIteration):
        await anext(stream)
    assert broadcaster.subscriber_count == 0
