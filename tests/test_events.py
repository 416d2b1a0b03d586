from __future__ import annotations

import json

import pytest

from playground_runtime.core.cleanup import attempt
from playground_runtime.core.events import DevExitEvent, DevLogEvent, EventBus, format_sse


def test_subscribers_only_see_later_events():
    bus = EventBus()
    bus.publish(DevLogEvent(id="a", chunk="early"))
    with bus.subscribe() as subscription:
        bus.publish(DevLogEvent(id="a", chunk="late"))
        assert subscription.pending() == [DevLogEvent(id="a", chunk="late")]
    assert bus.subscriber_count == 0


def test_channel_and_id_filters():
    bus = EventBus()
    exits = bus.subscribe(["exit"])
    only_b = bus.subscribe(playground_id="b")
    everything = bus.subscribe()

    bus.publish(DevLogEvent(id="a", chunk="x"))
    bus.publish(DevExitEvent(id="b", code=0, signal=None))

    assert exits.pending() == [DevExitEvent(id="b", code=0, signal=None)]
    assert only_b.pending() == [DevExitEvent(id="b", code=0, signal=None)]
    assert len(everything.pending()) == 2


def test_unknown_channel_is_rejected():
    with pytest.raises(ValueError):
        EventBus().subscribe(["stdout"])


def test_format_sse():
    frame = format_sse(DevExitEvent(id="demo", code=None, signal="SIGTERM"))
    lines = frame.split("\n")
    assert lines[0] == "event: dev.exit"
    assert json.loads(lines[1].removeprefix("data: ")) == {"id": "demo", "code": None, "signal": "SIGTERM"}
    assert frame.endswith("\n\n")


@pytest.mark.asyncio
async def test_attempt_records_failures_without_raising():
    import logging

    logger = logging.getLogger("test-cleanup")

    def boom():
        raise RuntimeError("nope")

    async def fine():
        return None

    failed = await attempt("boom", boom, logger)
    ok = await attempt("fine", fine, logger)
    assert (failed.ok, failed.error) == (False, "nope")
    assert ok.ok and ok.error is None
