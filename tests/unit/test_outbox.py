# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from relay.outbox import Outbox


def test_fifo_across_media_and_control():
    box = Outbox(max_media=4, max_control=4)

    box.offer_control({"type": "hello"})
    box.offer_media(b"\x01a")
    box.offer_control({"type": "joined"})
    box.offer_media(b"\x01b")

    assert [box.get_nowait() for _ in range(4)] == [
        {"type": "hello"},
        b"\x01a",
        {"type": "joined"},
        b"\x01b",
    ]
    assert box.get_nowait() is None


def test_media_overflow_drops_newest_and_keeps_control_flowing():
    box = Outbox(max_media=2, max_control=2)

    assert box.offer_media(b"1")
    assert box.offer_media(b"2")
    assert not box.offer_media(b"3")

    # Control has its own cap
    assert box.offer_control({"type": "stream-ended"})

    assert box.drops.media_overflow == 1
    assert box.get_nowait() == b"1"
    assert box.offer_media(b"4")
    assert [box.get_nowait() for _ in range(3)] == [b"2", {"type": "stream-ended"}, b"4"]


def test_control_overflow_is_counted_separately():
    box = Outbox(max_media=1, max_control=1)
    assert box.offer_control({"n": 1})
    assert not box.offer_control({"n": 2})

    snap = box.snapshot()
    assert snap["dropped_control_overflow"] == 1
    assert snap["dropped_media_overflow"] == 0
    assert snap["dropped_total"] == 1


def test_terminal_control_skips_the_cap():
    box = Outbox(max_media=1, max_control=1)
    assert box.offer_control({"n": 1})
    assert box.offer_control({"type": "stream-ended"}, terminal=True)

    assert box.drops.control_overflow == 0
    assert [box.get_nowait(), box.get_nowait()] == [{"n": 1}, {"type": "stream-ended"}]

    box.close()
    assert not box.offer_control({"type": "stream-ended"}, terminal=True)
    assert box.drops.closed == 1


def test_closed_outbox_drains_then_returns_none():
    box = Outbox()
    box.offer_control({"type": "bye"})
    box.close()

    assert not box.offer_media(b"late")
    assert box.drops.closed == 1

    async def drain() -> list:
        return [await box.get(), await box.get()]

    assert asyncio.run(drain()) == [{"type": "bye"}, None]


def test_get_wakes_on_offer():
    async def scenario():
        box = Outbox()
        getter = asyncio.create_task(box.get())
        await asyncio.sleep(0)
        assert not getter.done()
        box.offer_media(b"\x02frame")
        return await asyncio.wait_for(getter, timeout=1.0)

    assert asyncio.run(scenario()) == b"\x02frame"


def test_invalid_caps():
    with pytest.raises(ValueError):
        Outbox(max_media=0)
