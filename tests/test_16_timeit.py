from __future__ import annotations

import time

from tts_relay.utils.timeit import timeit


def test_records_timing():
    with timeit("sleep", meta={"n": 1}) as t:
        time.sleep(0.01)

    assert t.timing is not None
    assert t.timing.name == "sleep"
    assert t.timing.meta == {"n": 1}
    assert t.timing.seconds >= 0.01
    assert t.seconds == t.timing.seconds


def test_seconds_inside_block():
    with timeit("partial") as t:
        assert t.timing is None
        time.sleep(0.005)
        assert t.seconds > 0


def test_timing_recorded_on_exception():
    t = timeit("boom")
    try:
        with t:
            raise RuntimeError("x")
    except RuntimeError:
        pass
    assert t.timing is not None
