from __future__ import annotations

import asyncio
import logging

from sensefuse.core.assembler import assemble
from sensefuse.core.models import AlignedPair, LocationSnapshot, MotionSample
from sensefuse.sinks import BatchDispatcher, MemorySink


def _batch(size: int, start: float = 0.0):
    pairs = [
        AlignedPair(
            accel=MotionSample(0.0, 0.0, 1.0, start + i * 10),
            gyro=MotionSample(0.1, 0.1, 0.1, start + i * 10 + 5),
        )
        for i in range(size)
    ]
    return assemble(pairs, LocationSnapshot.from_fix(52.0, 4.0, 0, accuracy=5.0))


class _FirstCallWaitsSink:
    """Holds the first insert until released so later ones finish first."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.completed = []
        self._calls = 0

    async def insert(self, table, rows) -> None:
        self._calls += 1
        call = self._calls
        if call == 1:
            await self.release.wait()
        self.completed.append(call)


def test_dispatch_returns_before_sink_completes() -> None:
    async def scenario():
        gate = asyncio.Event()
        sink = MemorySink(gate=gate)
        dispatcher = BatchDispatcher(sink, "data")

        task = dispatcher.dispatch(_batch(3))
        await asyncio.sleep(0)
        assert task is not None and not task.done()
        assert dispatcher.in_flight == 1
        assert sink.batches == []

        gate.set()
        assert await dispatcher.wait_idle(1.0)
        return sink, dispatcher

    sink, dispatcher = asyncio.run(scenario())

    assert len(sink.rows("data")) == 3
    assert dispatcher.in_flight == 0
    assert dispatcher.succeeded == 1


def test_sink_failure_is_logged_and_not_retried(caplog) -> None:
    async def scenario():
        sink = MemorySink(fail_with="network unreachable")
        dispatcher = BatchDispatcher(sink, "data")
        dispatcher.dispatch(_batch(2))
        await dispatcher.wait_idle(1.0)
        return sink, dispatcher

    with caplog.at_level(logging.ERROR, logger="sensefuse.sinks.base"):
        sink, dispatcher = asyncio.run(scenario())

    assert "network unreachable" in caplog.text
    assert sink.attempts == 1
    assert dispatcher.failed == 1
    assert sink.batches == []


def test_batches_may_complete_out_of_order() -> None:
    async def scenario():
        sink = _FirstCallWaitsSink()
        dispatcher = BatchDispatcher(sink, "data")
        dispatcher.dispatch(_batch(1))
        dispatcher.dispatch(_batch(1, start=100))
        await asyncio.sleep(0.01)
        assert dispatcher.in_flight == 1
        sink.release.set()
        await dispatcher.wait_idle(1.0)
        return sink, dispatcher

    sink, dispatcher = asyncio.run(scenario())

    assert sink.completed == [2, 1]
    assert dispatcher.succeeded == 2


def test_empty_batch_is_not_dispatched() -> None:
    async def scenario():
        sink = MemorySink()
        dispatcher = BatchDispatcher(sink, "data")
        return dispatcher.dispatch([]), sink

    task, sink = asyncio.run(scenario())

    assert task is None
    assert sink.attempts == 0


def test_wait_idle_times_out_when_sink_hangs() -> None:
    async def scenario():
        sink = MemorySink(gate=asyncio.Event())
        dispatcher = BatchDispatcher(sink, "data")
        dispatcher.dispatch(_batch(1))
        return await dispatcher.wait_idle(0.05)

    assert asyncio.run(scenario()) is False
