"""
Unit tests for progress tracking and cancellation flags
"""

import asyncio

import pytest

from rqlitebrowser.transfer.progress import (
    CancellationFlag,
    ExportProgress,
    ImportProgress,
    Phase,
    ProgressTracker,
)
from rqlitebrowser.utils.exceptions import TransferStateError


def test_cancellation_flag():
    flag = CancellationFlag()
    assert not flag
    flag.set()
    flag.set()
    assert flag
    assert flag.is_set()


def test_phase_ranks():
    assert Phase.PARSING.rank == Phase.FETCHING.rank == 0
    assert Phase.INSERTING.rank == Phase.FORMATTING.rank == 1
    assert all(p.is_terminal for p in (Phase.COMPLETE, Phase.ERROR, Phase.CANCELLED))
    assert not Phase.INSERTING.is_terminal


@pytest.mark.asyncio
async def test_phase_never_moves_backwards():
    tracker = ProgressTracker(ImportProgress())
    tracker.update(Phase.INSERTING, rows_inserted=10)
    snapshot = tracker.update(Phase.PARSING, rows_parsed=50)

    assert snapshot.phase is Phase.INSERTING
    assert snapshot.rows_parsed == 50
    assert snapshot.rows_inserted == 10


@pytest.mark.asyncio
async def test_terminal_phase_is_final():
    tracker = ProgressTracker(ExportProgress())
    tracker.finish(Phase.CANCELLED)

    with pytest.raises(TransferStateError):
        tracker.update(rows_fetched=1)
    with pytest.raises(TransferStateError):
        tracker.finish(Phase.COMPLETE)
    assert tracker.phase is Phase.CANCELLED


@pytest.mark.asyncio
async def test_finish_requires_terminal_phase():
    tracker = ProgressTracker(ImportProgress())
    with pytest.raises(TransferStateError):
        tracker.finish(Phase.INSERTING)


@pytest.mark.asyncio
async def test_snapshots_are_copies():
    tracker = ProgressTracker(ImportProgress())
    first = tracker.update(rows_parsed=1)
    tracker.update(rows_parsed=2)
    first.rows_parsed = 99

    assert tracker.snapshot().rows_parsed == 2


@pytest.mark.asyncio
async def test_callback_errors_do_not_propagate():
    seen = []

    def callback(snapshot):
        seen.append(snapshot.rows_parsed)
        raise RuntimeError("ui is gone")

    tracker = ProgressTracker(ImportProgress(), callback)
    tracker.update(rows_parsed=3)
    tracker.finish(Phase.COMPLETE)

    assert seen == [3, 3]


@pytest.mark.asyncio
async def test_every_consumer_sees_every_snapshot():
    tracker = ProgressTracker(ImportProgress())

    async def consume():
        return [(s.phase, s.rows_parsed) async for s in tracker.updates()]

    consumers = [asyncio.create_task(consume()) for _ in range(2)]
    await asyncio.sleep(0)
    tracker.update(rows_parsed=1)
    tracker.update(Phase.INSERTING, rows_inserted=1)
    tracker.finish(Phase.COMPLETE)

    expected = [
        (Phase.PARSING, 0),
        (Phase.PARSING, 1),
        (Phase.INSERTING, 1),
        (Phase.COMPLETE, 1),
    ]
    assert await asyncio.gather(*consumers) == [expected, expected]
    assert tracker._subscribers == []


@pytest.mark.asyncio
async def test_late_consumer_starts_from_current_state():
    tracker = ProgressTracker(ImportProgress())
    tracker.update(rows_parsed=1)
    tracker.finish(Phase.COMPLETE)

    phases = [snapshot.phase async for snapshot in tracker.updates()]
    assert phases == [Phase.COMPLETE]


@pytest.mark.asyncio
async def test_nothing_buffered_without_consumers():
    seen = []
    tracker = ProgressTracker(ImportProgress(), seen.append)
    for i in range(1000):
        tracker.update(rows_parsed=i)
    tracker.finish(Phase.COMPLETE)

    assert len(seen) == 1001
    assert tracker._subscribers == []
