"""
Progress and cancellation protocol shared by the import and export pipelines.

One tracker per pipeline invocation. Only the orchestrator mutates it; readers
get copies (snapshots) through the callback or the ``updates()`` iterator.
"""

import asyncio
import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, Generic, List, Optional, TypeVar, Union

from loguru import logger

from ..utils.exceptions import TransferStateError


class Phase(str, Enum):
    PARSING = "parsing"
    FETCHING = "fetching"
    INSERTING = "inserting"
    FORMATTING = "formatting"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETE, Phase.ERROR, Phase.CANCELLED)

    @property
    def rank(self) -> int:
        if self.is_terminal:
            return 2
        if self in (Phase.INSERTING, Phase.FORMATTING):
            return 1
        return 0


@dataclass
class ImportProgress:
    phase: Phase = Phase.PARSING
    rows_parsed: int = 0
    rows_inserted: int = 0
    bytes_processed: int = 0
    total_bytes: int = 0
    error: Optional[str] = None


@dataclass
class ExportProgress:
    phase: Phase = Phase.FETCHING
    rows_fetched: int = 0
    rows_formatted: int = 0
    total_rows: int = 0
    error: Optional[str] = None


ProgressT = TypeVar("ProgressT", ImportProgress, ExportProgress)
ProgressCallback = Callable[[Union[ImportProgress, ExportProgress]], None]


class CancellationFlag:
    """Set-once flag polled at iteration boundaries"""

    __slots__ = ("_set",)

    def __init__(self):
        self._set = False

    def set(self) -> None:
        self._set = True

    def is_set(self) -> bool:
        return self._set

    def __bool__(self) -> bool:
        return self._set


class ProgressTracker(Generic[ProgressT]):
    """Owns one progress state and publishes snapshots of it.

    Phases only move forward: a request to go back to an earlier phase keeps
    the current phase while still applying the counters. Terminal phases are
    final; any later update raises ``TransferStateError``.
    """

    def __init__(
        self,
        state: ProgressT,
        callback: Optional[ProgressCallback] = None,
    ):
        self._state = state
        self._callback = callback
        self._subscribers: List["asyncio.Queue[ProgressT]"] = []

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def is_terminal(self) -> bool:
        return self._state.phase.is_terminal

    def snapshot(self) -> ProgressT:
        return dataclasses.replace(self._state)

    def update(self, phase: Optional[Phase] = None, **changes) -> ProgressT:
        if self.is_terminal:
            raise TransferStateError(
                f"Cannot update progress after terminal phase {self.phase.value}"
            )
        if phase is not None and phase.rank >= self._state.phase.rank:
            self._state.phase = phase
        for name, value in changes.items():
            setattr(self._state, name, value)
        return self._publish()

    def finish(self, phase: Phase, **changes) -> ProgressT:
        if not phase.is_terminal:
            raise TransferStateError(f"{phase.value} is not a terminal phase")
        if self.is_terminal:
            raise TransferStateError(
                f"Progress already finished as {self.phase.value}"
            )
        self._state.phase = phase
        for name, value in changes.items():
            setattr(self._state, name, value)
        return self._publish()

    def _publish(self) -> ProgressT:
        snapshot = self.snapshot()
        for queue in self._subscribers:
            queue.put_nowait(snapshot)
        if self._callback is not None:
            try:
                self._callback(snapshot)
            except Exception as e:
                # A broken UI callback must not take the pipeline down
                logger.warning(f"Progress callback raised: {e}")
        return snapshot

    async def updates(self) -> AsyncIterator[ProgressT]:
        """Yield snapshots as they are published, ending after a terminal one.

        Every consumer gets its own stream, starting with the state current
        when iteration begins. Nothing is buffered for a tracker nobody
        iterates.
        """
        queue: "asyncio.Queue[ProgressT]" = asyncio.Queue()
        queue.put_nowait(self.snapshot())
        self._subscribers.append(queue)
        try:
            while True:
                snapshot = await queue.get()
                yield snapshot
                if snapshot.phase.is_terminal:
                    return
        finally:
            self._subscribers.remove(queue)
