"""
Dedicated worker threads that talk to the event loop only through messages.

Each pipeline invocation gets its own ``Worker``. The orchestrator (a
coroutine on the caller's event loop) posts messages into the worker's inbox
and awaits messages from its outbox. Payloads are handed over by value: the
worker builds a fresh list for every batch and never touches it again.
"""

import asyncio
import queue
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from loguru import logger


class MessageKind(str, Enum):
    # worker -> orchestrator
    HEADERS = "headers"
    BATCH = "batch"
    CHUNK = "chunk"
    PROGRESS = "progress"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"
    # orchestrator -> worker
    ROWS = "rows"
    FINISH = "finish"
    CANCEL = "cancel"


@dataclass(frozen=True)
class WorkerMessage:
    kind: MessageKind
    headers: Tuple[str, ...] = ()
    batch: List[Any] = field(default_factory=list)
    chunk: str = ""
    total_rows: int = 0
    bytes_processed: int = 0
    total_bytes: int = 0
    error: Optional[str] = None


WorkerTarget = Callable[["Worker"], None]

_SLOT_POLL_SECONDS = 0.05


class Worker:
    """Runs ``target(worker)`` on its own thread.

    Orchestrator side: ``start``, ``post``, ``receive``, ``release_slot``,
    ``terminate``. Worker side (called from ``target``): ``emit``,
    ``next_message``, ``cancelled``, ``acquire_slot``.

    ``max_pending`` bounds how many batches may be emitted but not yet
    released by the orchestrator; the worker blocks in ``acquire_slot``
    until a slot frees up or the worker is cancelled.
    """

    def __init__(
        self,
        name: str,
        target: WorkerTarget,
        max_pending: Optional[int] = None,
    ):
        self.name = name
        self._target = target
        self._loop = asyncio.get_running_loop()
        self._outbox: "asyncio.Queue[WorkerMessage]" = asyncio.Queue()
        self._inbox: "queue.Queue[WorkerMessage]" = queue.Queue()
        # Data messages seen while polling for cancellation, kept in order
        self._backlog: "deque[WorkerMessage]" = deque()
        self._slots = threading.Semaphore(max_pending) if max_pending else None
        self._terminated = threading.Event()
        self._cancelled = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    # -- orchestrator side -------------------------------------------------

    def start(self) -> None:
        logger.debug(f"Starting worker {self.name}")
        self._thread.start()

    def post(self, message: WorkerMessage) -> None:
        if not self._terminated.is_set():
            self._inbox.put(message)

    async def receive(self) -> WorkerMessage:
        return await self._outbox.get()

    def release_slot(self) -> None:
        if self._slots is not None:
            self._slots.release()

    def terminate(self) -> None:
        """Stop the worker; anything it emits afterwards is discarded"""
        if self._terminated.is_set():
            return
        self._inbox.put(WorkerMessage(MessageKind.CANCEL))
        self._terminated.set()
        logger.debug(f"Terminated worker {self.name}")

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    # -- worker side -------------------------------------------------------

    def emit(self, message: WorkerMessage) -> None:
        if self._terminated.is_set():
            return
        try:
            self._loop.call_soon_threadsafe(self._outbox.put_nowait, message)
        except RuntimeError:
            # Event loop already closed; nobody is listening any more
            self._terminated.set()

    def next_message(self, timeout: Optional[float] = None) -> Optional[WorkerMessage]:
        """Block for the next inbox message (None on timeout)"""
        if self._backlog:
            return self._backlog.popleft()
        try:
            message = self._inbox.get(timeout=timeout)
        except queue.Empty:
            return None
        if message.kind == MessageKind.CANCEL:
            self._cancelled = True
        return message

    @property
    def cancelled(self) -> bool:
        """Drain pending control messages and report whether to stop"""
        if self._terminated.is_set():
            return True
        while not self._cancelled:
            try:
                message = self._inbox.get_nowait()
            except queue.Empty:
                break
            if message.kind == MessageKind.CANCEL:
                self._cancelled = True
            else:
                self._backlog.append(message)
        return self._cancelled

    def acquire_slot(self) -> bool:
        """Wait for room to emit another batch; False if cancelled meanwhile"""
        if self._slots is None:
            return not self.cancelled
        while not self._slots.acquire(timeout=_SLOT_POLL_SECONDS):
            if self.cancelled:
                return False
        return True

    def _run(self) -> None:
        try:
            self._target(self)
        except Exception as e:
            logger.exception(f"Worker {self.name} failed")
            self.emit(WorkerMessage(MessageKind.ERROR, error=str(e) or type(e).__name__))


async def wait_first_error(*tasks: "asyncio.Task") -> None:
    """Wait for all tasks; on the first failure cancel the rest and re-raise"""
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        raise
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    for task in done:
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()
