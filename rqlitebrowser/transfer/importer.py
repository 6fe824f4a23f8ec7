"""
Streaming bulk import of CSV and SQL files into rqlite.

A worker thread reads and parses the source in chunks and emits batches.
The orchestrator, a coroutine on the caller's event loop, queues those
batches and sends them to rqlite one batched call at a time, while the worker
keeps parsing ahead.
"""

import asyncio
from collections import deque
from functools import partial
from typing import Any, Callable, Deque, List, Optional, Sequence, Tuple, Union

from loguru import logger

from ..config.settings import TransferSettings
from ..database.client import RqliteClient
from ..database.statements import ParameterizedStatement, build_insert_statement
from ..utils.exceptions import ValidationError, WorkerError
from .csv_format import parse_csv_line
from .decoder import ByteSource, LineSplitter, StatementSplitter, StreamDecoder
from .formats import TransferFormat, resolve_format
from .progress import (
    CancellationFlag,
    ImportProgress,
    Phase,
    ProgressCallback,
    ProgressTracker,
)
from .sql_format import iter_insert_statements
from .worker import MessageKind, Worker, WorkerMessage, wait_first_error

Row = Tuple[Any, ...]


class _BatchEmitter:
    """Worker-side batch accumulator"""

    def __init__(self, worker: Worker, batch_size: int, total_bytes: int):
        self.worker = worker
        self.batch_size = batch_size
        self.total_bytes = total_bytes
        self.bytes_processed = 0
        self.total_rows = 0
        self._batch: List[Row] = []

    def add(self, row: Row) -> bool:
        self._batch.append(row)
        self.total_rows += 1
        if len(self._batch) >= self.batch_size:
            return self.flush()
        return True

    def flush(self) -> bool:
        """Emit the pending batch; False if cancelled while waiting for room"""
        if not self._batch:
            return True
        if not self.worker.acquire_slot():
            return False
        batch, self._batch = self._batch, []
        self.worker.emit(
            WorkerMessage(
                MessageKind.BATCH,
                batch=batch,
                total_rows=self.total_rows,
                bytes_processed=self.bytes_processed,
                total_bytes=self.total_bytes,
            )
        )
        return True

    def progress(self) -> None:
        self.worker.emit(
            WorkerMessage(
                MessageKind.PROGRESS,
                total_rows=self.total_rows,
                bytes_processed=self.bytes_processed,
                total_bytes=self.total_bytes,
            )
        )

    def finish(self) -> None:
        self.worker.emit(WorkerMessage(MessageKind.COMPLETE, total_rows=self.total_rows))

    def cancelled(self) -> None:
        self.worker.emit(WorkerMessage(MessageKind.CANCELLED, total_rows=self.total_rows))


def _fit_row(values: Sequence[str], width: int) -> Tuple[Optional[str], ...]:
    """Pad short rows with NULL and cut long ones to the header width"""
    if len(values) < width:
        return tuple(values) + (None,) * (width - len(values))
    return tuple(values[:width])


def _run_parser(
    worker: Worker,
    source: ByteSource,
    decoder: StreamDecoder,
    emitter: _BatchEmitter,
    consume: Callable[[List[str]], bool],
) -> None:
    """Shared chunk loop; ``consume(units)`` returns False once cancelled"""
    for chunk in source.chunks():
        if worker.cancelled:
            break
        emitter.bytes_processed += len(chunk)
        if not consume(decoder.feed(chunk)):
            break
        emitter.progress()
    else:
        if consume(decoder.finish()) and emitter.flush():
            emitter.finish()
            return
    emitter.cancelled()


class _CsvConsumer:
    def __init__(self, worker: Worker, emitter: _BatchEmitter, strict: bool):
        self.worker = worker
        self.emitter = emitter
        self.strict = strict
        self.headers: Optional[Tuple[str, ...]] = None
        self.ragged_rows = 0

    def __call__(self, lines: List[str]) -> bool:
        for line in lines:
            if self.worker.cancelled:
                return False
            values = parse_csv_line(line, strict=self.strict)
            if self.headers is None:
                self.headers = tuple(values)
                self.worker.emit(WorkerMessage(MessageKind.HEADERS, headers=self.headers))
                continue
            if len(values) != len(self.headers):
                self.ragged_rows += 1
            if not self.emitter.add(_fit_row(values, len(self.headers))):
                return False
        return True


def parse_csv_source(
    worker: Worker,
    source: ByteSource,
    batch_size: int,
    encoding: str = "utf-8-sig",
    strict: bool = False,
) -> None:
    """Worker target: header line first, then batches of row tuples"""
    emitter = _BatchEmitter(worker, batch_size, source.total_bytes)
    consumer = _CsvConsumer(worker, emitter, strict)
    decoder = StreamDecoder(LineSplitter("\n"), encoding)
    _run_parser(worker, source, decoder, emitter, consumer)
    if consumer.ragged_rows:
        logger.warning(
            f"{consumer.ragged_rows} row(s) in {source.name} did not match the "
            f"header width and were padded or truncated"
        )


class _SqlConsumer:
    def __init__(self, worker: Worker, emitter: _BatchEmitter):
        self.worker = worker
        self.emitter = emitter

    def __call__(self, statements: List[str]) -> bool:
        for statement in iter_insert_statements(statements):
            if self.worker.cancelled:
                return False
            if not self.emitter.add((statement,)):
                return False
        return True


def parse_sql_source(
    worker: Worker,
    source: ByteSource,
    batch_size: int,
    encoding: str = "utf-8-sig",
) -> None:
    """Worker target: batches of single-element tuples holding INSERT text"""
    emitter = _BatchEmitter(worker, batch_size, source.total_bytes)
    decoder = StreamDecoder(StatementSplitter(";"), encoding)
    _run_parser(worker, source, decoder, emitter, _SqlConsumer(worker, emitter))


class ImportJob:
    """Handle for one running import.

    ``cancel()`` is the only way to stop it. ``await job.result()`` (or
    ``await job``) returns the final ``ImportProgress``, or raises when the
    import fails; rows inserted before the failure stay committed.
    """

    def __init__(
        self,
        client: RqliteClient,
        source: ByteSource,
        table: str,
        fmt: TransferFormat,
        batch_size: int,
        settings: TransferSettings,
        progress_callback: Optional[ProgressCallback] = None,
        strict: bool = False,
    ):
        self.client = client
        self.source = source
        self.table = table
        self.format = fmt
        self.batch_size = batch_size
        self.settings = settings
        self.strict = strict

        self._tracker: ProgressTracker[ImportProgress] = ProgressTracker(
            ImportProgress(total_bytes=source.total_bytes), progress_callback
        )
        self._cancel = CancellationFlag()
        self._worker: Optional[Worker] = None
        self._pending: Deque[List[Row]] = deque()
        self._headers: Tuple[str, ...] = ()
        self._parsing_done = False
        self._total_rows = 0
        self._rows_inserted = 0
        self._wakeup = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def __await__(self):
        return self._task.__await__()

    @property
    def progress(self) -> ImportProgress:
        return self._tracker.snapshot()

    def updates(self):
        return self._tracker.updates()

    async def result(self) -> ImportProgress:
        return await self._task

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        if self._cancel.is_set() or self._tracker.is_terminal:
            return
        self._cancel.set()
        if self._worker is not None:
            self._worker.post(WorkerMessage(MessageKind.CANCEL))
        self._wakeup.set()
        logger.info(f"Cancellation requested for import into {self.table}")

    def _make_worker(self) -> Worker:
        if self.format is TransferFormat.CSV:
            target = partial(
                parse_csv_source,
                source=self.source,
                batch_size=self.batch_size,
                encoding=self.settings.encoding,
                strict=self.strict,
            )
        else:
            target = partial(
                parse_sql_source,
                source=self.source,
                batch_size=self.batch_size,
                encoding=self.settings.encoding,
            )
        return Worker(
            f"import-{self.table}",
            target,
            max_pending=self.settings.max_pending_batches,
        )

    async def _run(self) -> ImportProgress:
        self._worker = self._make_worker()
        self._worker.start()
        if self._cancel:
            self._worker.post(WorkerMessage(MessageKind.CANCEL))

        try:
            await wait_first_error(
                asyncio.create_task(self._receive()),
                asyncio.create_task(self._dispatch()),
            )
        except Exception as e:
            logger.error(f"Import into {self.table} failed: {e}")
            self._tracker.finish(
                Phase.ERROR, rows_inserted=self._rows_inserted, error=str(e)
            )
            raise
        finally:
            self._worker.terminate()

        if self._cancel:
            final = self._tracker.finish(
                Phase.CANCELLED, rows_inserted=self._rows_inserted
            )
            logger.info(
                f"Import into {self.table} cancelled after {self._rows_inserted} row(s)"
            )
        else:
            final = self._tracker.finish(
                Phase.COMPLETE,
                rows_parsed=self._total_rows,
                rows_inserted=self._rows_inserted,
            )
            logger.info(f"Imported {self._rows_inserted} row(s) into {self.table}")
        return final

    async def _receive(self) -> None:
        """Consume worker messages until it completes, cancels or fails"""
        try:
            while True:
                message = await self._worker.receive()
                kind = message.kind
                if kind == MessageKind.HEADERS:
                    self._headers = message.headers
                    logger.debug(f"Columns for {self.table}: {list(self._headers)}")
                elif kind == MessageKind.BATCH:
                    self._pending.append(message.batch)
                    self._tracker.update(
                        Phase.PARSING,
                        rows_parsed=message.total_rows,
                        bytes_processed=message.bytes_processed,
                    )
                    self._wakeup.set()
                elif kind == MessageKind.PROGRESS:
                    self._tracker.update(
                        rows_parsed=message.total_rows,
                        bytes_processed=message.bytes_processed,
                    )
                elif kind == MessageKind.COMPLETE:
                    self._total_rows = message.total_rows
                    return
                elif kind == MessageKind.CANCELLED:
                    return
                elif kind == MessageKind.ERROR:
                    raise WorkerError(
                        f"Parsing {self.source.name} failed: {message.error}"
                    )
        finally:
            self._parsing_done = True
            self._wakeup.set()

    async def _dispatch(self) -> None:
        """Single dispatch loop: one batched write in flight at a time"""
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()

            while self._pending:
                if self._cancel:
                    self._drop_pending()
                    break
                batch = self._pending.popleft()
                try:
                    await self.client.execute_batch(
                        self._to_statements(batch),
                        transaction=self.settings.transaction,
                    )
                finally:
                    self._worker.release_slot()
                self._rows_inserted += len(batch)
                self._tracker.update(Phase.INSERTING, rows_inserted=self._rows_inserted)
                logger.debug(
                    f"Inserted batch of {len(batch)} into {self.table} "
                    f"({self._rows_inserted} total)"
                )

            if self._cancel:
                self._drop_pending()
            if self._parsing_done and not self._pending:
                return

    def _drop_pending(self) -> None:
        while self._pending:
            self._pending.popleft()
            self._worker.release_slot()

    def _to_statements(self, batch: List[Row]) -> List[ParameterizedStatement]:
        if self.format is TransferFormat.SQL:
            return [ParameterizedStatement(row[0]) for row in batch]
        if not self._headers:
            raise WorkerError("Received rows before the CSV header line")
        return [build_insert_statement(self.table, self._headers, row) for row in batch]


class ImportManager:
    """Starts import jobs against one rqlite client"""

    def __init__(self, client: RqliteClient, settings: Optional[TransferSettings] = None):
        self.client = client
        self.settings = settings or TransferSettings()

    def start_import(
        self,
        source: Union[str, bytes, Any],
        table: str,
        format: Optional[Union[str, TransferFormat]] = None,
        batch_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
        strict: bool = False,
    ) -> ImportJob:
        """Start importing ``source`` into ``table``; must run inside an event loop"""
        if not table:
            raise ValidationError("Target table is required")
        byte_source = (
            source
            if isinstance(source, ByteSource)
            else ByteSource(source, chunk_size=self.settings.chunk_size)
        )
        fmt = resolve_format(format, byte_source.suffix)
        if batch_size is None:
            batch_size = (
                self.settings.csv_batch_size
                if fmt is TransferFormat.CSV
                else self.settings.sql_batch_size
            )
        if batch_size <= 0:
            raise ValidationError("batch_size must be greater than zero")

        self._audit_event(
            "import_started",
            {
                "table": table,
                "format": fmt.value,
                "source": str(byte_source.name),
                "total_bytes": byte_source.total_bytes,
                "batch_size": batch_size,
            },
        )
        job = ImportJob(
            self.client,
            byte_source,
            table,
            fmt,
            batch_size,
            self.settings,
            progress_callback=progress_callback,
            strict=strict,
        )
        job._task.add_done_callback(partial(self._on_done, table))
        return job

    async def import_file(self, source, table: str, **kwargs) -> ImportProgress:
        return await self.start_import(source, table, **kwargs).result()

    def _on_done(self, table: str, task: "asyncio.Task") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._audit_event("import_failed", {"table": table, "error": str(error)})
            return
        final = task.result()
        self._audit_event(
            "import_finished",
            {
                "table": table,
                "phase": final.phase.value,
                "rows_inserted": final.rows_inserted,
            },
        )

    def _audit_event(self, action: str, details: dict) -> None:
        logger.info(f"[AUDIT] {action}: {details}")
