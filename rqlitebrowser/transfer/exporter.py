"""
Bulk export of an rqlite table to CSV or SQL INSERT text.

Pages are fetched a group at a time with bounded concurrency. Each group's
results are handed to a formatting worker in page order, and output chunks
are collected in arrival order, so the output keeps the table's row order
even though the fetches themselves may finish out of order.
"""

import asyncio
import hashlib
import math
import os
import shutil
import tempfile
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger

from ..config.settings import TransferSettings
from ..database.client import RqliteClient, primary_key_columns
from ..utils.exceptions import RqliteBrowserError, ValidationError, WorkerError
from .csv_format import format_csv_row
from .formats import TransferFormat, resolve_format
from .progress import (
    CancellationFlag,
    ExportProgress,
    Phase,
    ProgressCallback,
    ProgressTracker,
)
from .sql_format import format_insert_statement, format_sql_header
from .worker import MessageKind, Worker, WorkerMessage, wait_first_error


def format_rows(
    worker: Worker,
    fmt: TransferFormat,
    table: str,
    headers: Tuple[str, ...],
    ddl: Optional[str] = None,
) -> None:
    """Worker target: turn posted row batches into output text chunks"""
    if fmt is TransferFormat.CSV:
        preamble = format_csv_row(headers) + "\n"
    else:
        preamble = format_sql_header(table)
        if ddl:
            preamble += ddl.strip().rstrip(";") + ";\n\n"
    worker.emit(WorkerMessage(MessageKind.CHUNK, chunk=preamble))

    total_formatted = 0
    while True:
        message = worker.next_message()
        if message.kind == MessageKind.CANCEL:
            worker.emit(WorkerMessage(MessageKind.CANCELLED, total_rows=total_formatted))
            return
        if message.kind == MessageKind.FINISH:
            worker.emit(WorkerMessage(MessageKind.COMPLETE, total_rows=total_formatted))
            return
        if message.kind != MessageKind.ROWS:
            continue

        values = [[row.get(h) for h in headers] for row in message.batch]
        if fmt is TransferFormat.CSV:
            lines = [format_csv_row(v) for v in values]
        else:
            lines = [format_insert_statement(table, headers, v) for v in values]
        total_formatted += len(lines)
        worker.emit(WorkerMessage(MessageKind.CHUNK, chunk="\n".join(lines) + "\n"))
        worker.emit(WorkerMessage(MessageKind.PROGRESS, total_rows=total_formatted))


class ExportJob:
    """Handle for one running export.

    ``await job.result()`` returns the encoded output, or None when the table
    is empty or the export was cancelled.
    """

    def __init__(
        self,
        client: RqliteClient,
        table: str,
        fmt: TransferFormat,
        page_size: int,
        concurrency: int,
        include_schema: bool = False,
        encoding: str = "utf-8",
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.client = client
        self.table = table
        self.format = fmt
        self.page_size = page_size
        self.concurrency = concurrency
        self.include_schema = include_schema
        self.encoding = encoding

        self._tracker: ProgressTracker[ExportProgress] = ProgressTracker(
            ExportProgress(), progress_callback
        )
        self._cancel = CancellationFlag()
        self._worker: Optional[Worker] = None
        self._chunks: List[str] = []
        self._task = asyncio.get_running_loop().create_task(self._run())

    def __await__(self):
        return self._task.__await__()

    @property
    def progress(self) -> ExportProgress:
        return self._tracker.snapshot()

    def updates(self):
        return self._tracker.updates()

    async def result(self) -> Optional[bytes]:
        return await self._task

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        if self._cancel.is_set() or self._tracker.is_terminal:
            return
        self._cancel.set()
        if self._worker is not None:
            self._worker.post(WorkerMessage(MessageKind.CANCEL))
        logger.info(f"Cancellation requested for export of {self.table}")

    async def _run(self) -> Optional[bytes]:
        try:
            total_rows, schema = await asyncio.gather(
                self.client.get_table_count(self.table),
                self.client.get_table_schema(self.table),
            )
            ddl = None
            if self.include_schema and self.format is TransferFormat.SQL:
                ddl = await self.client.get_table_ddl(self.table)
        except Exception as e:
            self._tracker.finish(Phase.ERROR, error=str(e))
            raise

        if total_rows == 0:
            self._tracker.finish(Phase.COMPLETE, total_rows=0)
            logger.info(f"Table {self.table} is empty, nothing to export")
            return None
        if self._cancel:
            self._tracker.finish(Phase.CANCELLED, total_rows=total_rows)
            return None

        headers = tuple(column.name for column in schema)
        order_by = primary_key_columns(schema)
        self._tracker.update(Phase.FETCHING, total_rows=total_rows)

        self._worker = Worker(
            f"export-{self.table}",
            partial(
                format_rows, fmt=self.format, table=self.table, headers=headers, ddl=ddl
            ),
        )
        self._worker.start()
        try:
            await wait_first_error(
                asyncio.create_task(self._collect()),
                asyncio.create_task(self._fetch_pages(total_rows, order_by)),
            )
        except Exception as e:
            logger.error(f"Export of {self.table} failed: {e}")
            self._tracker.finish(Phase.ERROR, error=str(e))
            raise
        finally:
            self._worker.terminate()

        if self._cancel:
            self._tracker.finish(Phase.CANCELLED)
            logger.info(f"Export of {self.table} cancelled")
            return None

        data = "".join(self._chunks).encode(self.encoding)
        self._chunks = []
        final = self._tracker.finish(Phase.COMPLETE)
        logger.info(
            f"Exported {final.rows_formatted} row(s) from {self.table} ({len(data)} bytes)"
        )
        return data

    async def _fetch_pages(self, total_rows: int, order_by: Sequence[str]) -> None:
        total_pages = math.ceil(total_rows / self.page_size)
        next_page = 1
        rows_fetched = 0

        while next_page <= total_pages and not self._cancel:
            group = list(
                range(next_page, min(next_page + self.concurrency, total_pages + 1))
            )
            next_page += len(group)
            results = await asyncio.gather(
                *(
                    self.client.query_page(self.table, page, self.page_size, order_by)
                    for page in group
                )
            )
            # Results are applied in page order, whatever order they finished in
            for page, result in zip(group, results):
                if self._cancel:
                    break
                rows = result.records()
                if not rows:
                    continue
                rows_fetched += len(rows)
                self._worker.post(WorkerMessage(MessageKind.ROWS, batch=rows))
                self._tracker.update(Phase.FETCHING, rows_fetched=rows_fetched)
                logger.debug(f"Fetched page {page}/{total_pages} of {self.table}")

        if not self._cancel:
            self._worker.post(WorkerMessage(MessageKind.FINISH))

    async def _collect(self) -> None:
        while True:
            message = await self._worker.receive()
            if message.kind == MessageKind.CHUNK:
                self._chunks.append(message.chunk)
            elif message.kind == MessageKind.PROGRESS:
                self._tracker.update(Phase.FORMATTING, rows_formatted=message.total_rows)
            elif message.kind == MessageKind.COMPLETE:
                self._tracker.update(rows_formatted=message.total_rows)
                return
            elif message.kind == MessageKind.CANCELLED:
                return
            elif message.kind == MessageKind.ERROR:
                raise WorkerError(f"Formatting {self.table} failed: {message.error}")


class ExportManager:
    """Starts export jobs against one rqlite client"""

    def __init__(self, client: RqliteClient, settings: Optional[TransferSettings] = None):
        self.client = client
        self.settings = settings or TransferSettings()

    def start_export(
        self,
        table: str,
        format: Union[str, TransferFormat] = TransferFormat.CSV,
        page_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        include_schema: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ExportJob:
        """Start exporting ``table``; must run inside an event loop"""
        if not table:
            raise ValidationError("Table name is required")
        fmt = resolve_format(format)
        page_size = page_size or self.settings.page_size
        concurrency = concurrency or self.settings.concurrency
        if page_size <= 0 or concurrency <= 0:
            raise ValidationError("page_size and concurrency must be greater than zero")

        self._audit_event(
            "export_started",
            {
                "table": table,
                "format": fmt.value,
                "page_size": page_size,
                "concurrency": concurrency,
            },
        )
        return ExportJob(
            self.client,
            table,
            fmt,
            page_size,
            concurrency,
            include_schema=include_schema,
            progress_callback=progress_callback,
        )

    async def export_table(self, table: str, **kwargs) -> Optional[bytes]:
        return await self.start_export(table, **kwargs).result()

    async def export_to_file(
        self,
        table: str,
        export_path: Union[str, os.PathLike],
        format: Optional[Union[str, TransferFormat]] = None,
        checksum_algorithm: str = "sha256",
        **kwargs,
    ) -> Optional[Dict[str, Any]]:
        """Export to a file, written atomically.

        Returns a summary dict, or None when nothing was written (empty
        table or cancelled export).
        """
        target = Path(export_path)
        fmt = resolve_format(format, target.suffix)
        try:
            hasher = hashlib.new(checksum_algorithm)
        except ValueError as exc:
            raise ValidationError(
                f"Unsupported checksum algorithm: {checksum_algorithm}"
            ) from exc

        job = self.start_export(table, format=fmt, **kwargs)
        data = await job.result()
        if data is None:
            return None

        temp_path = self._create_temp_path(target)
        try:
            with open(temp_path, "wb") as f:
                f.write(data)
            shutil.move(str(temp_path), str(target))
        except OSError as e:
            raise RqliteBrowserError(f"Failed to write export to {target}: {e}") from e
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

        hasher.update(data)
        final = job.progress
        summary = {
            "export_path": str(target),
            "table": table,
            "format": fmt.value,
            "row_count": final.rows_formatted,
            "file_size": target.stat().st_size,
            "checksum": hasher.hexdigest(),
            "checksum_algorithm": checksum_algorithm,
        }
        self._audit_event("export_completed", summary)
        return summary

    def _create_temp_path(self, target: Path) -> Path:
        """Create a temp file next to the target so the final move is atomic"""
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            prefix=f"{target.stem}_", suffix=".tmp", dir=target.parent
        )
        os.close(fd)
        return Path(temp_path)

    def _audit_event(self, action: str, details: Dict[str, Any]) -> None:
        logger.info(f"[AUDIT] {action}: {details}")
