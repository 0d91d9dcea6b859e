"""
Background table parsing on a worker pool, streaming progress and a single terminal event
"""

import queue
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from loguru import logger

from linkanalysis.core.cancellation import CancellationToken
from linkanalysis.core.exceptions import ParseCancelledError
from linkanalysis.core.models import ParsedTable, UploadedFile
from linkanalysis.processors.table_parser import TableParser


@dataclass
class ProgressEvent:
    """Percentage of rows processed so far"""
    percent: float


@dataclass
class ResultEvent:
    """Terminal event carrying the parsed table"""
    table: ParsedTable


@dataclass
class ErrorEvent:
    """Terminal event carrying a human-readable failure"""
    message: str
    cancelled: bool = False


ParseEvent = Union[ProgressEvent, ResultEvent, ErrorEvent]


class ParseJob:
    """Handle for one submitted parse: cancel it, stream its events or wait for its table"""

    def __init__(self, job_id: str, token: CancellationToken):
        self.job_id = job_id
        self.token = token
        self.future: Optional[Future] = None
        self._events: "queue.Queue[ParseEvent]" = queue.Queue()
        self._terminal: Optional[ParseEvent] = None
        self._lock = threading.Lock()

    def cancel(self) -> None:
        logger.info(f"Cancelling parse job {self.job_id}")
        self.token.cancel()

    @property
    def done(self) -> bool:
        return self._terminal is not None

    def _emit(self, event: ParseEvent) -> None:
        with self._lock:
            if self._terminal is not None:
                return
            if isinstance(event, (ResultEvent, ErrorEvent)):
                self._terminal = event
            self._events.put(event)

    def events(self, timeout: Optional[float] = None) -> Iterator[ParseEvent]:
        """Yield progress events followed by exactly one ResultEvent or ErrorEvent"""
        while True:
            event = self._events.get(timeout=timeout)
            yield event
            if isinstance(event, (ResultEvent, ErrorEvent)):
                return

    def result(self, timeout: Optional[float] = None) -> ParsedTable:
        """Block until the job finishes; re-raise its failure"""
        if self.future is None:
            raise RuntimeError(f"Job {self.job_id} was never started")
        return self.future.result(timeout=timeout)


class BackgroundParser:
    """
    Runs TableParser off the caller's thread:
    1. Each submission gets its own job id and cancellation token
    2. Progress from the parser is forwarded as ProgressEvents
    3. The job ends with one ResultEvent, or one ErrorEvent on failure or cancellation
    """

    def __init__(self, parser: Optional[TableParser] = None, max_workers: int = 2):
        self.parser = parser or TableParser()
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="linkanalysis-parse")

    def submit(self, file: UploadedFile) -> ParseJob:
        job_id = uuid.uuid4().hex[:12]
        job = ParseJob(job_id, CancellationToken(job_id))
        logger.info(f"Submitting parse job {job_id} for {file.name}")
        job.future = self.executor.submit(self._run, job, file)
        return job

    def _run(self, job: ParseJob, file: UploadedFile) -> ParsedTable:
        try:
            job.token.raise_if_cancelled()
            table = self.parser.parse_file(
                file,
                progress=lambda percent: job._emit(ProgressEvent(percent)),
                cancel_token=job.token,
            )
        except ParseCancelledError as e:
            logger.warning(f"Parse job {job.job_id} cancelled")
            job._emit(ErrorEvent(str(e), cancelled=True))
            raise
        except Exception as e:
            logger.error(f"Parse job {job.job_id} failed: {e}")
            job._emit(ErrorEvent(str(e)))
            raise

        job._emit(ProgressEvent(100.0))
        job._emit(ResultEvent(table))
        logger.info(f"Parse job {job.job_id} finished with {table.row_count} rows")
        return table

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)

    def __enter__(self) -> "BackgroundParser":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
