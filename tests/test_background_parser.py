import threading

import pytest

from linkanalysis.core.exceptions import ParseCancelledError, TableParseError
from linkanalysis.pipeline.background_parser import BackgroundParser, ErrorEvent, ProgressEvent, ResultEvent
from linkanalysis.processors.table_parser import TableParser


class BlockingParser:
    """Reports some progress, then waits until released before checking the token."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()

    def parse_file(self, file, progress=None, cancel_token=None):
        progress(0.0)
        self.started.set()
        self.release.wait(timeout=5)
        cancel_token.raise_if_cancelled()
        raise AssertionError("token should have been cancelled")


@pytest.fixture
def csv_upload(make_upload):
    lines = ["origem,destino"] + [f"Pessoa {i},Pessoa {i + 1}" for i in range(250)]
    return make_upload("dados.csv", "\n".join(lines))


def test_events_end_with_result(csv_upload):
    with BackgroundParser() as parser:
        job = parser.submit(csv_upload)
        events = list(job.events(timeout=10))

    assert all(isinstance(event, ProgressEvent) for event in events[:-1])
    assert isinstance(events[-1], ResultEvent)
    assert events[-1].table.row_count == 250
    assert events[-2].percent == 100.0
    assert job.done
    assert job.result().row_count == 250


def test_cancel_emits_cancelled_error(make_upload):
    blocking = BlockingParser()
    with BackgroundParser(parser=blocking) as parser:
        job = parser.submit(make_upload("dados.csv", "a,b\n"))
        assert blocking.started.wait(timeout=5)
        job.cancel()
        blocking.release.set()
        events = list(job.events(timeout=10))

    assert isinstance(events[0], ProgressEvent)
    assert isinstance(events[-1], ErrorEvent)
    assert events[-1].cancelled
    with pytest.raises(ParseCancelledError):
        job.result()


def test_parse_failure_emits_error(make_upload):
    with BackgroundParser(parser=TableParser()) as parser:
        job = parser.submit(make_upload("dados.json", "{not json"))
        events = list(job.events(timeout=10))

    assert len([e for e in events if isinstance(e, (ResultEvent, ErrorEvent))]) == 1
    assert isinstance(events[-1], ErrorEvent)
    assert not events[-1].cancelled
    with pytest.raises(TableParseError):
        job.result()


def test_jobs_get_distinct_ids(csv_upload):
    with BackgroundParser() as parser:
        first = parser.submit(csv_upload)
        second = parser.submit(csv_upload)
        first.result(timeout=10)
        second.result(timeout=10)

    assert first.job_id != second.job_id
