"""Ingestion pipeline: decode, parse, store and publish in source order."""
import pytest

from logmonitor.schemas.files import FileStatus
from logmonitor.schemas.logs import LogLevel
from logmonitor.services.ingest_service import IngestionError
from logmonitor.utils.encoding import DecodeError


def test_sample_trace_becomes_one_record(store, broadcaster, pipeline, recording_subscriber, sample_trace):
    log_file = store.create_file(file_name="app.log", file_size=len(sample_trace))
    broadcaster.subscribe(recording_subscriber, log_file.id)

    result = pipeline.ingest(log_file.id, sample_trace)

    records = store.read(log_file.id)
    assert len(records) == 1
    record = records[0]
    assert record.level is LogLevel.ERROR
    assert record.logger == "svc"
    assert record.message == "boom"
    assert record.stack_trace == "  at foo.bar(Baz.java:10)\n  at qux.quux(Quux.java:20)"

    assert result.lines_processed == 3
    assert result.records_created == 1
    assert result.records_processed == 1
    assert result.continuations == 2
    assert result.line_errors == 0
    assert store.get_file(log_file.id).status is FileStatus.ACTIVE

    # One publish for the record, one per merged frame, all with the same id
    assert len(recording_subscriber.messages) == 3
    assert {m["data"]["id"] for m in recording_subscriber.messages} == {record.id}
    assert recording_subscriber.messages[-1]["data"]["stackTrace"] == record.stack_trace
    assert recording_subscriber.messages[0]["data"].get("stackTrace") is None


def test_crlf_and_blank_lines(store, pipeline):
    content = (
        b"2024-01-01 10:00:00.000 INFO [a] first\r\n"
        b"\r\n"
        b"   \n"
        b"2024-01-01 10:00:01.000 WARN [b] second\r\n"
    )
    log_file = store.create_file(file_name="crlf.log", file_size=len(content))

    result = pipeline.ingest(log_file.id, content)

    records = store.read(log_file.id)
    assert [r.message for r in records] == ["first", "second"]
    assert [r.line_number for r in records] == [1, 2]
    assert result.lines_processed == 2


def test_line_numbers_count_continuations(store, pipeline):
    content = (
        b"2024-01-01 10:00:00.000 ERROR [a] failed\n"
        b"  at x.y(Z.java:1)\n"
        b"2024-01-01 10:00:01.000 INFO [a] recovered\n"
    )
    log_file = store.create_file(file_name="a.log", file_size=len(content))

    pipeline.ingest(log_file.id, content)

    assert [r.line_number for r in store.read(log_file.id)] == [1, 3]


def test_unmatched_lines_are_counted(store, pipeline):
    content = b"just some text\n2024-01-01 10:00:00.000 INFO [a] ok\n"
    log_file = store.create_file(file_name="a.log", file_size=len(content))

    result = pipeline.ingest(log_file.id, content)

    records = store.read(log_file.id)
    assert len(records) == 2
    assert records[0].level is LogLevel.INFO
    assert records[0].message == "just some text"
    assert result.line_errors == 1


def test_statistics_after_ingest(store, pipeline):
    content = (
        b"2024-01-01 10:00:00.000 ERROR [a] e\n"
        b"2024-01-01 10:00:01.000 WARN [a] w1\n"
        b"2024-01-01 10:00:02.000 WARN [a] w2\n"
        b"2024-01-01 10:00:03.000 INFO [a] i\n"
    )
    log_file = store.create_file(file_name="a.log", file_size=len(content))

    pipeline.ingest(log_file.id, content)

    stats = store.statistics(log_file.id)
    assert (stats.total, stats.errors, stats.warnings) == (4, 1, 2)


def test_same_content_into_two_files_is_independent(store, pipeline, sample_trace):
    first = store.create_file(file_name="a.log", file_size=len(sample_trace))
    second = store.create_file(file_name="a.log", file_size=len(sample_trace))

    pipeline.ingest(first.id, sample_trace)
    pipeline.ingest(second.id, sample_trace)

    a, b = store.read(first.id), store.read(second.id)
    assert len(a) == len(b) == 1
    assert a[0].id != b[0].id
    assert a[0].stack_trace == b[0].stack_trace
    assert a[0].file_id == first.id
    assert b[0].file_id == second.id


def test_ingest_upload_creates_file(store, pipeline, sample_trace):
    result = pipeline.ingest_upload("upload.log", sample_trace)

    log_file = store.get_file(result.file_id)
    assert log_file.file_name == "upload.log"
    assert log_file.file_size == len(sample_trace)
    assert log_file.status is FileStatus.ACTIVE


def test_decode_failure_leaves_file_processing(store, pipeline, monkeypatch):
    def broken(content):
        raise DecodeError("undecodable")

    monkeypatch.setattr("logmonitor.services.ingest_service.decode_bytes", broken)
    log_file = store.create_file(file_name="bad.log", file_size=3)

    with pytest.raises(IngestionError):
        pipeline.ingest(log_file.id, b"abc")

    assert store.get_file(log_file.id).status is FileStatus.PROCESSING
    assert store.read(log_file.id) == []


def test_clear_during_ingest_aborts(store, broadcaster, pipeline, sample_trace):
    log_file = store.create_file(file_name="a.log", file_size=len(sample_trace))

    class Clearing:
        def deliver(self, message):
            store.clear(log_file.id)

    broadcaster.subscribe(Clearing(), log_file.id)

    with pytest.raises(IngestionError):
        pipeline.ingest(log_file.id, sample_trace)

    assert store.get_file(log_file.id).status is FileStatus.PROCESSING


def test_unknown_file_is_rejected(pipeline, sample_trace):
    with pytest.raises(IngestionError):
        pipeline.ingest("missing", sample_trace)


def test_remove_during_ingest_leaves_no_records(store, broadcaster, pipeline):
    content = (
        b"2024-01-01 10:00:00.000 INFO [a] first\n"
        b"2024-01-01 10:00:01.000 INFO [a] second\n"
    )
    log_file = store.create_file(file_name="a.log", file_size=len(content))

    class Removing:
        def deliver(self, message):
            store.remove(log_file.id)

    broadcaster.subscribe(Removing(), log_file.id)

    with pytest.raises(IngestionError):
        pipeline.ingest(log_file.id, content)

    assert store.get_file(log_file.id) is None
    assert store.read(log_file.id) == []
    assert store.list_files() == []


MIXED = (
    b"  at orphan.Frame(O.java:1)\n"
    b"2024-01-01 10:00:00.000 ERROR [svc] boom\n"
    b"  at foo.bar(Baz.java:10)\n"
    b"Caused by: java.io.IOException: reset\n"
    b"\t... 12 more\n"
    b"\n"
    b"01.02.24 10:00:00:000 - WARN - svcA - disk low\n"
    b"not a log line\n"
    b"  at after.Fallback(F.java:2)\n"
    b"10:00:01 DEBUG [b] tick\n"
)


def test_reingesting_mixed_content_yields_equal_sequences(store, pipeline):
    first = store.create_file(file_name="a.log", file_size=len(MIXED))
    second = store.create_file(file_name="a.log", file_size=len(MIXED))

    result_a = pipeline.ingest(first.id, MIXED)
    result_b = pipeline.ingest(second.id, MIXED)

    def shape(file_id):
        return [(r.line_number, r.level, r.message, r.stack_trace) for r in store.read(file_id)]

    assert shape(first.id) == shape(second.id)
    assert [n for n, *_ in shape(first.id)] == [1, 2, 6, 7, 9]

    def counters(r):
        return (r.lines_processed, r.records_created, r.continuations, r.line_errors)

    assert counters(result_a) == counters(result_b) == (9, 5, 4, 2)
