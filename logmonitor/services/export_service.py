# logmonitor/services/export_service.py
"""
Plain-text export and filter application.

The store keeps every record unfiltered; filters are applied here, on the way
out, against a user's FilterSettings:
- level must be in `log_levels`
- if keywords are set, at least one must appear (case-insensitive) in the
  message, logger or stack trace
- if a time range is set, `timestamp` must fall inside it (inclusive)

Export line format (one per record, stack trace on the following lines):
    <timestamp> <level> <logger-or-empty> <message>
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Iterator, List, Optional

from logmonitor.schemas.common import isoformat_z, utcnow
from logmonitor.schemas.filters import FilterSettings
from logmonitor.schemas.logs import LogRecord

DEFAULT_EXPORT_NAME = "export.log"


def record_matches(record: LogRecord, settings: FilterSettings, now: Optional[datetime] = None) -> bool:
    if record.level not in settings.log_levels:
        return False

    if settings.keywords:
        haystack = " ".join(
            part for part in (record.message, record.logger, record.stack_trace) if part
        ).lower()
        if not any(kw.lower() in haystack for kw in settings.keywords):
            return False

    window = settings.resolve_time_range(now or utcnow())
    if window is not None:
        start, end = window
        if not (start <= record.timestamp <= end):
            return False

    return True


def filter_records(
    records: Iterable[LogRecord],
    settings: FilterSettings,
    now: Optional[datetime] = None,
) -> List[LogRecord]:
    now = now or utcnow()
    return [r for r in records if record_matches(r, settings, now)]


def count_matching(records: Iterable[LogRecord], settings: FilterSettings) -> int:
    """The `filtered` counter shown next to total/errors/warnings."""
    return len(filter_records(records, settings))


def render_record(record: LogRecord) -> str:
    line = f"{isoformat_z(record.timestamp)} {record.level.value} {record.logger or ''} {record.message}\n"
    if record.stack_trace:
        line += f"{record.stack_trace}\n"
    return line


def iter_export_lines(records: Iterable[LogRecord]) -> Iterator[str]:
    for record in records:
        yield render_record(record)


def render_export(records: Iterable[LogRecord]) -> str:
    return "".join(iter_export_lines(records))
