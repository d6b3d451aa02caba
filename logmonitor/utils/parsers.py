# logmonitor/utils/parsers.py
"""
Line parsing for uploaded application logs (Tomcat / Java style).

Each non-blank source line becomes exactly one of:
- a new structured record (a line format matched),
- a continuation: the line extends the stack trace of the previous record,
- an orphan trace: a stack frame with no previous record, kept as a DEBUG record,
- a fallback record: nothing matched, the raw line is stored as an INFO message.

Supported line formats, tried in this order:
    2024-01-01 10:00:00.000 ERROR [svc] message      (ISO date, "," or "." millis)
    01.02.24 10:00:00:000 - WARN - svcA - message     (DD.MM.YY, year = 2000 + YY)
    10:00:00.123 INFO [svc] message                   (time only, date = ingestion day)

The parser keeps a single piece of state: the last record it emitted. That state
is an explicit `ParserState` value so it can be inspected and tested without I/O.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, time, timezone
from enum import Enum
from re import Match, Pattern
from typing import Callable, Optional, Sequence, Tuple

from dateutil import parser as dtparser

from logmonitor.schemas.common import utcnow
from logmonitor.schemas.logs import LogLevel, LogRecord

logger = logging.getLogger(__name__)


# ----------------------------
# Parser state
# ----------------------------
class StateKind(str, Enum):
    NO_PENDING = "no_pending"
    PENDING = "pending"


@dataclass(frozen=True)
class ParserState:
    """Either no record seen yet, or the last record emitted for the file."""
    kind: StateKind
    last: Optional[LogRecord] = None

    @classmethod
    def pending(cls, record: LogRecord) -> "ParserState":
        return cls(StateKind.PENDING, record)


NO_PENDING = ParserState(StateKind.NO_PENDING)


class OutcomeKind(str, Enum):
    RECORD = "record"
    CONTINUATION = "continuation"
    ORPHAN_TRACE = "orphan_trace"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ParseOutcome:
    kind: OutcomeKind
    record: LogRecord

    @property
    def is_new(self) -> bool:
        """True when `record` should be appended; False when it replaces the last one."""
        return self.kind is not OutcomeKind.CONTINUATION

    @property
    def is_anomaly(self) -> bool:
        return self.kind in (OutcomeKind.ORPHAN_TRACE, OutcomeKind.FALLBACK)


# ----------------------------
# Timestamp helpers
# ----------------------------
def _fraction_to_micros(raw: Optional[str]) -> int:
    if not raw:
        return 0
    return int(raw[:6].ljust(6, "0"))


def _iso_timestamp(m: Match, now: datetime) -> datetime:
    dt = dtparser.isoparse(m.group("ts").replace(",", "."))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _locale_timestamp(m: Match, now: datetime) -> datetime:
    # Two-digit years are always 20YY.
    return datetime(
        2000 + int(m.group("year")),
        int(m.group("month")),
        int(m.group("day")),
        int(m.group("hour")),
        int(m.group("minute")),
        int(m.group("second")),
        _fraction_to_micros(m.group("fraction")),
    )


def _time_only_timestamp(m: Match, now: datetime) -> datetime:
    clock = time(
        int(m.group("hour")),
        int(m.group("minute")),
        int(m.group("second")),
        _fraction_to_micros(m.group("fraction")),
    )
    return datetime.combine(now.date(), clock)


# ----------------------------
# Line formats
# ----------------------------
@dataclass(frozen=True)
class LinePattern:
    """
    One structural line format.

    The regex must define `level` and `message` groups and may define `logger`;
    `to_timestamp` turns the match into a naive UTC datetime.
    """
    name: str
    regex: Pattern[str]
    to_timestamp: Callable[[Match, datetime], datetime]


ISO_PATTERN = LinePattern(
    name="iso",
    regex=re.compile(
        r"^(?P<ts>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:[.,]\d{1,6})?)"
        r"\s+\[?(?P<level>[A-Za-z]+)\]?"
        r"\s+(?:\[(?P<logger>[^\]]+)\]\s*)?"
        r"(?P<message>.+)$"
    ),
    to_timestamp=_iso_timestamp,
)

LOCALE_PATTERN = LinePattern(
    name="locale",
    regex=re.compile(
        r"^(?P<day>\d{2})\.(?P<month>\d{2})\.(?P<year>\d{2})"
        r"\s+(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})[:.,](?P<fraction>\d{3})"
        r"\s*-\s*(?P<level>[A-Za-z]+)"
        r"\s*-\s*(?:(?P<logger>[\w.$-]+)\s*-\s+)?"
        r"(?P<message>.+)$"
    ),
    to_timestamp=_locale_timestamp,
)

TIME_ONLY_PATTERN = LinePattern(
    name="time_only",
    regex=re.compile(
        r"^(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})(?:[.,:](?P<fraction>\d{1,6}))?"
        r"\s+(?:-\s*)?\[?(?P<level>[A-Za-z]+)\]?"
        r"\s+(?:-\s+)?(?:\[(?P<logger>[^\]]+)\]\s*)?"
        r"(?P<message>.+)$"
    ),
    to_timestamp=_time_only_timestamp,
)

DEFAULT_PATTERNS: Tuple[LinePattern, ...] = (ISO_PATTERN, LOCALE_PATTERN, TIME_ONLY_PATTERN)

# Java stack frames. Matched against the line with its indentation intact.
# "Caused by:" and "... N more" are also accepted at column 0, as some appenders write them.
CONTINUATION_PATTERN = re.compile(
    r"^(?:\s+at\s+\S.*"
    r"|\s*Caused by:.*"
    r"|\s*\.\.\.\s+\d+\s+more.*"
    r"|\s+.*Exception.*)$"
)


def is_continuation(line: str) -> bool:
    return CONTINUATION_PATTERN.match(line.rstrip()) is not None


# ----------------------------
# Parser
# ----------------------------
class LineParser:
    """
    Stateful per-file parser.

    Usage:
        parser = LineParser(file_id)
        for n, line in enumerate(non_blank_lines, start=1):
            outcome = parser.feed(line, n)

    `feed` never raises for bad input: anything that cannot be parsed ends up as
    a fallback record.
    """

    def __init__(
        self,
        file_id: str,
        patterns: Sequence[LinePattern] = DEFAULT_PATTERNS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.file_id = file_id
        self._patterns: Tuple[LinePattern, ...] = tuple(patterns)
        self._clock = clock
        self.state: ParserState = NO_PENDING

    def feed(self, line: str, line_number: int) -> Optional[ParseOutcome]:
        """Consume one source line. Blank lines return None and leave state untouched."""
        trimmed = line.strip()
        if not trimmed:
            return None

        now = self._clock()
        try:
            outcome = self._classify(line.rstrip(), trimmed, line_number, now)
        except Exception:
            logger.debug("Line %d could not be parsed; storing raw text", line_number, exc_info=True)
            outcome = ParseOutcome(OutcomeKind.FALLBACK, self._fallback(trimmed, line_number, now))

        self.state = ParserState.pending(outcome.record)
        return outcome

    def _classify(self, raw: str, trimmed: str, line_number: int, now: datetime) -> ParseOutcome:
        record = self._match_structural(trimmed, line_number, now)
        if record is not None:
            return ParseOutcome(OutcomeKind.RECORD, record)

        if is_continuation(raw):
            if self.state.kind is StateKind.PENDING and self.state.last is not None:
                return ParseOutcome(OutcomeKind.CONTINUATION, self.state.last.with_continuation(raw))
            orphan = LogRecord(
                file_id=self.file_id,
                line_number=line_number,
                timestamp=now,
                level=LogLevel.DEBUG,
                message="",
                stack_trace=raw,
            )
            return ParseOutcome(OutcomeKind.ORPHAN_TRACE, orphan)

        return ParseOutcome(OutcomeKind.FALLBACK, self._fallback(trimmed, line_number, now))

    def _match_structural(self, trimmed: str, line_number: int, now: datetime) -> Optional[LogRecord]:
        for pattern in self._patterns:
            m = pattern.regex.match(trimmed)
            if not m:
                continue

            level = LogLevel.normalize(m.group("level"))
            if level is None:
                continue

            try:
                timestamp = pattern.to_timestamp(m, now)
            except (ValueError, OverflowError):
                # e.g. month 13; let a later pattern or the fallback take it
                continue

            logger_name = m.groupdict().get("logger")
            return LogRecord(
                file_id=self.file_id,
                line_number=line_number,
                timestamp=timestamp,
                level=level,
                logger=logger_name.strip() if logger_name else None,
                message=m.group("message").strip(),
            )
        return None

    def _fallback(self, trimmed: str, line_number: int, now: datetime) -> LogRecord:
        return LogRecord(
            file_id=self.file_id,
            line_number=line_number,
            timestamp=now,
            level=LogLevel.INFO,
            message=trimmed,
        )
