# logmonitor/schemas/logs.py
"""
Log record schemas.

A `LogRecord` is one structured entry reconstructed from an uploaded file. Records
are immutable; a stack-trace merge produces a new record object with the same `id`.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field

from logmonitor.schemas.common import CamelModel, UtcDatetime, utcnow


class LogLevel(str, Enum):
    ERROR = "ERROR"
    WARN = "WARN"
    INFO = "INFO"
    DEBUG = "DEBUG"

    @classmethod
    def normalize(cls, raw: Optional[str]) -> Optional["LogLevel"]:
        """Uppercase `raw` and map it onto the enum; unknown text yields None."""
        try:
            return cls((raw or "").strip().upper())
        except ValueError:
            return None


def new_record_id() -> str:
    return str(uuid.uuid4())


class LogRecord(CamelModel):
    """A single structured log entry owned by exactly one uploaded file."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_record_id, description="Process-unique record identifier")
    file_id: str = Field(..., description="Identifier of the owning log file")
    line_number: int = Field(..., ge=1, description="1-based ordinal of the source line that produced the record")
    timestamp: UtcDatetime = Field(..., description="Parsed log time, or ingestion time when the line carries none")
    level: LogLevel = Field(..., description="ERROR, WARN, INFO or DEBUG")
    logger: Optional[str] = Field(default=None, description="Originating component name")
    message: str = Field(default="", description="Primary text body")
    stack_trace: Optional[str] = Field(default=None, description="Newline-joined continuation lines")
    created_at: UtcDatetime = Field(default_factory=utcnow, description="Ingestion wall-clock time")

    def with_continuation(self, line: str) -> "LogRecord":
        """Return a copy of this record with `line` appended to its stack trace."""
        trace = line if not self.stack_trace else f"{self.stack_trace}\n{line}"
        return self.model_copy(update={"stack_trace": trace})


class LogStatistics(CamelModel):
    """
    Per-file counters.

    Example:
      {"total": 4, "errors": 1, "warnings": 2}
    """
    total: int = Field(default=0, ge=0, description="Number of stored records")
    errors: int = Field(default=0, ge=0, description="Records at ERROR level")
    warnings: int = Field(default=0, ge=0, description="Records at WARN level")


class FilteredStatistics(LogStatistics):
    """Statistics plus the number of records passing the caller's filter settings."""
    filtered: int = Field(default=0, ge=0, description="Records matching the user's filters")
