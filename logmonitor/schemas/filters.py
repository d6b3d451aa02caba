# logmonitor/schemas/filters.py
"""
Schemas for GET/POST /api/filters.

Filter settings are stored per user and consumed downstream (export, UI). The
ingestion core never applies them to what it stores or broadcasts.

`time_range` accepts:
- "all"
- a relative window ending now: "1h", "6h", "24h"
- a closed interval "start:end" where both ends are ISO8601 datetimes or epoch
  milliseconds, e.g. "2024-01-01T10:00:2024-01-01T12:00"
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from dateutil import parser as dtparser
from pydantic import Field, field_validator

from logmonitor.schemas.common import CamelModel
from logmonitor.schemas.logs import LogLevel

ALL_TIME = "all"

RELATIVE_WINDOWS = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
}


def _parse_bound(raw: str) -> datetime:
    raw = raw.strip()
    if raw.isdigit():
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc).replace(tzinfo=None)
    dt = dtparser.isoparse(raw)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_interval(value: str) -> Optional[Tuple[datetime, datetime]]:
    """
    Split a "start:end" interval.

    ISO datetimes contain colons themselves, so every colon is tried as the
    separator and the first split where both halves parse wins.
    """
    for i, ch in enumerate(value):
        if ch != ":":
            continue
        left, right = value[:i], value[i + 1:]
        if not left.strip() or not right.strip():
            continue
        try:
            start, end = _parse_bound(left), _parse_bound(right)
        except (ValueError, OverflowError):
            continue
        if start > end:
            start, end = end, start
        return start, end
    return None


class FilterSettings(CamelModel):
    """Per-user filter preferences."""
    user_id: str = Field(default="default", description="Owner of these settings")
    log_levels: List[LogLevel] = Field(
        default_factory=lambda: list(LogLevel),
        description="Levels to show",
    )
    keywords: List[str] = Field(default_factory=list, description="Case-insensitive keywords, in insertion order")
    time_range: str = Field(default=ALL_TIME, description="'all', '1h', '6h', '24h' or 'start:end'")
    auto_scroll: bool = Field(default=True, description="UI follows the live tail")

    @field_validator("log_levels", mode="before")
    @classmethod
    def _normalize_levels(cls, v):
        if v is None:
            return list(LogLevel)
        if not isinstance(v, (list, tuple)):
            raise ValueError("logLevels must be a list")
        levels = []
        for raw in v:
            level = raw if isinstance(raw, LogLevel) else LogLevel.normalize(str(raw))
            if level is None:
                raise ValueError(f"Unknown log level: {raw!r}")
            if level not in levels:
                levels.append(level)
        return levels

    @field_validator("keywords", mode="before")
    @classmethod
    def _dedupe_keywords(cls, v):
        if v is not None and not isinstance(v, (list, tuple)):
            raise ValueError("keywords must be a list")
        seen = set()
        cleaned = []
        for raw in v or []:
            if raw is not None and not isinstance(raw, str):
                raise ValueError(f"Keywords must be strings, got {raw!r}")
            kw = (raw or "").strip()
            if kw and kw.lower() not in seen:
                seen.add(kw.lower())
                cleaned.append(kw)
        return cleaned

    @field_validator("time_range", mode="before")
    @classmethod
    def _validate_time_range(cls, v):
        if v is not None and not isinstance(v, str):
            raise ValueError("timeRange must be a string")
        value = (v or ALL_TIME).strip()
        if value == ALL_TIME or value in RELATIVE_WINDOWS:
            return value
        if parse_interval(value) is None:
            raise ValueError("timeRange must be 'all', '1h', '6h', '24h' or 'start:end'")
        return value

    def resolve_time_range(self, now: datetime) -> Optional[Tuple[datetime, datetime]]:
        """Closed [start, end] window, or None for 'all'."""
        if self.time_range == ALL_TIME:
            return None
        if self.time_range in RELATIVE_WINDOWS:
            return now - RELATIVE_WINDOWS[self.time_range], now
        return parse_interval(self.time_range)


class FilterSettingsUpdate(CamelModel):
    """
    Partial update for POST /api/filters.

    Omitted fields keep their stored value, so the UI can post just
    {"keywords": [...]} after adding a keyword.
    """
    user_id: Optional[str] = None
    log_levels: Optional[List[str]] = None
    keywords: Optional[List[str]] = None
    time_range: Optional[str] = None
    auto_scroll: Optional[bool] = None
