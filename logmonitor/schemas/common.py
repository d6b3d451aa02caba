# logmonitor/schemas/common.py
"""
Shared schema building blocks.

The frontend speaks camelCase JSON (`fileId`, `lineNumber`, `stackTrace`), while
Python code uses snake_case attributes. `CamelModel` bridges the two: it accepts
either spelling on input and FastAPI serializes responses by alias.

Timestamps are naive UTC datetimes internally and leave the API as ISO8601 with a
trailing "Z".
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat_z(dt: datetime) -> str:
    """Convert a naive UTC datetime to ISO8601 (millisecond precision) with trailing 'Z'."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat(timespec="milliseconds") + "Z"


UtcDatetime = Annotated[
    datetime,
    PlainSerializer(isoformat_z, return_type=str, when_used="json"),
]


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )
