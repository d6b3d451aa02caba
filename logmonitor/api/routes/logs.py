# logmonitor/api/routes/logs.py
"""
Record reads, clearing, statistics and export for one file.

- GET    /api/logs/{file_id}    paginated records, source order
- DELETE /api/logs/{file_id}    drop records, keep file metadata
- GET    /api/stats/{file_id}   total / errors / warnings (+ filtered)
- GET    /api/export/{file_id}  plain-text download

Unknown files read as empty: no 404s here.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from logmonitor.api.deps import get_store
from logmonitor.core.config import settings
from logmonitor.schemas.files import MessageResponse
from logmonitor.schemas.filters import FilterSettings
from logmonitor.schemas.logs import FilteredStatistics, LogRecord
from logmonitor.services.export_service import (
    DEFAULT_EXPORT_NAME,
    count_matching,
    filter_records,
    render_export,
)
from logmonitor.services.log_store import LogStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _content_disposition(file_name: str) -> str:
    # Header values are latin-1; non-ASCII names (Cyrillic uploads) go in filename*.
    ascii_name = file_name.encode("ascii", "replace").decode("ascii").replace('"', "_")
    return f'attachment; filename="{ascii_name}"; filename*=UTF-8\'\'{quote(file_name)}'


def _user_filters(store: LogStore, user_id: Optional[str]) -> FilterSettings:
    uid = user_id or settings.DEFAULT_USER_ID
    return store.get_filter_settings(uid) or FilterSettings(user_id=uid)


@router.get("/api/logs/{file_id}", response_model=List[LogRecord])
async def get_logs(
    file_id: str,
    limit: Optional[int] = Query(default=None, ge=1, description="Max records to return"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    store: LogStore = Depends(get_store),
):
    """
    Example:
      /api/logs/5b0c...?limit=100&offset=200
    """
    effective_limit = limit or settings.DEFAULT_PAGE_LIMIT
    records = store.read(file_id, limit=effective_limit, offset=offset)
    logger.debug("Sending %d records of file %s (offset=%d, limit=%d)", len(records), file_id, offset, effective_limit)
    return records


@router.delete("/api/logs/{file_id}", response_model=MessageResponse)
async def clear_logs(file_id: str, store: LogStore = Depends(get_store)):
    store.clear(file_id)
    logger.info("Cleared records of file %s", file_id)
    return MessageResponse(message="Log entries cleared successfully")


@router.get("/api/stats/{file_id}", response_model=FilteredStatistics, response_model_exclude_unset=True)
async def get_statistics(
    file_id: str,
    apply_filters: bool = Query(default=False, alias="applyFilters"),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    store: LogStore = Depends(get_store),
):
    stats = store.statistics(file_id)
    if not apply_filters:
        return FilteredStatistics(**stats.model_dump())
    filtered = count_matching(store.read(file_id), _user_filters(store, user_id))
    return FilteredStatistics(**stats.model_dump(), filtered=filtered)


@router.get("/api/export/{file_id}", response_class=PlainTextResponse)
async def export_logs(
    file_id: str,
    apply_filters: bool = Query(default=False, alias="applyFilters"),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    store: LogStore = Depends(get_store),
):
    limit = settings.EXPORT_LIMIT or None
    records = store.read(file_id, limit=limit)
    if apply_filters:
        records = filter_records(records, _user_filters(store, user_id))

    log_file = store.get_file(file_id)
    file_name = log_file.file_name if log_file else DEFAULT_EXPORT_NAME
    logger.info("Exporting %d records of file %s", len(records), file_id)

    return PlainTextResponse(
        content=render_export(records),
        headers={"Content-Disposition": _content_disposition(file_name)},
    )
