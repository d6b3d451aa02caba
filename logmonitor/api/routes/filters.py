# logmonitor/api/routes/filters.py
"""
Per-user filter settings.

- GET  /api/filters?userId=   stored settings, or the defaults
- POST /api/filters           partial update; omitted fields keep their value
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from logmonitor.api.deps import get_store
from logmonitor.core.config import settings
from logmonitor.schemas.filters import FilterSettings, FilterSettingsUpdate
from logmonitor.services.log_store import LogStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/filters", response_model=FilterSettings)
async def get_filters(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    store: LogStore = Depends(get_store),
):
    uid = user_id or settings.DEFAULT_USER_ID
    return store.get_filter_settings(uid) or FilterSettings(user_id=uid)


@router.post("/api/filters", response_model=FilterSettings)
async def update_filters(
    update: FilterSettingsUpdate,
    store: LogStore = Depends(get_store),
):
    uid = update.user_id or settings.DEFAULT_USER_ID
    current = store.get_filter_settings(uid) or FilterSettings(user_id=uid)

    merged = current.model_dump()
    merged.update(update.model_dump(exclude_unset=True, exclude_none=True))
    merged["user_id"] = uid

    try:
        new_settings = FilterSettings.model_validate(merged)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    logger.info("Filter settings updated for %s", uid)
    return store.save_filter_settings(new_settings)
