# logmonitor/api/routes/files.py
"""
Uploaded file registry.

- GET    /api/files            all files, upload order
- DELETE /api/files/{file_id}  remove a file together with its records
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from logmonitor.api.deps import get_store
from logmonitor.schemas.files import LogFile, MessageResponse
from logmonitor.services.log_store import LogStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/files", response_model=List[LogFile])
async def list_files(store: LogStore = Depends(get_store)):
    return store.list_files()


@router.delete("/api/files/{file_id}", response_model=MessageResponse)
async def delete_file(file_id: str, store: LogStore = Depends(get_store)):
    if not store.remove(file_id):
        raise HTTPException(status_code=404, detail="Log file not found")
    logger.info("Deleted file %s", file_id)
    return MessageResponse(message="Log file deleted successfully")
