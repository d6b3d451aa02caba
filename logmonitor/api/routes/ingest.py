# logmonitor/api/routes/ingest.py
"""
Log ingestion endpoint.

Responsibilities:
- Accept a multipart upload (field `logFile`)
- Create the LogFile entry (status `processing`)
- Run the ingestion pipeline off the event loop
- Return ingestion counters

Records are pushed to live subscribers while the upload is still being processed.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from logmonitor.api.deps import get_pipeline
from logmonitor.schemas.files import UploadResponse
from logmonitor.services.ingest_service import IngestionError, IngestionPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/upload", response_model=UploadResponse)
async def upload_log(
    file: UploadFile = File(..., alias="logFile"),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """
    Upload and ingest a log file.

    Returns:
    - fileId / fileName
    - linesProcessed: non-blank lines consumed
    - errors: lines that matched no known format
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    log_file = pipeline.store.create_file(file_name=file.filename, file_size=len(content))
    logger.info("Processing upload %s as file %s (%d bytes)", file.filename, log_file.id, len(content))

    try:
        # Parsing is CPU-bound; keep the loop free for reads and the live feed.
        result = await asyncio.to_thread(pipeline.ingest, log_file.id, content)
    except IngestionError as e:
        logger.error("Upload %s failed: %s", file.filename, e)
        raise HTTPException(status_code=422, detail="Failed to process file")

    return UploadResponse(
        file_id=log_file.id,
        file_name=log_file.file_name,
        lines_processed=result.lines_processed,
        errors=result.line_errors,
    )
