# logmonitor/schemas/files.py
"""
Schemas for uploaded log files and POST /api/upload.
"""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import Field

from logmonitor.schemas.common import CamelModel, UtcDatetime, utcnow


class FileStatus(str, Enum):
    PROCESSING = "processing"
    ACTIVE = "active"


class LogFile(CamelModel):
    """Metadata of one uploaded source file."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="File identifier")
    file_name: str = Field(..., description="Original file name as uploaded")
    file_size: int = Field(..., ge=0, description="Size of the upload in bytes")
    status: FileStatus = Field(default=FileStatus.PROCESSING, description="processing or active")
    uploaded_at: UtcDatetime = Field(default_factory=utcnow, description="Upload time")


class UploadResponse(CamelModel):
    """
    Response returned after successful ingestion.

    Example:
    {
      "message": "File uploaded and processed successfully",
      "fileId": "5b0c...",
      "fileName": "catalina.out",
      "linesProcessed": 150,
      "errors": 3
    }
    """
    message: str = Field(default="File uploaded and processed successfully")
    file_id: str = Field(..., description="Identifier of the created log file")
    file_name: str = Field(..., description="Original file name")
    lines_processed: int = Field(..., ge=0, description="Non-blank lines consumed by the parser")
    errors: int = Field(..., ge=0, description="Lines that needed the fallback or orphan stack-trace path")


class MessageResponse(CamelModel):
    """Plain acknowledgement for delete/clear operations."""
    message: str
