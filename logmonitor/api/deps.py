# logmonitor/api/deps.py
"""
FastAPI dependencies for the process-wide services.

The store and pipeline are built once in the application lifespan
and kept on `app.state`; routes receive them through these dependencies so
tests can swap in fresh instances.
"""

from __future__ import annotations

from fastapi import Request
from starlette.requests import HTTPConnection

from logmonitor.services.ingest_service import IngestionPipeline
from logmonitor.services.log_store import LogStore


def get_store(request: HTTPConnection) -> LogStore:
    return request.app.state.store


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline
