# logmonitor/main.py
"""
ASGI entry point.

    uvicorn logmonitor.main:app --reload

The store, broadcaster and ingestion pipeline are process-wide and live on
`app.state`; they are built in the lifespan so each TestClient session starts
from an empty store.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse

from logmonitor.api.routes.files import router as files_router
from logmonitor.api.routes.filters import router as filters_router
from logmonitor.api.routes.ingest import router as ingest_router
from logmonitor.api.routes.live import router as live_router
from logmonitor.api.routes.logs import router as logs_router
from logmonitor.core.config import settings
from logmonitor.core.logging import configure_logging
from logmonitor.services.broadcaster import SubscriptionBroadcaster
from logmonitor.services.ingest_service import IngestionPipeline
from logmonitor.services.log_store import LogStore

logger = logging.getLogger("logmonitor")


# -------------------------
# Envelope
# -------------------------
def ok(data: Any = None, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"success": True, "data": data, "error": None, "meta": meta or {}}


def fail(code: str, message: str, details: Any = None, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "success": False,
        "data": None,
        "error": {"code": code, "message": message, "details": details},
        "meta": meta or {},
    }


# -------------------------
# Lifespan
# -------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)

    store = LogStore()
    broadcaster = SubscriptionBroadcaster()
    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.pipeline = IngestionPipeline(store, broadcaster)

    logger.info("Log monitor up (env=%s, upload cap %d MB)", settings.ENV, settings.MAX_UPLOAD_MB)
    try:
        yield
    finally:
        logger.info(
            "Log monitor stopping: %d files, %d live connections",
            len(store.list_files()), broadcaster.subscriber_count(),
        )


# -------------------------
# Middleware / handlers
# -------------------------
async def request_context_middleware(request: Request, call_next):
    """Tag each response with a request id and its duration; reject oversized bodies early."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    started = time.perf_counter()

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > settings.MAX_UPLOAD_BYTES:
        logger.warning("Rejected %s %s: %s bytes", request.method, request.url.path, declared)
        return ORJSONResponse(
            status_code=413,
            content=fail(
                code="PAYLOAD_TOO_LARGE",
                message=f"Upload too large. Max is {settings.MAX_UPLOAD_MB} MB.",
                meta={"request_id": request_id},
            ),
        )

    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    response.headers["x-response-ms"] = f"{(time.perf_counter() - started) * 1000:.2f}"
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    details = {"type": type(exc).__name__, "message": str(exc)} if settings.ENV == "dev" else None
    return ORJSONResponse(
        status_code=500,
        content=fail(code="INTERNAL_ERROR", message="An unexpected error occurred.", details=details),
    )


async def health():
    return ok({"status": "ok", "env": settings.ENV})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Log Monitor API",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_api_route("/health", health, methods=["GET"], tags=["health"])
    for router, tag in (
        (ingest_router, "ingest"),
        (files_router, "files"),
        (logs_router, "logs"),
        (filters_router, "filters"),
        (live_router, "live"),
    ):
        app.include_router(router, tags=[tag])

    return app


app = create_app()
