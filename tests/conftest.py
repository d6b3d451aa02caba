"""Pytest fixtures: app client, fresh store/broadcaster/pipeline, sample log text."""
import os
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

# Must be set before the app (and its settings) are imported
os.environ.setdefault("ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from logmonitor.main import app
from logmonitor.schemas.logs import LogLevel, LogRecord
from logmonitor.services.broadcaster import SubscriptionBroadcaster
from logmonitor.services.ingest_service import IngestionPipeline
from logmonitor.services.log_store import LogStore

SAMPLE_TRACE = (
    b"2024-01-01 10:00:00.000 ERROR [svc] boom\n"
    b"  at foo.bar(Baz.java:10)\n"
    b"  at qux.quux(Quux.java:20)"
)


class RecordingSubscriber:
    """Subscriber that keeps every delivered message."""

    def __init__(self):
        self.messages = []

    def deliver(self, message):
        self.messages.append(message)


class ClosedSubscriber:
    """Subscriber whose connection has already gone away."""

    def deliver(self, message):
        raise ConnectionResetError("socket closed")


@pytest.fixture(scope="function")
def client():
    """TestClient; the lifespan builds a fresh store and broadcaster per test."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def store():
    return LogStore()


@pytest.fixture
def broadcaster():
    return SubscriptionBroadcaster()


@pytest.fixture
def pipeline(store, broadcaster):
    return IngestionPipeline(store, broadcaster)


@pytest.fixture
def make_record():
    def _make(file_id="f1", line_number=1, level=LogLevel.INFO, message="msg", **kwargs):
        kwargs.setdefault("timestamp", datetime(2024, 1, 1, 10, 0, 0))
        return LogRecord(file_id=file_id, line_number=line_number, level=level, message=message, **kwargs)

    return _make


@pytest.fixture
def sample_trace():
    return SAMPLE_TRACE


@pytest.fixture
def recording_subscriber():
    return RecordingSubscriber()


@pytest.fixture
def closed_subscriber():
    return ClosedSubscriber()
