# logmonitor/services/log_store.py
"""
In-memory log store.

Responsibilities:
- Keep uploaded file metadata (LogFile)
- Keep one append-only record sequence per file, in source order
- Replace the most recent record of a file when a stack-trace line is merged in
- Serve paginated reads and per-file statistics
- Keep per-user filter settings

Concurrency:
- One RLock guards the maps themselves (adding/removing files).
- One Lock per file guards that file's sequence. Ingestion of different files
  never contends; readers take the file lock only long enough to copy a slice.
- Records are immutable. `update_last` swaps a new object into the last slot, so
  a reader sees the record either before or after the merge, never half of it.

Sequences and their locks exist only between `create_file` and `remove`. Reads
of any other id return empty results and allocate nothing; writes to them raise
StoreInconsistencyError.

The store is constructed once per process (see `logmonitor.main`) and injected
into the pipeline and routes; nothing here is a module-level singleton.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from logmonitor.schemas.files import FileStatus, LogFile
from logmonitor.schemas.filters import FilterSettings
from logmonitor.schemas.logs import LogLevel, LogRecord, LogStatistics, new_record_id

logger = logging.getLogger(__name__)


class StoreInconsistencyError(RuntimeError):
    """Raised when an update targets a record or file that is no longer stored."""


class LogStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._files: Dict[str, LogFile] = {}
        self._records: Dict[str, List[LogRecord]] = {}
        self._file_locks: Dict[str, threading.Lock] = {}
        self._filters: Dict[str, FilterSettings] = {}

    def _file_lock(self, file_id: str) -> Optional[threading.Lock]:
        with self._lock:
            return self._file_locks.get(file_id)

    def _live_sequence(self, file_id: str) -> Optional[List[LogRecord]]:
        # Caller holds the file lock; None once the file has been removed.
        with self._lock:
            return self._records.get(file_id)

    # -----------------------
    # Files
    # -----------------------
    def create_file(self, file_name: str, file_size: int) -> LogFile:
        log_file = LogFile(file_name=file_name, file_size=file_size, status=FileStatus.PROCESSING)
        with self._lock:
            self._files[log_file.id] = log_file
            self._records[log_file.id] = []
            self._file_locks[log_file.id] = threading.Lock()
        return log_file

    def get_file(self, file_id: str) -> Optional[LogFile]:
        with self._lock:
            return self._files.get(file_id)

    def list_files(self) -> List[LogFile]:
        with self._lock:
            return list(self._files.values())

    def set_status(self, file_id: str, status: FileStatus) -> Optional[LogFile]:
        with self._lock:
            current = self._files.get(file_id)
            if current is None:
                return None
            updated = current.model_copy(update={"status": status})
            self._files[file_id] = updated
            return updated

    # -----------------------
    # Records
    # -----------------------
    def append(self, file_id: str, record: LogRecord) -> LogRecord:
        """
        Add `record` at the end of the file's sequence and return the stored record.

        Raises:
            ValueError: if the record belongs to another file.
            StoreInconsistencyError: if the file was never created or has been removed.
        """
        if record.file_id != file_id:
            raise ValueError(f"Record belongs to file {record.file_id!r}, not {file_id!r}")
        if not record.id:
            record = record.model_copy(update={"id": new_record_id()})

        lock = self._file_lock(file_id)
        if lock is None:
            raise StoreInconsistencyError(f"File {file_id} is not stored")
        with lock:
            seq = self._live_sequence(file_id)
            if seq is None:
                raise StoreInconsistencyError(f"File {file_id} was removed")
            seq.append(record)
        return record

    def update_last(self, file_id: str, record: LogRecord) -> LogRecord:
        """
        Replace the most recently appended record of `file_id` with `record`.

        Raises:
            StoreInconsistencyError: if the file has no records (cleared/removed)
                or its last record is not the one being updated.
        """
        lock = self._file_lock(file_id)
        if lock is None:
            raise StoreInconsistencyError(f"File {file_id} is not stored")
        with lock:
            seq = self._live_sequence(file_id)
            if not seq:
                raise StoreInconsistencyError(f"No records stored for file {file_id}")
            if seq[-1].id != record.id:
                raise StoreInconsistencyError(
                    f"Last record of file {file_id} is {seq[-1].id}, not {record.id}"
                )
            seq[-1] = record
        return record

    def read(self, file_id: str, limit: Optional[int] = None, offset: int = 0) -> List[LogRecord]:
        """Records `[offset, offset + limit)` in source order. `limit=None` reads to the end."""
        if offset < 0 or (limit is not None and limit <= 0):
            return []
        lock = self._file_lock(file_id)
        if lock is None:
            return []
        with lock:
            seq = self._live_sequence(file_id)
            if not seq:
                return []
            end = None if limit is None else offset + limit
            return seq[offset:end]

    def clear(self, file_id: str) -> None:
        """Drop all records of a file; its metadata stays. Unknown ids are ignored."""
        lock = self._file_lock(file_id)
        if lock is None:
            return
        with lock:
            with self._lock:
                if file_id in self._records:
                    self._records[file_id] = []

    def remove(self, file_id: str) -> bool:
        """Delete a file and its records. Returns False if the file was unknown."""
        lock = self._file_lock(file_id)
        if lock is None:
            return False
        with lock:
            with self._lock:
                existed = self._files.pop(file_id, None) is not None
                self._records.pop(file_id, None)
                self._file_locks.pop(file_id, None)
        return existed

    def statistics(self, file_id: str) -> LogStatistics:
        records = self.read(file_id)
        return LogStatistics(
            total=len(records),
            errors=sum(1 for r in records if r.level is LogLevel.ERROR),
            warnings=sum(1 for r in records if r.level is LogLevel.WARN),
        )

    # -----------------------
    # Filter settings
    # -----------------------
    def get_filter_settings(self, user_id: str) -> Optional[FilterSettings]:
        with self._lock:
            return self._filters.get(user_id)

    def save_filter_settings(self, settings: FilterSettings) -> FilterSettings:
        with self._lock:
            self._filters[settings.user_id] = settings
        return settings
