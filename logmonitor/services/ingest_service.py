# logmonitor/services/ingest_service.py
"""
Ingestion-side orchestration (bytes -> text -> records -> store + live feed).

Why a service?
- Keeps the /api/upload route thin
- Runs the same way from a route, a script, or a test
- Easier to test independently of HTTP

Flow for one file:
1) Mark the file `processing`
2) Decode bytes (chardet + Cyrillic code pages, see utils.encoding)
3) Split on "\\n" and feed non-blank lines to a fresh LineParser, in order
4) New records are appended and published; stack-trace continuations replace
   the last stored record and the merged record is published again
5) Mark the file `active`

Per-line problems never fail a file (they become fallback records). Decode
failures and store inconsistencies do: the file is left in `processing` and the
error is raised to the caller.

A file is ingested by exactly one pipeline call; lines are never processed in
parallel because continuation merging depends on their order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from logmonitor.schemas.files import FileStatus
from logmonitor.services.broadcaster import SubscriptionBroadcaster
from logmonitor.services.log_store import LogStore, StoreInconsistencyError
from logmonitor.utils.encoding import DecodeError, decode_bytes
from logmonitor.utils.parsers import LineParser

logger = logging.getLogger(__name__)

# Only the first few unmatched lines of a file are logged individually.
MAX_LOGGED_ANOMALIES = 10
PROGRESS_EVERY = 1000


class IngestionError(RuntimeError):
    """Raised when a file cannot be ingested; the file never reaches `active`."""


@dataclass(frozen=True)
class IngestResult:
    file_id: str
    lines_processed: int
    records_created: int
    continuations: int
    line_errors: int

    @property
    def records_processed(self) -> int:
        return self.records_created


class IngestionPipeline:
    def __init__(
        self,
        store: LogStore,
        broadcaster: SubscriptionBroadcaster,
        parser_factory: Callable[[str], LineParser] = LineParser,
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self._parser_factory = parser_factory

    def ingest(self, file_id: str, content: bytes) -> IngestResult:
        """
        Ingest `content` into the (already created) file `file_id`.

        Raises:
            IngestionError: on decode failure, or when the file disappears or is
                cleared while it is being ingested.
        """
        if self.store.set_status(file_id, FileStatus.PROCESSING) is None:
            raise IngestionError(f"Unknown file {file_id}")

        try:
            decoded = decode_bytes(content)
        except DecodeError as e:
            logger.error("Decode failed for file %s: %s", file_id, e)
            raise IngestionError(str(e)) from e

        lines = decoded.text.split("\n")
        logger.info("Ingesting file %s: %d raw lines", file_id, len(lines))

        parser = self._parser_factory(file_id)
        line_number = 0
        created = continuations = line_errors = 0

        try:
            for raw in lines:
                if not raw.strip():
                    continue
                line_number += 1

                outcome = parser.feed(raw, line_number)
                if outcome is None:
                    continue

                if outcome.is_new:
                    stored = self.store.append(file_id, outcome.record)
                    created += 1
                else:
                    stored = self.store.update_last(file_id, outcome.record)
                    continuations += 1

                if outcome.is_anomaly:
                    line_errors += 1
                    if line_errors <= MAX_LOGGED_ANOMALIES:
                        logger.warning(
                            "Unmatched line %d in file %s (%s): %.100s",
                            line_number, file_id, outcome.kind.value, raw.strip(),
                        )

                self.broadcaster.publish(file_id, stored)

                if line_number % PROGRESS_EVERY == 0:
                    logger.debug("File %s: processed %d lines", file_id, line_number)
        except StoreInconsistencyError as e:
            logger.error("Ingestion of file %s aborted at line %d: %s", file_id, line_number, e)
            raise IngestionError(str(e)) from e

        self.store.set_status(file_id, FileStatus.ACTIVE)

        result = IngestResult(
            file_id=file_id,
            lines_processed=line_number,
            records_created=created,
            continuations=continuations,
            line_errors=line_errors,
        )
        logger.info(
            "File %s processed: %d lines, %d records, %d continuations, %d unmatched",
            file_id, result.lines_processed, created, continuations, line_errors,
        )
        return result

    def ingest_upload(self, file_name: str, content: bytes, file_size: Optional[int] = None) -> IngestResult:
        """Create a file entry for an upload and ingest it."""
        log_file = self.store.create_file(
            file_name=file_name,
            file_size=len(content) if file_size is None else file_size,
        )
        logger.info("Created log file %s for %s (%d bytes)", log_file.id, file_name, log_file.file_size)
        return self.ingest(log_file.id, content)
