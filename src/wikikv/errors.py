"""
Exceptions raised by the ingestion pipeline.

Everything except RecordDecodeError aborts the run. Parser failures are not
exceptions at all: see wikikv.models.ParseFailure.
"""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for all fatal ingestion errors."""

    pass


class ConfigurationError(IngestionError):
    """Raised when the run configuration is invalid."""

    pass


class StreamDecodeError(IngestionError):
    """Raised when the byte stream cannot be decompressed or decoded as XML."""

    pass


class RecordDecodeError(IngestionError):
    """Raised for a single malformed <page>; the extractor skips it."""

    pass


class PersistenceWriteError(IngestionError):
    """Raised when a batch write to the store fails."""

    pass


class WorkerTerminatedError(IngestionError):
    """Raised when a worker dies before it was asked to stop."""

    def __init__(self, worker_name: str, exitcode: int | None = None) -> None:
        self.worker_name = worker_name
        self.exitcode = exitcode
        detail = f" (exit code {exitcode})" if exitcode is not None else ""
        super().__init__(f"Worker {worker_name} died unexpectedly{detail}")
