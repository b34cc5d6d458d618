"""
Data models for the dump-to-store pipeline.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from wikikv.errors import ConfigurationError

# Reference tool defaults
DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_IN_FLIGHT = 10000
DEFAULT_BACKTRACKING_LIMIT = 50000
DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_ALLOWED_NAMESPACES = ("Категория",)

WORKER_MODES = ("process", "thread")


def canonical_title(title: str) -> str:
    """Uppercase the first character of a title, leaving the rest untouched."""
    if not title:
        return title
    return title[0].upper() + title[1:]


def _default_worker_count() -> int:
    return os.cpu_count() or 1


def _default_parser_factory() -> Callable[[int], Any]:
    # Imported lazily so models stay importable without wikitextparser
    from wikikv.wikiparser import WikitextParser

    return WikitextParser


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class IngestionConfig:
    """Configuration for an ingestion run."""

    input_path: Path
    output_path: Path

    # Parallelism
    worker_count: int = field(default_factory=_default_worker_count)
    worker_mode: str = "process"  # "process" or "thread"
    start_method: str | None = None  # multiprocessing start method, None = platform default

    # Output
    include_source: bool = False

    # Flow control
    batch_size: int = DEFAULT_BATCH_SIZE
    max_in_flight: int = DEFAULT_MAX_IN_FLIGHT
    chunk_size: int = DEFAULT_CHUNK_SIZE

    # Parsing
    backtracking_limit: int = DEFAULT_BACKTRACKING_LIMIT
    parser_factory: Callable[[int], Any] = field(default_factory=_default_parser_factory)
    allowed_namespaces: tuple[str, ...] = DEFAULT_ALLOWED_NAMESPACES

    # UI
    show_progress: bool = True

    def __post_init__(self) -> None:
        self.input_path = Path(self.input_path)
        self.output_path = Path(self.output_path)
        self.allowed_namespaces = tuple(self.allowed_namespaces)

    def validate(self) -> None:
        """
        Check the configuration before any resource is opened.

        Raises:
            ConfigurationError: If a value is out of range or the input is missing.
        """
        if not self.input_path.is_file():
            raise ConfigurationError(f"Input file not found: {self.input_path}")
        if self.output_path.exists() and not self.output_path.is_dir():
            raise ConfigurationError(
                f"Output location must be a directory: {self.output_path}"
            )
        for name in ("worker_count", "batch_size", "max_in_flight", "chunk_size"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigurationError(f"{name} must be at least 1, got {value}")
        if self.backtracking_limit < 0:
            raise ConfigurationError(
                f"backtracking_limit must not be negative, got {self.backtracking_limit}"
            )
        # A smaller window could pause the source with a partial batch that never fills
        if self.max_in_flight < self.batch_size:
            raise ConfigurationError(
                f"max_in_flight ({self.max_in_flight}) must be >= batch_size ({self.batch_size})"
            )
        if self.worker_mode not in WORKER_MODES:
            raise ConfigurationError(
                f"Unknown worker mode {self.worker_mode!r}, expected one of {WORKER_MODES}"
            )


# =============================================================================
# RECORD MODELS
# =============================================================================


@dataclass(frozen=True)
class RawRecord:
    """One <page> from the dump, before filtering."""

    id: int
    title: str
    source_text: str


@dataclass(frozen=True)
class ParseFailure:
    """Error value returned (not raised) by a parser that gave up on a page."""

    message: str


@dataclass(frozen=True)
class RedirectRecord:
    """A page whose body declares it an alias of another title."""

    key: str
    id: int
    title: str
    redirect_to: str
    source: str | None = None

    def to_value(self) -> dict[str, Any]:
        value: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "redirectTo": self.redirect_to,
        }
        if self.source is not None:
            value["source"] = self.source
        return value


@dataclass(frozen=True)
class ParsedResult:
    """Worker output for a regular page."""

    key: str
    id: int
    title: str
    ast: list[Any]
    parse_time: float
    backtracking_count: int
    source: str | None = None
    parse_failed: bool = False  # diagnostics only, never persisted

    def to_value(self) -> dict[str, Any]:
        value: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "ast": self.ast,
            "parseTime": self.parse_time,
            "backtrackingCount": self.backtracking_count,
        }
        if self.source is not None:
            value["source"] = self.source
        return value


# =============================================================================
# STATISTICS
# =============================================================================


@dataclass
class PipelineStats:
    """Counters for one ingestion run."""

    bytes_read: int = 0
    records_accepted: int = 0
    records_excluded: int = 0
    records_malformed: int = 0
    redirects: int = 0
    dispatched: int = 0
    parsed: int = 0
    parse_failures: int = 0
    entries_written: int = 0
    batches_written: int = 0
    pauses: int = 0

    start_time: float = 0.0
    end_time: float = 0.0

    def elapsed(self) -> float:
        end = self.end_time or time.time()
        return end - self.start_time if self.start_time else 0.0

    def rate(self) -> float:
        """Entries written per second."""
        elapsed = self.elapsed()
        return self.entries_written / elapsed if elapsed > 0 else 0.0

    def summary(self) -> str:
        """Generate summary string."""
        return (
            f"\n{'='*70}\n"
            f"📊 IMPORT SUMMARY\n"
            f"{'='*70}\n"
            f"⏱️  Duration: {self.elapsed():.1f}s\n"
            f"📦 Read: {self.bytes_read / (1 << 20):,.1f} MB\n"
            f"📄 Records: {self.records_accepted:,} accepted, "
            f"{self.records_excluded:,} excluded, {self.records_malformed:,} malformed\n"
            f"↪️  Redirects: {self.redirects:,}\n"
            f"🧩 Parsed: {self.parsed:,} ({self.parse_failures:,} failures)\n"
            f"💾 Written: {self.entries_written:,} entries in {self.batches_written:,} batches\n"
            f"⏸️  Pauses: {self.pauses:,}\n"
            f"⚡ Rate: {self.rate():.1f} entries/sec\n"
            f"{'='*70}"
        )
