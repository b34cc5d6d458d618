"""
Wikipedia Dump to Key-Value Store Importer
==========================================

Streams a MediaWiki XML dump into a persistent key-value store, parsing
every article in parallel while keeping memory bounded.

Architecture:
- Single-threaded cooperative coordinator (no locks)
- Pausable, decompressing byte source
- Incremental lxml page extraction with namespace and redirect filtering
- Round-robin dispatch to isolated parser workers
- Fixed-size atomic batch writes with flow-controlled backpressure

Modules:
- models: Records, config and statistics
- source: Chunked, pausable dump reader
- extractor: Page decoding, namespace filter, redirect detection
- dispatcher: Round-robin routing to workers
- worker: Parser workers and the pool running them
- wikiparser: Default wikitext parser
- flow: In-flight window between extraction and persistence
- batcher: Batched persistence
- store: SQLite-backed key-value store
- pipeline: Coordinator
"""

from wikikv.batcher import PersistenceBatcher
from wikikv.dispatcher import Dispatcher
from wikikv.errors import (
    ConfigurationError,
    IngestionError,
    PersistenceWriteError,
    RecordDecodeError,
    StreamDecodeError,
    WorkerTerminatedError,
)
from wikikv.extractor import PageDecoder, RecordExtractor, iter_records
from wikikv.flow import FlowController
from wikikv.models import (
    IngestionConfig,
    ParsedResult,
    ParseFailure,
    PipelineStats,
    RawRecord,
    RedirectRecord,
    canonical_title,
)
from wikikv.pipeline import IngestionPipeline, run_ingestion
from wikikv.source import SourceReader
from wikikv.store import SqliteKeyValueStore
from wikikv.wikiparser import PageParser, WikitextParser
from wikikv.worker import Worker, WorkerPool

__all__ = [
    # Models
    "RawRecord",
    "RedirectRecord",
    "ParsedResult",
    "ParseFailure",
    "IngestionConfig",
    "PipelineStats",
    "canonical_title",
    # Errors
    "IngestionError",
    "ConfigurationError",
    "StreamDecodeError",
    "RecordDecodeError",
    "PersistenceWriteError",
    "WorkerTerminatedError",
    # Stages
    "SourceReader",
    "PageDecoder",
    "RecordExtractor",
    "iter_records",
    "Dispatcher",
    "FlowController",
    "PersistenceBatcher",
    "Worker",
    "WorkerPool",
    "PageParser",
    "WikitextParser",
    "SqliteKeyValueStore",
    # Pipeline
    "IngestionPipeline",
    "run_ingestion",
]

__version__ = "1.0.0"
