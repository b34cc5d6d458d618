"""
Dump-to-store ingestion pipeline.

Architecture:
    ┌──────────────┐     ┌──────────────┐     ┌──────────────┐     ┌──────────────┐
    │   Source     │────▶│  Extractor   │────▶│  Dispatcher  │────▶│   Workers    │
    │ (bz2/gz/xz)  │     │ (lxml pull)  │     │ (round-robin)│     │  (N procs)   │
    └──────────────┘     └──────────────┘     └──────────────┘     └──────────────┘
           ▲                                          │ redirects          │ results
           │ pause/resume                             ▼                    ▼
    ┌──────────────┐                          ┌─────────────────────────────────────┐
    │    Flow      │◀─────────────────────────│          Persistence Batcher        │
    │  Controller  │      records written     │          (SQLite, atomic)           │
    └──────────────┘                          └─────────────────────────────────────┘

The coordinator runs every stage except the workers in a single thread,
so none of its state needs locking. Each loop iteration lets the
extractor read and route one chunk, then drains whatever results the
workers have sent back. While the source is paused the loop blocks on the
response queue instead, which is where a flush eventually resumes it.

At end of stream every worker is told to shut down, the remaining replies
are drained until each worker has confirmed it stopped, and the last
partial batch is flushed. Any fatal error aborts immediately without
draining.
"""

from __future__ import annotations

import logging
import time

from tqdm import tqdm

from wikikv.batcher import PersistenceBatcher
from wikikv.dispatcher import Dispatcher
from wikikv.extractor import RecordExtractor
from wikikv.flow import FlowController
from wikikv.models import IngestionConfig, ParsedResult, PipelineStats
from wikikv.source import SourceReader
from wikikv.store import KeyValueStore, SqliteKeyValueStore
from wikikv.worker import WorkerPool

logger = logging.getLogger("wikikv.pipeline")

# How long a blocked coordinator waits before re-checking worker liveness
POLL_INTERVAL = 0.1

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int | str = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


class IngestionPipeline:
    """
    Wires source, extractor, dispatcher, workers and batcher for one run.

    The store may be injected (tests do); otherwise a SqliteKeyValueStore
    is opened at config.output_path. The pipeline owns and closes it.
    """

    def __init__(self, config: IngestionConfig, store: KeyValueStore | None = None):
        config.validate()
        self.config = config
        self.stats = PipelineStats()
        self._store = store

        self.source: SourceReader | None = None
        self.flow: FlowController | None = None
        self.pool: WorkerPool | None = None
        self.batcher: PersistenceBatcher | None = None
        self.extractor: RecordExtractor | None = None
        self._pbar: tqdm | None = None
        self._last_progress_update = 0.0

    def run(self) -> PipelineStats:
        """
        Import the whole dump.

        Returns:
            Final pipeline statistics.

        Raises:
            IngestionError: On any fatal condition; the run is aborted.
        """
        config = self.config
        self.stats = PipelineStats(start_time=time.time())
        store: KeyValueStore | None = self._store
        self.source = None
        self._pbar = None
        self.flow = None
        self.batcher = None

        try:
            if store is None:
                store = SqliteKeyValueStore(config.output_path)
            self.source = SourceReader(config.input_path, config.chunk_size)
            self.flow = FlowController(self.source, config.max_in_flight)
            self.batcher = PersistenceBatcher(store, self.flow, config.batch_size)
            self.pool = WorkerPool(
                size=config.worker_count,
                parser_factory=config.parser_factory,
                backtracking_limit=config.backtracking_limit,
                include_source=config.include_source,
                mode=config.worker_mode,
                start_method=config.start_method,
            )
            dispatcher = Dispatcher(self.pool, self.batcher)
            self.extractor = RecordExtractor(
                self.source,
                dispatcher,
                self.flow,
                stats=self.stats,
                include_source=config.include_source,
                allowed_namespaces=config.allowed_namespaces,
            )

            self._pbar = tqdm(
                total=self.source.total_bytes,
                unit="B",
                unit_scale=True,
                unit_divisor=1024,
                desc="xml → store",
                dynamic_ncols=True,
                disable=not config.show_progress,
            )

            logger.info(
                f"🚀 Importing {config.input_path} into {config.output_path} "
                f"with {config.worker_count} {config.worker_mode} workers"
            )

            with self.pool:
                self._run_loop()
                self._drain_workers()
                self.batcher.flush()
                self.pool.join()
        except Exception:
            logger.error("❌ Import aborted")
            raise
        finally:
            if self._pbar is not None:
                self._update_progress(force=True)
                self._pbar.close()
            if self.source is not None:
                self.source.close()
            if store is not None:
                store.close()
            self._sync_stats()
            self.stats.end_time = time.time()

        logger.info(f"✅ Import complete: {self.stats.entries_written:,} entries written")
        return self.stats

    def _run_loop(self) -> None:
        """Extract and dispatch until the stream is exhausted."""
        assert self.extractor is not None and self.source is not None
        while self.extractor.step():
            self._collect_results(block=self.source.paused)
            self._update_progress()
        logger.info("📭 End of stream reached")

    def _drain_workers(self) -> None:
        """Shut the workers down and persist every reply still on its way."""
        assert self.pool is not None
        self.pool.shutdown()
        while not self.pool.all_stopped:
            self._collect_results(block=True)

    def _collect_results(self, block: bool) -> None:
        """
        Move worker replies into the batcher.

        With block=True, waits until at least one message arrives.
        """
        assert self.pool is not None and self.batcher is not None
        timeout = POLL_INTERVAL if block else None
        while True:
            message = self.pool.poll(timeout)
            if message is None:
                if block:
                    continue
                return
            if isinstance(message, ParsedResult):
                self.stats.parsed += 1
                if message.parse_failed:
                    self.stats.parse_failures += 1
                self.batcher.append(message)
            # after the first message, only take what is already there
            timeout = None
            block = False

    def _sync_stats(self) -> None:
        if self.batcher is not None:
            self.stats.entries_written = self.batcher.entries_written
            self.stats.batches_written = self.batcher.batches_written
        if self.flow is not None:
            self.stats.pauses = self.flow.pauses
        if self.source is not None:
            self.stats.bytes_read = self.source.bytes_consumed

    def _update_progress(self, force: bool = False) -> None:
        """Advance the progress bar, at most ten times a second."""
        if self._pbar is None or self.source is None:
            return
        now = time.time()
        if not force and now - self._last_progress_update < 0.1:
            return
        self._last_progress_update = now

        self._pbar.update(self.source.bytes_consumed - self._pbar.n)
        if self.flow is not None and self.batcher is not None:
            self._pbar.set_postfix(
                {
                    "in_flight": self.flow.in_flight,
                    "written": self.batcher.entries_written,
                },
                refresh=False,
            )

    def get_stats(self) -> PipelineStats:
        """Get current pipeline statistics."""
        self._sync_stats()
        return self.stats


def run_ingestion(config: IngestionConfig, log_level: int | str = logging.INFO) -> PipelineStats:
    """
    Convenience function to run a full import.

    Args:
        config: Run configuration
        log_level: Root logging level

    Returns:
        Final pipeline statistics
    """
    configure_logging(log_level)
    logger.info(
        f"📊 Config: batch_size={config.batch_size}, "
        f"max_in_flight={config.max_in_flight}, "
        f"workers={config.worker_count}, "
        f"backtracking_limit={config.backtracking_limit}"
    )

    pipeline = IngestionPipeline(config)
    stats = pipeline.run()
    logger.info(stats.summary())
    return stats
