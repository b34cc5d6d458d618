"""
Parsing workers and the pool that runs them.

Each worker is an isolated thread or process holding one long-lived parser.
The coordinator talks to it only through queues: every worker has its own
request queue, and all workers share one response queue that the batcher
drains. Messages:

    request:  RawRecord | ShutdownSignal
    response: ParsedResult | WorkerStopped

A worker that receives ShutdownSignal first finishes every request queued
before it, then answers WorkerStopped and exits.
"""

from __future__ import annotations

import logging
import multiprocessing
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Union

from wikikv.errors import WorkerTerminatedError
from wikikv.models import (
    DEFAULT_BACKTRACKING_LIMIT,
    ParsedResult,
    ParseFailure,
    RawRecord,
    canonical_title,
)
from wikikv.wikiparser import PageParser

logger = logging.getLogger("wikikv.worker")

ParserFactory = Callable[[int], PageParser]


@dataclass(frozen=True)
class ShutdownSignal:
    """Ask a worker to stop once its queue is drained."""

    pass


@dataclass(frozen=True)
class WorkerStopped:
    """Last message a worker sends before exiting."""

    worker_index: int


WorkerRequest = Union[RawRecord, ShutdownSignal]
WorkerResponse = Union[ParsedResult, WorkerStopped]


class Worker:
    """Turns raw pages into parsed results with a single reusable parser."""

    def __init__(self, parser: PageParser, include_source: bool = False):
        self.parser = parser
        self.include_source = include_source

    def handle(self, record: RawRecord) -> ParsedResult:
        start = time.perf_counter()
        outcome = self.parser.parse(record.source_text)
        failed = isinstance(outcome, ParseFailure)
        if failed:
            logger.warning(f"⚠️  Failed to parse {record.title!r}: {outcome.message}")
            ast: list[Any] = []
        else:
            ast = outcome
        parse_time = time.perf_counter() - start

        return ParsedResult(
            key=canonical_title(record.title),
            id=record.id,
            title=record.title,
            ast=ast,
            parse_time=parse_time,
            backtracking_count=self.parser.backtracking_count,
            source=record.source_text if self.include_source else None,
            parse_failed=failed,
        )


def serve_requests(
    worker_index: int,
    parser_factory: ParserFactory,
    backtracking_limit: int,
    include_source: bool,
    requests: Any,
    responses: Any,
) -> None:
    """
    Worker message loop; the target of every worker thread or process.

    A parser that raises instead of returning ParseFailure ends the loop and
    the worker with it.
    """
    worker = Worker(parser_factory(backtracking_limit), include_source)
    while True:
        message = requests.get()
        if isinstance(message, ShutdownSignal):
            break
        try:
            responses.put(worker.handle(message))
        except Exception:
            logger.exception(f"❌ Worker {worker_index} crashed on {message.title!r}")
            raise
    responses.put(WorkerStopped(worker_index))


class WorkerHandle:
    """Coordinator-side view of one worker: its unit and its request queue."""

    def __init__(self, index: int, unit: Any, requests: Any):
        self.index = index
        self.unit = unit
        self.requests = requests
        self.stopped = False

    @property
    def name(self) -> str:
        return self.unit.name

    @property
    def exitcode(self) -> int | None:
        return getattr(self.unit, "exitcode", None)

    def send(self, message: WorkerRequest) -> None:
        self.requests.put(message)

    def is_alive(self) -> bool:
        return self.unit.is_alive()


class WorkerPool:
    """
    Fixed-size pool of channel-connected workers.

    mode="process" runs each worker in its own process (the parser is CPU
    bound); mode="thread" runs them as daemon threads, which is mostly
    useful for tests and for parsers that release the GIL.
    """

    def __init__(
        self,
        size: int,
        parser_factory: ParserFactory,
        backtracking_limit: int = DEFAULT_BACKTRACKING_LIMIT,
        include_source: bool = False,
        mode: str = "process",
        start_method: str | None = None,
    ):
        self.size = size
        self.parser_factory = parser_factory
        self.backtracking_limit = backtracking_limit
        self.include_source = include_source
        self.mode = mode

        if mode == "process":
            self._context = multiprocessing.get_context(start_method)
            self.responses: Any = self._context.Queue()
        else:
            self._context = None
            self.responses = queue.Queue()

        self.handles: list[WorkerHandle] = [self._create_handle(i) for i in range(size)]
        self._started = False

    def _create_handle(self, index: int) -> WorkerHandle:
        requests: Any = self._context.Queue() if self._context is not None else queue.Queue()
        args = (
            index,
            self.parser_factory,
            self.backtracking_limit,
            self.include_source,
            requests,
            self.responses,
        )
        unit_class: Any = self._context.Process if self._context is not None else threading.Thread
        unit = unit_class(
            target=serve_requests,
            args=args,
            name=f"parse-worker-{index}",
            daemon=True,
        )
        return WorkerHandle(index, unit, requests)

    def start(self) -> None:
        for handle in self.handles:
            handle.unit.start()
        self._started = True
        logger.info(f"👷 Started {self.size} {self.mode} workers")

    @property
    def all_stopped(self) -> bool:
        return all(handle.stopped for handle in self.handles)

    def send(self, index: int, record: RawRecord) -> None:
        self.handles[index].send(record)

    def poll(self, timeout: float | None = None) -> WorkerResponse | None:
        """
        Take the next response from the merged response queue.

        Args:
            timeout: Seconds to wait; None or 0 returns immediately.

        Returns:
            The response, or None if nothing arrived in time.

        Raises:
            WorkerTerminatedError: If a worker died without being stopped.
        """
        try:
            if timeout:
                message = self.responses.get(timeout=timeout)
            else:
                message = self.responses.get_nowait()
        except queue.Empty:
            self.check_alive()
            return None
        if isinstance(message, WorkerStopped):
            self.handles[message.worker_index].stopped = True
        return message

    def check_alive(self) -> None:
        for handle in self.handles:
            if handle.stopped or handle.is_alive():
                continue
            # its WorkerStopped may still be waiting in the response queue
            if self.responses.empty():
                raise WorkerTerminatedError(handle.name, handle.exitcode)

    def shutdown(self) -> None:
        """Send the shutdown signal to every worker; queued work is still served."""
        logger.info("🛑 Shutting down workers...")
        for handle in self.handles:
            handle.send(ShutdownSignal())

    def join(self, timeout: float | None = None) -> None:
        for handle in self.handles:
            handle.unit.join(timeout)

    def terminate(self) -> None:
        """Stop workers without draining; pending requests are lost."""
        for handle in self.handles:
            if isinstance(handle.unit, threading.Thread):
                continue  # daemon threads die with the process
            if handle.unit.is_alive():
                handle.unit.terminate()
        if self._context is not None:
            self.join(timeout=5.0)

    def __enter__(self) -> "WorkerPool":
        if not self._started:
            self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.terminate()
