"""
Flow control between the extractor and the batcher.

The extractor counts records it accepts, the batcher counts records it has
durably written. When the difference reaches max_in_flight the source is
paused; it is resumed as soon as a flush brings the difference back under
the limit. Only the coordinator thread touches these counters.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger("wikikv.flow")


class Pausable(Protocol):
    paused: bool

    def pause(self) -> None: ...

    def resume(self) -> None: ...


class FlowController:
    """Bounds the number of records accepted but not yet persisted."""

    def __init__(self, source: Pausable, max_in_flight: int):
        self.source = source
        self.max_in_flight = max_in_flight
        self.n_read = 0
        self.n_written = 0
        self.pauses = 0

    @property
    def in_flight(self) -> int:
        return self.n_read - self.n_written

    def record_read(self) -> None:
        """Count one accepted record and pause the source if the window is full."""
        self.n_read += 1
        if self.in_flight >= self.max_in_flight and not self.source.paused:
            self.source.pause()
            self.pauses += 1

    def record_written(self, count: int) -> None:
        """Count flushed records and resume the source once the window has room."""
        self.n_written += count
        if self.in_flight < self.max_in_flight and self.source.paused:
            self.source.resume()
