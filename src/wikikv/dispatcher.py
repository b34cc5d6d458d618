"""
Round-robin dispatch of pages to workers.
"""

from __future__ import annotations

from wikikv.batcher import PersistenceBatcher
from wikikv.models import RawRecord, RedirectRecord
from wikikv.worker import WorkerPool


class Dispatcher:
    """
    Sends each page to the next worker in turn.

    There is no load balancing: a worker stuck on a slow page keeps
    receiving its share and simply builds up a backlog. Redirects need no
    parsing and go straight to the batcher.
    """

    def __init__(self, pool: WorkerPool, batcher: PersistenceBatcher):
        self.pool = pool
        self.batcher = batcher
        self.sent = 0

    def dispatch(self, record: RawRecord) -> int:
        """Send a page to a worker and return that worker's index."""
        index = self.sent % self.pool.size
        self.pool.send(index, record)
        self.sent += 1
        return index

    def forward_redirect(self, redirect: RedirectRecord) -> None:
        self.batcher.append(redirect)
