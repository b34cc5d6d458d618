"""
Batched persistence of parsed pages and redirects.
"""

from __future__ import annotations

import logging

from wikikv.flow import FlowController
from wikikv.models import DEFAULT_BATCH_SIZE, ParsedResult, RedirectRecord
from wikikv.store import Entry, KeyValueStore, encode_entry

logger = logging.getLogger("wikikv.batcher")


class PersistenceBatcher:
    """
    Buffers store entries and writes them in fixed-size atomic batches.

    The batcher is the only writer of its store. After every successful
    flush it reports the written count to the flow controller, which may
    resume the source. Write errors propagate untouched: there is no retry
    and the pending batch is not recovered.
    """

    def __init__(
        self,
        store: KeyValueStore,
        flow: FlowController,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.store = store
        self.flow = flow
        self.batch_size = batch_size
        self.entries_written = 0
        self.batches_written = 0
        self._batch: list[Entry] = []

    @property
    def pending(self) -> int:
        return len(self._batch)

    def append(self, record: ParsedResult | RedirectRecord) -> None:
        self._batch.append(encode_entry(record))
        if len(self._batch) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        """Write the current batch, if any, as one transaction."""
        if not self._batch:
            return
        batch, self._batch = self._batch, []
        self.store.write_batch(batch)
        self.entries_written += len(batch)
        self.batches_written += 1
        logger.debug(f"💾 Flushed {len(batch)} entries (total {self.entries_written:,})")
        self.flow.record_written(len(batch))
