"""Unit tests for the persistence batcher."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from wikikv.batcher import PersistenceBatcher
from wikikv.errors import PersistenceWriteError
from wikikv.flow import FlowController
from wikikv.models import ParsedResult, RedirectRecord
from wikikv.store import decode_value


def make_result(title: str) -> ParsedResult:
    return ParsedResult(
        key=title, id=1, title=title, ast=[], parse_time=0.0, backtracking_count=0
    )


@pytest.fixture
def flow():
    source = MagicMock()
    source.paused = False
    return FlowController(source, max_in_flight=10)


class TestPersistenceBatcher:
    """Test PersistenceBatcher."""

    def test_flushes_when_batch_full(self, flow):
        """Test that a full batch is written in one call."""
        store = MagicMock()
        batcher = PersistenceBatcher(store, flow, batch_size=2)

        batcher.append(make_result("A"))
        store.write_batch.assert_not_called()
        assert batcher.pending == 1

        batcher.append(RedirectRecord(key="B", id=2, title="b", redirect_to="A"))
        store.write_batch.assert_called_once()
        (written,), _ = store.write_batch.call_args
        assert [key for key, _ in written] == [b"A", b"B"]
        assert decode_value(written[1][1])["redirectTo"] == "A"
        assert batcher.pending == 0

    def test_flush_reports_written_count(self, flow):
        """Test that flushed entries are reported to the flow controller."""
        batcher = PersistenceBatcher(MagicMock(), flow, batch_size=3)
        for title in "ABC":
            flow.record_read()
            batcher.append(make_result(title))
        assert flow.n_written == 3
        assert batcher.entries_written == 3
        assert batcher.batches_written == 1

    def test_explicit_flush_of_partial_batch(self, flow):
        """Test flushing a batch that is not full yet."""
        store = MagicMock()
        batcher = PersistenceBatcher(store, flow, batch_size=100)
        batcher.append(make_result("A"))
        batcher.flush()
        store.write_batch.assert_called_once()
        assert flow.n_written == 1

    def test_empty_flush_is_noop(self, flow):
        """Test that flushing nothing does not touch the store."""
        store = MagicMock()
        batcher = PersistenceBatcher(store, flow, batch_size=2)
        batcher.flush()
        store.write_batch.assert_not_called()
        assert flow.n_written == 0

    def test_flush_resumes_source(self):
        """Test that a flush freeing the window resumes a paused source."""
        source = MagicMock()
        source.paused = False
        flow = FlowController(source, max_in_flight=1)
        batcher = PersistenceBatcher(MagicMock(), flow, batch_size=1)

        flow.record_read()
        source.pause.assert_called_once()
        source.paused = True

        batcher.append(make_result("A"))
        source.resume.assert_called_once()

    def test_write_error_propagates_without_counting(self, flow):
        """Test that a store failure propagates and nothing counts as written."""
        store = MagicMock()
        store.write_batch.side_effect = PersistenceWriteError("disk full")
        batcher = PersistenceBatcher(store, flow, batch_size=1)
        with pytest.raises(PersistenceWriteError, match="disk full"):
            batcher.append(make_result("A"))
        assert flow.n_written == 0
        assert batcher.entries_written == 0
