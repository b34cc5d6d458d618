"""Unit tests for data models and configuration."""
from __future__ import annotations

from pathlib import Path

import pytest

from wikikv.errors import ConfigurationError
from wikikv.models import (
    IngestionConfig,
    ParsedResult,
    PipelineStats,
    RedirectRecord,
    canonical_title,
)
from wikikv.wikiparser import WikitextParser


class TestCanonicalTitle:
    """Test canonical_title."""

    def test_uppercases_first_character_only(self):
        """Test that only the first character is uppercased."""
        assert canonical_title("foo bar") == "Foo bar"
        assert canonical_title("iPhone") == "IPhone"
        assert canonical_title("Bar baz") == "Bar baz"

    def test_rest_is_unchanged(self):
        """Test that the tail of the title keeps its case."""
        assert canonical_title("aBC dEF") == "ABC dEF"

    def test_empty_title(self):
        """Test that an empty title stays empty."""
        assert canonical_title("") == ""

    def test_unicode_first_character(self):
        """Test uppercasing non-ASCII first characters."""
        assert canonical_title("éclair") == "Éclair"
        assert canonical_title("москва") == "Москва"

    @pytest.mark.parametrize("title", ["foo", "Foo", "ßtraße", "1st", "ǆemal", ""])
    def test_idempotent(self, title):
        """Test that canonicalizing twice changes nothing."""
        once = canonical_title(title)
        assert canonical_title(once) == once


class TestStoreValues:
    """Test the serialized value layout of records."""

    def test_parsed_result_value(self):
        """Test the stored layout of a parse result."""
        result = ParsedResult(
            key="Test",
            id=1,
            title="Test",
            ast=[{"type": "text", "value": "Hello"}],
            parse_time=0.5,
            backtracking_count=3,
            parse_failed=True,
        )
        assert result.to_value() == {
            "id": 1,
            "title": "Test",
            "ast": [{"type": "text", "value": "Hello"}],
            "parseTime": 0.5,
            "backtrackingCount": 3,
        }

    def test_parsed_result_value_with_source(self):
        """Test that the source is stored when present."""
        result = ParsedResult(
            key="Test", id=1, title="Test", ast=[], parse_time=0.0,
            backtracking_count=0, source="Hello",
        )
        assert result.to_value()["source"] == "Hello"

    def test_redirect_value(self):
        """Test the stored layout of a redirect."""
        redirect = RedirectRecord(key="Foo", id=7, title="foo", redirect_to="Bar baz")
        assert redirect.to_value() == {"id": 7, "title": "foo", "redirectTo": "Bar baz"}

    def test_redirect_value_keeps_empty_source(self):
        """Test that an empty source is still stored."""
        redirect = RedirectRecord(key="Foo", id=7, title="foo", redirect_to="Bar", source="")
        assert redirect.to_value()["source"] == ""


class TestIngestionConfig:
    """Test IngestionConfig defaults and validation."""

    def test_defaults(self, tmp_path: Path):
        """Test default configuration values."""
        config = IngestionConfig(input_path=tmp_path / "dump.xml", output_path=tmp_path / "db")
        assert config.worker_count >= 1
        assert config.batch_size == 100
        assert config.max_in_flight == 10000
        assert config.backtracking_limit == 50000
        assert config.include_source is False
        assert config.worker_mode == "process"
        assert config.parser_factory is WikitextParser
        assert config.allowed_namespaces == ("Категория",)

    def test_paths_are_coerced(self, tmp_path: Path):
        """Test that string paths become Path objects."""
        config = IngestionConfig(input_path=str(tmp_path / "a.xml"), output_path=str(tmp_path))
        assert isinstance(config.input_path, Path)
        assert isinstance(config.output_path, Path)

    def test_missing_input_rejected(self, tmp_path: Path):
        """Test that a missing input file is rejected."""
        config = IngestionConfig(input_path=tmp_path / "missing.xml", output_path=tmp_path / "db")
        with pytest.raises(ConfigurationError, match="not found"):
            config.validate()

    def test_output_must_not_be_a_file(self, tmp_path: Path):
        """Test that the output location must not be a file."""
        dump = tmp_path / "dump.xml"
        dump.write_text("<mediawiki/>")
        config = IngestionConfig(input_path=dump, output_path=dump)
        with pytest.raises(ConfigurationError, match="directory"):
            config.validate()

    @pytest.mark.parametrize("field", ["worker_count", "batch_size", "max_in_flight", "chunk_size"])
    def test_non_positive_values_rejected(self, tmp_path: Path, field):
        """Test that counts below one are rejected."""
        dump = tmp_path / "dump.xml"
        dump.write_text("<mediawiki/>")
        config = IngestionConfig(input_path=dump, output_path=tmp_path / "db", **{field: 0})
        with pytest.raises(ConfigurationError, match=field):
            config.validate()

    def test_window_smaller_than_batch_rejected(self, tmp_path: Path):
        """Test that max_in_flight below batch_size is rejected."""
        dump = tmp_path / "dump.xml"
        dump.write_text("<mediawiki/>")
        config = IngestionConfig(
            input_path=dump, output_path=tmp_path / "db", batch_size=10, max_in_flight=5
        )
        with pytest.raises(ConfigurationError, match="max_in_flight"):
            config.validate()

    def test_unknown_worker_mode_rejected(self, tmp_path: Path):
        """Test that unknown worker modes are rejected."""
        dump = tmp_path / "dump.xml"
        dump.write_text("<mediawiki/>")
        config = IngestionConfig(input_path=dump, output_path=tmp_path / "db", worker_mode="fiber")
        with pytest.raises(ConfigurationError, match="worker mode"):
            config.validate()


class TestPipelineStats:
    """Test PipelineStats."""

    def test_initial_state(self):
        """Test freshly created statistics."""
        stats = PipelineStats()
        assert stats.entries_written == 0
        assert stats.rate() == 0.0

    def test_summary_mentions_counts(self):
        """Test the summary text and the write rate."""
        stats = PipelineStats(entries_written=1234, parse_failures=2, start_time=1.0, end_time=3.0)
        summary = stats.summary()
        assert "1,234" in summary
        assert stats.rate() == pytest.approx(617.0)
