"""
Pytest Fixtures
===============

Dump files and configs shared by the test modules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from wikikv.models import IngestionConfig
from wikikv.tests.dumps import Page, compress, render_dump
from wikikv.tests.stubs import EchoParser


@pytest.fixture
def write_dump(tmp_path: Path) -> Callable[..., Path]:
    """Write a dump file and return its path; compression follows the suffix."""

    def _write(pages: list[Page], name: str = "pages-articles.xml") -> Path:
        path = tmp_path / name
        path.write_bytes(compress(render_dump(pages), path.suffix.lower()))
        return path

    return _write


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., IngestionConfig]:
    """Build a thread-mode config with the echo parser and no progress bar."""

    def _make(input_path: Path, **overrides) -> IngestionConfig:
        values = dict(
            input_path=input_path,
            output_path=tmp_path / "store",
            worker_count=2,
            worker_mode="thread",
            parser_factory=EchoParser,
            batch_size=2,
            max_in_flight=4,
            show_progress=False,
        )
        values.update(overrides)
        return IngestionConfig(**values)

    return _make
