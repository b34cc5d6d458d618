"""Stub parsers for worker and pipeline tests."""
from __future__ import annotations

import time

from wikikv.models import ParseFailure


class EchoParser:
    """Returns the text as a single node; fails on unbalanced triple braces."""

    def __init__(self, backtracking_limit: int = 0):
        self.backtracking_limit = backtracking_limit
        self.backtracking_count = 0

    def parse(self, text: str):
        self.backtracking_count = text.count("{")
        if text.count("{{{") != text.count("}}}"):
            return ParseFailure("unbalanced braces")
        if not text:
            return []
        return [{"type": "text", "value": text}]


class CrashingParser(EchoParser):
    """Raises instead of returning an error value."""

    def parse(self, text: str):
        if "crash" in text:
            raise RuntimeError("parser blew up")
        return super().parse(text)


class SlowParser(EchoParser):
    """Echo parser that takes a while, so results lag behind extraction."""

    delay = 0.02

    def parse(self, text: str):
        time.sleep(self.delay)
        return super().parse(text)
