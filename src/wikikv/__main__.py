#!/usr/bin/env python3
"""
Wikipedia dump to key-value store importer
==========================================

Streams a MediaWiki XML dump (optionally .bz2, .gz or .xz compressed),
parses every article in parallel worker processes and stores the results,
keyed by canonical title, in a SQLite-backed store created at <store-dir>.

Usage:
    python -m wikikv enwiki-latest-pages-articles.xml.bz2 ./enwiki-db
    python -m wikikv dump.xml ./db 8 --with-source --batch-size 500
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from wikikv.errors import IngestionError
from wikikv.models import (
    DEFAULT_ALLOWED_NAMESPACES,
    DEFAULT_BACKTRACKING_LIMIT,
    DEFAULT_BATCH_SIZE,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_IN_FLIGHT,
    WORKER_MODES,
    IngestionConfig,
)
from wikikv.pipeline import run_ingestion

logger = logging.getLogger("wikikv")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="wikikv",
        description="Import a Wikipedia XML dump into a key-value store (created automatically).",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("input_path", help="pages-articles.xml[.bz2|.gz|.xz] dump file")
    parser.add_argument("output_path", help="Store directory")
    parser.add_argument(
        "worker_count",
        nargs="?",
        type=int,
        default=os.cpu_count() or 1,
        help="Number of parsing workers",
    )
    parser.add_argument(
        "--with-source",
        action="store_true",
        help="Store the raw wikitext alongside each entry",
    )

    # Flow control
    flow_group = parser.add_argument_group("Flow Control")
    flow_group.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help="Entries per atomic store write",
    )
    flow_group.add_argument(
        "--max-in-flight",
        type=int,
        default=DEFAULT_MAX_IN_FLIGHT,
        help="Pages accepted but not yet written before the input is paused",
    )
    flow_group.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help="Bytes read from the dump per step",
    )

    # Parsing
    parse_group = parser.add_argument_group("Parsing")
    parse_group.add_argument(
        "--backtracking-limit",
        type=int,
        default=DEFAULT_BACKTRACKING_LIMIT,
        help="Give up on a page after this many backtracking events",
    )
    parse_group.add_argument(
        "--worker-mode",
        choices=WORKER_MODES,
        default="process",
        help="Run workers as processes or threads",
    )
    parse_group.add_argument(
        "--allow-namespace",
        action="append",
        dest="allowed_namespaces",
        default=None,
        help=f"Namespace prefix to import despite the namespace filter "
        f"(repeatable, default: {', '.join(DEFAULT_ALLOWED_NAMESPACES)})",
    )

    # Output
    out_group = parser.add_argument_group("Output")
    out_group.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress bar",
    )
    out_group.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> IngestionConfig:
    return IngestionConfig(
        input_path=args.input_path,
        output_path=args.output_path,
        worker_count=args.worker_count,
        worker_mode=args.worker_mode,
        include_source=args.with_source,
        batch_size=args.batch_size,
        max_in_flight=args.max_in_flight,
        chunk_size=args.chunk_size,
        backtracking_limit=args.backtracking_limit,
        allowed_namespaces=tuple(args.allowed_namespaces or DEFAULT_ALLOWED_NAMESPACES),
        show_progress=not args.no_progress,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = build_config(args)

    try:
        run_ingestion(config, log_level=args.log_level)
    except IngestionError as e:
        logger.error(f"❌ {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
