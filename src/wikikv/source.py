"""
Byte source for dump files.

Reads a dump in fixed-size chunks, transparently decompressing .bz2, .gz
and .xz files. The reader can be paused by the flow controller; while
paused it delivers no bytes.
"""

from __future__ import annotations

import bz2
import gzip
import logging
import lzma
import zlib
from pathlib import Path
from typing import BinaryIO

from wikikv.errors import StreamDecodeError
from wikikv.models import DEFAULT_CHUNK_SIZE

logger = logging.getLogger("wikikv.source")

# Decompression errors surface as any of these depending on the codec
DECODE_ERRORS = (OSError, EOFError, zlib.error, lzma.LZMAError)


def _open_decompressed(raw: BinaryIO, path: Path) -> BinaryIO:
    suffix = path.suffix.lower()
    if suffix == ".bz2":
        return bz2.BZ2File(raw, "rb")
    if suffix == ".gz":
        return gzip.GzipFile(fileobj=raw, mode="rb")
    if suffix == ".xz":
        return lzma.LZMAFile(raw, "rb")
    return raw


class SourceReader:
    """
    Pausable chunked reader over a (possibly compressed) dump file.

    bytes_consumed counts raw file bytes, so it can be compared with
    total_bytes for progress even when the dump is compressed.
    """

    def __init__(self, path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.path = Path(path)
        self.chunk_size = chunk_size
        self.total_bytes = self.path.stat().st_size

        self._raw: BinaryIO = open(self.path, "rb")
        self._stream = _open_decompressed(self._raw, self.path)
        self._paused = False
        self._eof = False
        self._bytes_consumed = 0

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def eof(self) -> bool:
        return self._eof

    @property
    def bytes_consumed(self) -> int:
        self._track_position()
        return self._bytes_consumed

    def _track_position(self) -> None:
        # tell() runs ahead of the decompressor output but never goes backwards
        if not self._raw.closed:
            self._bytes_consumed = max(self._bytes_consumed, self._raw.tell())

    def pause(self) -> None:
        if not self._paused:
            logger.debug(f"⏸️  Source paused at {self.bytes_consumed:,} bytes")
        self._paused = True

    def resume(self) -> None:
        if self._paused:
            logger.debug(f"▶️  Source resumed at {self.bytes_consumed:,} bytes")
        self._paused = False

    def read_chunk(self) -> bytes | None:
        """
        Read the next chunk of decompressed bytes.

        Returns:
            The chunk, b"" once the stream is exhausted, or None while paused.

        Raises:
            StreamDecodeError: If the file is corrupt or cannot be decompressed.
        """
        if self._paused:
            return None
        if self._eof:
            return b""
        try:
            chunk = self._stream.read(self.chunk_size)
        except DECODE_ERRORS as e:
            raise StreamDecodeError(f"Failed to read {self.path.name}: {e}") from e
        if not chunk:
            self._eof = True
            self._bytes_consumed = self.total_bytes
        return chunk

    def close(self) -> None:
        self._track_position()
        if self._stream is not self._raw:
            self._stream.close()
        self._raw.close()

    def __enter__(self) -> "SourceReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
