"""Helpers for reading Apple Mail ``.emlx`` message files.

An ``.emlx`` file starts with a line holding the byte count of the RFC 822
message that follows it. The message is followed by a property list with
Apple's own metadata, which standard parsers choke on.
"""

from __future__ import annotations

import io
import re
from pathlib import Path
from typing import BinaryIO

_BYTE_COUNT = re.compile(rb"[+-]?[0-9]+")


class MalformedFramingError(ValueError):
    """Raised when the ``.emlx`` byte-count line cannot be read.

    ``fallback`` holds the original, unstripped stream so callers that catch
    the error still have something to read from.
    """

    def __init__(self, message: str, fallback: BinaryIO | None = None):
        super().__init__(message)
        self.fallback = fallback


class BoundedReader(io.RawIOBase):
    """Read-only view over at most ``limit`` bytes of ``stream``."""

    def __init__(self, stream: BinaryIO, limit: int):
        super().__init__()
        self._stream = stream
        self._remaining = limit

    @property
    def remaining(self) -> int:
        return self._remaining

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._remaining <= 0:
            return 0
        view = memoryview(buffer)
        size = min(len(view), self._remaining)
        data = self._stream.read(size)
        if not data:
            return 0
        count = len(data)
        view[:count] = data
        self._remaining -= count
        return count

    def close(self) -> None:
        if not self.closed:
            self._stream.close()
        super().close()


def _malformed(stream: BinaryIO, message: str) -> MalformedFramingError:
    stream.seek(0, io.SEEK_SET)
    return MalformedFramingError(message, fallback=stream)


def strip_emlx(stream: BinaryIO) -> BoundedReader:
    """Return a reader limited to the RFC 822 payload inside ``stream``.

    ``stream`` must be seekable. On a malformed byte-count line a
    :class:`MalformedFramingError` is raised with the untouched stream,
    rewound to its start, on its ``fallback`` attribute; the stream is not
    closed in that case.
    """

    header = stream.readline()
    if not header:
        raise _malformed(stream, "couldn't find the byte-count line")

    original = header[:-1] if header.endswith(b"\n") else header
    field = original.strip(b" ")
    if not _BYTE_COUNT.fullmatch(field):
        raise _malformed(stream, f"invalid byte-count line: {original[:40]!r}")
    expected_length = int(field)
    if expected_length < 0:
        raise _malformed(stream, f"negative byte count: {expected_length}")

    # The count line may be padded with spaces; skip it plus its newline.
    stream.seek(len(original) + 1, io.SEEK_SET)
    return BoundedReader(stream, expected_length)


def read_emlx(path: Path) -> bytes:
    """Return the message payload stored in ``path``."""

    with path.open("rb") as handle:
        try:
            reader = strip_emlx(handle)
        except MalformedFramingError as exc:
            exc.fallback = None
            raise
        with reader:
            return reader.read()


__all__ = ["BoundedReader", "MalformedFramingError", "read_emlx", "strip_emlx"]
