"""Signature checks for PNG, JPEG, TIFF and AVIF streams.

Every check leaves the stream position where it found it.
"""

from __future__ import annotations

import io
import sys
from contextlib import contextmanager
from typing import BinaryIO, Iterator

PNG_MAGIC = b"\x89PNG"
TIF_MAGIC_LE = b"II\x2a\x00"
TIF_MAGIC_BE = b"MM\x00\x2a"
FTYP = b"ftyp"

_JPEG_SOI = b"\xff\xd8"
_JPEG_EOI = 0xD9
_JPEG_SOS = 0xDA
_JPEG_RST0 = 0xD0


@contextmanager
def _rewind(stream: BinaryIO) -> Iterator[int]:
    """Yield the current position and seek back to it afterwards."""
    start = stream.tell()
    try:
        yield start
    finally:
        stream.seek(start)


def _read_exact(stream: BinaryIO, size: int) -> bytes | None:
    data = stream.read(size)
    if data is None or len(data) != size:
        return None
    return bytes(data)


def _stream_end(stream: BinaryIO) -> int:
    here = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(here)
    return end


def is_png(stream: BinaryIO) -> bool:
    """Return whether the stream starts with the PNG signature."""
    with _rewind(stream):
        return _read_exact(stream, len(PNG_MAGIC)) == PNG_MAGIC


def is_tif(stream: BinaryIO) -> bool:
    """Return whether the stream starts with a little- or big-endian TIFF header."""
    with _rewind(stream):
        return _read_exact(stream, 4) in (TIF_MAGIC_LE, TIF_MAGIC_BE)


def _scan_jpeg(stream: BinaryIO) -> bool:
    if _read_exact(stream, 2) != _JPEG_SOI:
        return False
    end_of_data = _stream_end(stream)
    in_scan = False
    while True:
        marker = _read_exact(stream, 2)
        if marker is None:
            return False
        first, second = marker
        if first != 0xFF and not in_scan:
            return False
        if first != 0xFF or second == 0xFF:
            # Fill bytes, or entropy-coded data while scanning.
            stream.seek(-1, io.SEEK_CUR)
        elif second == _JPEG_EOI:
            return True
        elif in_scan and second == 0x00:
            # A stuffed 0xFF inside the entropy-coded data.
            pass
        elif _JPEG_RST0 <= second < _JPEG_EOI:
            # Restart markers carry no payload.
            pass
        else:
            length_bytes = _read_exact(stream, 2)
            if length_bytes is None:
                return False
            size = int.from_bytes(length_bytes, "big")
            inner_start = stream.tell()
            if size < 2:
                return False
            target = inner_start + size - 2
            if target > end_of_data:
                return False
            stream.seek(target)
            if second == _JPEG_SOS:
                in_scan = True


def is_jpg(stream: BinaryIO) -> bool:
    """Return whether the stream holds a JPEG whose segments run to an end marker."""
    with _rewind(stream):
        return _scan_jpeg(stream)


def read_avif_header(stream: BinaryIO) -> bytes | None:
    """Return the whole leading ``ftyp`` box, or None if there is none.

    Both the 32-bit size and the extended 64-bit size form are understood.
    The stream position is left unchanged.
    """
    with _rewind(stream):
        head = _read_exact(stream, 8)
        if head is None or head[4:8] != FTYP:
            return None
        consumed = 8
        size = int.from_bytes(head[:4], "big")
        if size == 1:
            extended = _read_exact(stream, 8)
            if extended is None:
                return None
            head += extended
            consumed += 8
            size = int.from_bytes(extended, "big")
        if size > sys.maxsize or size <= consumed:
            return None
        rest = _read_exact(stream, size - consumed)
        if rest is None:
            return None
        return head + rest