"""Windows BMP detection and ICO/CUR icon decoding."""

from __future__ import annotations

import struct
from typing import BinaryIO

from .surface import ImageError, PixelFormat, Surface

ICO_TYPE = 1
CUR_TYPE = 2

_BI_RGB = 0
_INFO_HEADER_SIZE = 40
_MAX_DIMENSION = 0xFFFFFF
_MAX_PALETTE = 256
_OPAQUE = 0xFF000000

_HEADER = struct.Struct("<HHH")
_DIR_ENTRY = struct.Struct("<BBBBHHII")
_INFO_HEADER = struct.Struct("<iiHHIIIIII")


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if data is None or len(data) != size:
        raise ImageError("unexpected end of icon data")
    return bytes(data)


def _padding(pitch: int) -> int:
    return (4 - pitch % 4) % 4


def is_bmp(stream: BinaryIO) -> bool:
    """Return whether the stream starts with a BMP signature.

    The stream position is left unchanged.
    """
    start = stream.tell()
    try:
        magic = stream.read(2)
    finally:
        stream.seek(start)
    return magic == b"BM"


def _is_icocur(stream: BinaryIO, kind: int) -> bool:
    start = stream.tell()
    try:
        data = stream.read(_HEADER.size)
    finally:
        stream.seek(start)
    if not data or len(data) != _HEADER.size:
        return False
    reserved, file_type, count = _HEADER.unpack(data)
    return reserved == 0 and file_type == kind and count != 0


def is_ico(stream: BinaryIO) -> bool:
    """Return whether the stream holds a Windows icon (ICO) file."""
    return _is_icocur(stream, ICO_TYPE)


def is_cur(stream: BinaryIO) -> bool:
    """Return whether the stream holds a Windows cursor (CUR) file."""
    return _is_icocur(stream, CUR_TYPE)


def _pick_image_offset(stream: BinaryIO, count: int) -> int:
    """Return the offset of the directory entry with the most colours."""
    max_colors = 0
    offset = 0
    for _ in range(count):
        _w, _h, color_count, _res, _planes, _bits, _size, image_offset = _DIR_ENTRY.unpack(
            _read_exact(stream, _DIR_ENTRY.size)
        )
        colors = color_count or 256
        if colors > max_colors:
            # The running maximum is a byte wide, so 256 colours wraps to 0.
            max_colors = colors & 0xFF
            offset = image_offset
    return offset


def _decode_indexed_row(row: bytes, width: int, bpp: int, palette: list[int]) -> list[int]:
    per_byte = 8 // bpp
    mask = (1 << bpp) - 1
    out = []
    for i in range(width):
        byte = row[i // per_byte]
        shift = 8 - bpp * (i % per_byte + 1)
        out.append(palette[(byte >> shift) & mask])
    return out


def _decode_rgb_row(row: bytes, width: int) -> list[int]:
    return [
        row[3 * i] | (row[3 * i + 1] << 8) | (row[3 * i + 2] << 16)
        for i in range(width)
    ]


def _decode_argb_row(row: bytes, width: int) -> list[int]:
    return list(struct.unpack(f"<{width}I", row[: 4 * width]))


def _decode(stream: BinaryIO, kind: int) -> Surface:
    header = stream.read(_HEADER.size)
    if not header or len(header) != _HEADER.size:
        raise ImageError(f"File is not a Windows {'ICO' if kind == ICO_TYPE else 'CUR'} file")
    reserved, file_type, count = _HEADER.unpack(header)
    if reserved != 0 or file_type != kind or count == 0:
        raise ImageError(f"File is not a Windows {'ICO' if kind == ICO_TYPE else 'CUR'} file")

    stream.seek(_pick_image_offset(stream, count))

    (info_size,) = struct.unpack("<I", _read_exact(stream, 4))
    if info_size != _INFO_HEADER_SIZE:
        raise ImageError("Unsupported ICO bitmap format")
    (
        width,
        height,
        _planes,
        bit_count,
        compression,
        _size_image,
        _xppm,
        _yppm,
        colors_used,
        _colors_important,
    ) = _INFO_HEADER.unpack(_read_exact(stream, _INFO_HEADER.size))

    if compression != _BI_RGB:
        raise ImageError("Compressed ICO files not supported")
    if bit_count not in (1, 4, 8, 24, 32):
        raise ImageError("ICO file with unsupported bit count")
    if not (0 <= width <= _MAX_DIMENSION and 0 <= height <= _MAX_DIMENSION):
        raise ImageError("Unsupported or invalid ICO dimensions")

    # The stored height covers both the colour bitmap and the mask.
    height >>= 1

    palette = [0] * _MAX_PALETTE
    if bit_count <= 8:
        if colors_used == 0:
            colors_used = 1 << bit_count
        if colors_used > _MAX_PALETTE:
            raise ImageError("Unsupported or incorrect biClrUsed field")
        entries = _read_exact(stream, 4 * colors_used)
        palette[:colors_used] = struct.unpack(f"<{colors_used}I", entries)

    if bit_count in (1, 4, 8):
        pitch = (width * bit_count + 7) // 8
        pad = _padding(pitch)
    elif bit_count == 24:
        pitch = width * 3
        pad = _padding(pitch)
    else:
        pitch = width * 4
        pad = 0

    pixels = [0] * (width * height)
    # Rows are stored bottom-up.
    for y in range(height - 1, -1, -1):
        row = _read_exact(stream, pitch + pad)
        if bit_count == 24:
            values = _decode_rgb_row(row, width)
        elif bit_count == 32:
            values = _decode_argb_row(row, width)
        else:
            values = _decode_indexed_row(row, width, bit_count, palette)
        pixels[y * width:(y + 1) * width] = values

    mask_pitch = (width + 7) >> 3
    mask_pad = _padding(mask_pitch)
    for y in range(height - 1, -1, -1):
        row = _read_exact(stream, mask_pitch + mask_pad)
        base = y * width
        for x in range(width):
            if not (row[x >> 3] >> (7 - (x & 7))) & 1:
                pixels[base + x] |= _OPAQUE

    return Surface(width, height, PixelFormat.ARGB8888, pixels)


def _load(stream: BinaryIO, kind: int) -> Surface:
    start = stream.tell()
    try:
        return _decode(stream, kind)
    except (ImageError, struct.error) as exc:
        stream.seek(start)
        if isinstance(exc, ImageError):
            raise
        raise ImageError(str(exc)) from exc


def load_ico(stream: BinaryIO) -> Surface:
    """Decode the image with the most colours from an ICO file.

    On failure the stream is returned to where it was and ImageError raised.
    """
    return _load(stream, ICO_TYPE)


def load_cur(stream: BinaryIO) -> Surface:
    """Decode the image with the most colours from a CUR file.

    On failure the stream is returned to where it was and ImageError raised.
    """
    return _load(stream, CUR_TYPE)