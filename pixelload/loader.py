"""Format detection and loading of images and animations from files or streams."""

from __future__ import annotations

import io
import os
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional

from .gif import is_gif, load_gif, load_gif_animation
from .ico import is_bmp, is_cur, is_ico, load_cur, load_ico
from .magic import is_jpg, is_png, is_tif
from .surface import Animation, ImageError, Surface

_Check = Callable[[BinaryIO], bool]


@dataclass(frozen=True)
class _ImageCodec:
    name: str
    check: Optional[_Check]
    load: Callable[[BinaryIO], Surface]


@dataclass(frozen=True)
class _AnimationCodec:
    name: str
    check: Optional[_Check]
    load: Callable[[BinaryIO], Animation]


# Formats that can be decoded; magicless formats (check is None) go first
# and are only chosen when named explicitly.
_IMAGE_CODECS: tuple[_ImageCodec, ...] = (
    _ImageCodec("CUR", is_cur, load_cur),
    _ImageCodec("ICO", is_ico, load_ico),
    _ImageCodec("GIF", is_gif, load_gif),
)

_ANIMATION_CODECS: tuple[_AnimationCodec, ...] = (
    _AnimationCodec("GIF", is_gif, load_gif_animation),
)

# Formats that can be recognised by their signature, in detection order.
_SIGNATURES: tuple[tuple[str, _Check], ...] = (
    ("CUR", is_cur),
    ("ICO", is_ico),
    ("BMP", is_bmp),
    ("GIF", is_gif),
    ("JPG", is_jpg),
    ("PNG", is_png),
    ("TIF", is_tif),
)


def _same_name(a: str, b: str) -> bool:
    return a.upper() == b.upper()


def _extension(path: str | os.PathLike[str]) -> str | None:
    text = os.fspath(path)
    head, dot, tail = text.rpartition(".")
    return tail if dot else None


def _check_stream(stream: BinaryIO | None) -> BinaryIO:
    if stream is None:
        raise ImageError("Passed a NULL data source")
    try:
        seekable = stream.seekable() if hasattr(stream, "seekable") else True
        if not seekable:
            raise ImageError("Can't seek in this data source")
        stream.seek(0, io.SEEK_CUR)
    except (OSError, ValueError, AttributeError) as exc:
        raise ImageError("Can't seek in this data source") from exc
    return stream


def _matches(check: Optional[_Check], name: str, stream: BinaryIO, fmt: str | None) -> bool:
    if check is not None:
        return check(stream)
    return fmt is not None and _same_name(fmt, name)


def detect_format(stream: BinaryIO) -> str | None:
    """Return the name of the format whose signature the stream carries, or None.

    The stream position is left unchanged.
    """
    stream = _check_stream(stream)
    for name, check in _SIGNATURES:
        if check(stream):
            return name
    return None


def load_typed(stream: BinaryIO, fmt: str | None = None) -> Surface:
    """Load an image from a seekable stream.

    ``fmt`` names the format for formats that carry no signature; formats
    with a signature are recognised from the data itself.
    """
    stream = _check_stream(stream)
    for codec in _IMAGE_CODECS:
        if _matches(codec.check, codec.name, stream, fmt):
            return codec.load(stream)
    raise ImageError("Unsupported image format")


def load_stream(stream: BinaryIO) -> Surface:
    """Load an image from a seekable stream, detecting its format."""
    return load_typed(stream, None)


def load(path: str | os.PathLike[str]) -> Surface:
    """Load an image from a file, using its extension as a format hint."""
    with open(path, "rb") as stream:
        return load_typed(stream, _extension(path))


def load_animation_typed(stream: BinaryIO, fmt: str | None = None) -> Animation:
    """Load an animation from a seekable stream.

    Formats without animation support are loaded as a one-frame animation.
    """
    stream = _check_stream(stream)
    for codec in _ANIMATION_CODECS:
        if _matches(codec.check, codec.name, stream, fmt):
            return codec.load(stream)
    return Animation.from_surface(load_typed(stream, fmt))


def load_animation_stream(stream: BinaryIO) -> Animation:
    """Load an animation from a seekable stream, detecting its format."""
    return load_animation_typed(stream, None)


def load_animation(path: str | os.PathLike[str]) -> Animation:
    """Load an animation from a file, using its extension as a format hint."""
    with open(path, "rb") as stream:
        return load_animation_typed(stream, _extension(path))