"""In-memory pixel surfaces, rectangles and animations."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator


class ImageError(Exception):
    """Raised when an image cannot be created, converted or decoded."""


RGBA = tuple[int, int, int, int]

_WHITE: RGBA = (255, 255, 255, 255)


def _check_channel(value: int) -> int:
    if not 0 <= value <= 255:
        raise ValueError(f"colour channel out of range: {value}")
    return value


class PixelFormat(enum.Enum):
    """Pixel layouts a surface can hold."""

    INDEX8 = "INDEX8"
    ARGB8888 = "ARGB8888"
    XRGB8888 = "XRGB8888"
    ABGR8888 = "ABGR8888"

    @property
    def is_indexed(self) -> bool:
        return self is PixelFormat.INDEX8

    @property
    def has_alpha(self) -> bool:
        return self in (PixelFormat.ARGB8888, PixelFormat.ABGR8888)

    @property
    def max_value(self) -> int:
        return 0xFF if self.is_indexed else 0xFFFFFFFF

    def pack(self, r: int, g: int, b: int, a: int = 255) -> int:
        """Encode an RGBA colour as a raw pixel value of this format."""
        for channel in (r, g, b, a):
            _check_channel(channel)
        if self is PixelFormat.ARGB8888:
            return (a << 24) | (r << 16) | (g << 8) | b
        if self is PixelFormat.XRGB8888:
            return (0xFF << 24) | (r << 16) | (g << 8) | b
        if self is PixelFormat.ABGR8888:
            return (a << 24) | (b << 16) | (g << 8) | r
        raise ImageError("an indexed format has no direct colour encoding")

    def unpack(self, value: int) -> RGBA:
        """Decode a raw pixel value of this format into RGBA."""
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError(f"pixel value out of range: {value}")
        a = (value >> 24) & 0xFF
        hi = (value >> 16) & 0xFF
        g = (value >> 8) & 0xFF
        lo = value & 0xFF
        if self is PixelFormat.ARGB8888:
            return (hi, g, lo, a)
        if self is PixelFormat.XRGB8888:
            return (hi, g, lo, 255)
        if self is PixelFormat.ABGR8888:
            return (lo, g, hi, a)
        raise ImageError("an indexed format has no direct colour encoding")


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle in pixel coordinates."""

    x: int
    y: int
    w: int
    h: int


def _intersect(rect: Rect, width: int, height: int) -> Rect:
    x0 = max(rect.x, 0)
    y0 = max(rect.y, 0)
    x1 = min(rect.x + max(rect.w, 0), width)
    y1 = min(rect.y + max(rect.h, 0), height)
    return Rect(x0, y0, max(x1 - x0, 0), max(y1 - y0, 0))


def _blend(src: RGBA, dst: RGBA) -> RGBA:
    sr, sg, sb, sa = src
    dr, dg, db, da = dst
    inv = 255 - sa
    r = (sr * sa + dr * inv + 127) // 255
    g = (sg * sa + dg * inv + 127) // 255
    b = (sb * sa + db * inv + 127) // 255
    a = sa + (da * inv + 127) // 255
    return (r, g, b, min(a, 255))


@dataclass
class Surface:
    """A rectangular block of pixels in one pixel format.

    Indexed surfaces carry a palette of RGBA entries; any surface may carry
    a colour key, a raw pixel value that counts as fully transparent.
    """

    width: int
    height: int
    pixel_format: PixelFormat = PixelFormat.ARGB8888
    pixels: list[int] = field(default_factory=list)
    palette: list[RGBA] | None = None
    color_key: int | None = None

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ImageError(f"invalid surface size {self.width}x{self.height}")
        size = self.width * self.height
        if not self.pixels:
            self.pixels = [0] * size
        elif len(self.pixels) != size:
            raise ImageError(
                f"expected {size} pixels for a {self.width}x{self.height} surface, "
                f"got {len(self.pixels)}"
            )
        else:
            self.pixels = list(self.pixels)
        if self.pixel_format.is_indexed:
            if self.palette is None:
                self.palette = [_WHITE] * 256
            elif len(self.palette) > 256:
                raise ImageError("a palette holds at most 256 colours")
            else:
                self.palette = [tuple(entry) for entry in self.palette]  # type: ignore[misc]
        elif self.palette is not None:
            raise ImageError("only indexed surfaces carry a palette")
        if self.color_key is not None and not 0 <= self.color_key <= self.pixel_format.max_value:
            raise ValueError(f"colour key out of range: {self.color_key}")

    def _offset(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} surface")
        return y * self.width + x

    def _check_value(self, value: int) -> int:
        if not 0 <= value <= self.pixel_format.max_value:
            raise ValueError(f"pixel value out of range for {self.pixel_format.name}: {value}")
        return value

    def pixel(self, x: int, y: int) -> int:
        """Return the raw pixel value at (x, y)."""
        return self.pixels[self._offset(x, y)]

    def set_pixel(self, x: int, y: int, value: int) -> None:
        """Store a raw pixel value at (x, y)."""
        self.pixels[self._offset(x, y)] = self._check_value(value)

    def _value_rgba(self, value: int) -> RGBA:
        if self.pixel_format.is_indexed:
            assert self.palette is not None
            r, g, b, a = self.palette[value] if value < len(self.palette) else (0, 0, 0, 255)
        else:
            r, g, b, a = self.pixel_format.unpack(value)
        if self.color_key is not None and value == self.color_key:
            a = 0
        return (r, g, b, a)

    def rgba(self, x: int, y: int) -> RGBA:
        """Return the colour at (x, y); colour-keyed pixels have alpha 0."""
        return self._value_rgba(self.pixel(x, y))

    def fill_rect(self, rect: Rect | None, value: int) -> Rect:
        """Fill a rectangle (or the whole surface) with a raw value.

        The rectangle is clipped to the surface; the clipped area is returned.
        """
        self._check_value(value)
        area = Rect(0, 0, self.width, self.height) if rect is None else rect
        area = _intersect(area, self.width, self.height)
        for y in range(area.y, area.y + area.h):
            start = y * self.width + area.x
            self.pixels[start:start + area.w] = [value] * area.w
        return area

    def blit(self, src: Surface, src_rect: Rect | None = None, dest_rect: Rect | None = None) -> Rect:
        """Draw part of another surface onto this one.

        Source pixels are composited over the destination by their alpha, so
        colour-keyed pixels leave the destination untouched. Only the position
        of ``dest_rect`` is used. Returns the area of this surface that was
        drawn to.
        """
        if self.pixel_format.is_indexed:
            raise ImageError("cannot blit onto an indexed surface")
        area = Rect(0, 0, src.width, src.height) if src_rect is None else src_rect
        area = _intersect(area, src.width, src.height)
        dx = 0 if dest_rect is None else dest_rect.x
        dy = 0 if dest_rect is None else dest_rect.y

        # Clip against the destination, shifting the source window with it.
        if dx < 0:
            area = Rect(area.x - dx, area.y, max(area.w + dx, 0), area.h)
            dx = 0
        if dy < 0:
            area = Rect(area.x, area.y - dy, area.w, max(area.h + dy, 0))
            dy = 0
        w = max(min(area.w, self.width - dx), 0)
        h = max(min(area.h, self.height - dy), 0)

        fmt = self.pixel_format
        for row in range(h):
            for col in range(w):
                colour = src.rgba(area.x + col, area.y + row)
                alpha = colour[3]
                if alpha == 0:
                    continue
                offset = (dy + row) * self.width + dx + col
                if alpha != 255:
                    colour = _blend(colour, self._value_rgba(self.pixels[offset]))
                self.pixels[offset] = fmt.pack(*colour)
        return Rect(dx, dy, w, h)

    def convert(self, pixel_format: PixelFormat) -> Surface:
        """Return a copy of this surface in another direct-colour format.

        Converting to a format with alpha turns colour-keyed pixels
        transparent; converting to one without alpha keeps the colour key.
        """
        if pixel_format is self.pixel_format:
            return self.copy()
        if pixel_format.is_indexed:
            raise ImageError("conversion to an indexed format is not supported")
        keep_key = self.color_key is not None and not pixel_format.has_alpha
        pixels = []
        for value in self.pixels:
            r, g, b, a = self._value_rgba(value)
            if keep_key and value == self.color_key:
                a = 255
            pixels.append(pixel_format.pack(r, g, b, a))
        color_key = None
        if keep_key:
            assert self.color_key is not None
            if self.pixel_format.is_indexed:
                assert self.palette is not None
                r, g, b, _ = (
                    self.palette[self.color_key]
                    if self.color_key < len(self.palette)
                    else (0, 0, 0, 255)
                )
            else:
                r, g, b, _ = self.pixel_format.unpack(self.color_key)
            color_key = pixel_format.pack(r, g, b, 255)
        return Surface(self.width, self.height, pixel_format, pixels, None, color_key)

    def copy(self) -> Surface:
        """Return an independent duplicate of this surface."""
        return Surface(
            self.width,
            self.height,
            self.pixel_format,
            list(self.pixels),
            None if self.palette is None else list(self.palette),
            self.color_key,
        )


@dataclass
class Animation:
    """A sequence of equally sized frames with per-frame delays in milliseconds."""

    width: int
    height: int
    frames: list[Surface] = field(default_factory=list)
    delays: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.frames) != len(self.delays):
            raise ImageError("an animation needs exactly one delay per frame")

    def __len__(self) -> int:
        return len(self.frames)

    def __iter__(self) -> Iterator[tuple[Surface, int]]:
        return iter(zip(self.frames, self.delays))

    @classmethod
    def from_surface(cls, surface: Surface) -> Animation:
        """Wrap a single image as a one-frame animation with no delay."""
        return cls(surface.width, surface.height, [surface], [0])