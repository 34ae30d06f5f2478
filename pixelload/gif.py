"""GIF detection and decoding into surfaces and animations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

from .surface import Animation, ImageError, PixelFormat, Rect, Surface

MAX_LZW_BITS = 12
_TABLE_SIZE = 1 << MAX_LZW_BITS
_STACK_LIMIT = _TABLE_SIZE * 2

DISPOSE_UNSPECIFIED = 0
DISPOSE_NONE = 1
DISPOSE_RESTORE_BACKGROUND = 2
DISPOSE_RESTORE_PREVIOUS = 3

DEFAULT_DELAY = 100
"""Frame delay in milliseconds used when a frame asks for less than 2/100 s."""

_INTERLACE = 0x40
_COLOR_MAP = 0x80

_TERMINATOR = 0x3B  # ';'
_EXTENSION = 0x21  # '!'
_IMAGE = 0x2C  # ','

_Colour = tuple[int, int, int]


def _u16(lo: int, hi: int) -> int:
    return (hi << 8) | lo


def _s16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value >= 0x8000 else value


@dataclass
class _Frame:
    image: Surface
    x: int
    y: int
    disposal: int
    delay: int


class _GifReader:
    """Decoder state for one GIF stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream
        self.error = ""
        # Graphic control extension values; they persist across frames.
        self.transparent = -1
        self.delay_time = -1
        self.input_flag = -1
        self.disposal = DISPOSE_UNSPECIFIED
        # LZW bit reader.
        self.buf = bytearray(280)
        self.curbit = 0
        self.lastbit = 0
        self.done = False
        self.last_byte = 0
        self.zero_data_block = False
        # LZW decoder.
        self.fresh = False
        self.code_size = 0
        self.set_code_size = 0
        self.max_code = 0
        self.max_code_size = 0
        self.firstcode = 0
        self.oldcode = 0
        self.clear_code = 0
        self.end_code = 0
        self.prefix = [0] * _TABLE_SIZE
        self.suffix = [0] * _TABLE_SIZE
        self.stack: list[int] = []

    def fail(self, message: str) -> None:
        self.error = message

    def read_exact(self, size: int) -> bytes | None:
        data = self.stream.read(size)
        if data is None or len(data) != size:
            return None
        return bytes(data)

    def read_color_map(self, number: int) -> list[_Colour] | None:
        cmap: list[_Colour] = [(0, 0, 0)] * 256
        for index in range(number):
            rgb = self.read_exact(3)
            if rgb is None:
                self.fail("bad colormap")
                return None
            cmap[index] = (rgb[0], rgb[1], rgb[2])
        return cmap

    def get_data_block(self) -> bytes | None:
        """Read one sub-block; b"" for the terminator, None on a read error."""
        head = self.read_exact(1)
        if head is None:
            return None
        count = head[0]
        self.zero_data_block = count == 0
        if count == 0:
            return b""
        return self.read_exact(count)

    def skip_data_blocks(self) -> None:
        while self.get_data_block():
            pass

    def do_extension(self, label: int) -> None:
        if label == 0xF9:
            block = self.get_data_block()
            buf = bytearray(4)
            if block:
                head = block[:4]
                buf[: len(head)] = head
            self.disposal = (buf[0] >> 2) & 0x7
            self.input_flag = (buf[0] >> 1) & 0x1
            self.delay_time = _u16(buf[1], buf[2])
            if buf[0] & 0x1:
                self.transparent = buf[3]
        self.skip_data_blocks()

    def reset_bits(self) -> None:
        self.curbit = 0
        self.lastbit = 0
        self.done = False

    def get_code(self, code_size: int) -> int:
        if self.curbit + code_size >= self.lastbit:
            if self.done:
                if self.curbit >= self.lastbit:
                    self.fail("ran off the end of my bits")
                return -1
            if self.last_byte >= 2:
                self.buf[0] = self.buf[self.last_byte - 2]
                self.buf[1] = self.buf[self.last_byte - 1]
            block = self.get_data_block()
            if block:
                count = len(block)
                self.buf[2:2 + count] = block
            else:
                count = 0
                self.done = True
            self.last_byte = 2 + count
            self.curbit = (self.curbit - self.lastbit) + 16
            self.lastbit = (2 + count) * 8
        result = 0
        for j in range(code_size):
            bit = self.curbit + j
            byte_index = bit >> 3
            if byte_index < len(self.buf) and self.buf[byte_index] & (1 << (bit & 7)):
                result |= 1 << j
        self.curbit += code_size
        return result

    def _reset_table(self, clear_all: bool) -> None:
        for i in range(self.clear_code):
            self.prefix[i] = 0
            self.suffix[i] = i
        for i in range(self.clear_code, _TABLE_SIZE):
            self.prefix[i] = 0
            if clear_all:
                self.suffix[i] = 0

    def lzw_init(self, input_code_size: int) -> int:
        if input_code_size > MAX_LZW_BITS:
            return -1
        self.set_code_size = input_code_size
        self.code_size = input_code_size + 1
        self.clear_code = 1 << input_code_size
        self.end_code = self.clear_code + 1
        self.max_code_size = 2 * self.clear_code
        self.max_code = self.clear_code + 2
        self.reset_bits()
        self.fresh = True
        self._reset_table(clear_all=False)
        self.suffix[0] = 0
        self.stack = []
        return 0

    def _push(self, value: int) -> bool:
        if len(self.stack) >= _STACK_LIMIT:
            self.fail("invalid LWZ data")
            return False
        self.stack.append(value)
        return True

    def lzw_next(self) -> int:
        """Return the next decoded index, or a negative value at the end."""
        if self.fresh:
            self.fresh = False
            while True:
                self.firstcode = self.oldcode = self.get_code(self.code_size)
                if self.firstcode != self.clear_code:
                    return self.firstcode
        if self.stack:
            return self.stack.pop()

        code = self.get_code(self.code_size)
        while code >= 0:
            if code == self.clear_code:
                self._reset_table(clear_all=True)
                self.code_size = self.set_code_size + 1
                self.max_code_size = 2 * self.clear_code
                self.max_code = self.clear_code + 2
                self.stack = []
                self.firstcode = self.oldcode = self.get_code(self.code_size)
                return self.firstcode
            if code == self.end_code:
                if not self.zero_data_block:
                    self.skip_data_blocks()
                return -2

            incode = code
            if code >= self.max_code:
                if not self._push(self.firstcode):
                    return -3
                code = self.oldcode
            while code >= self.clear_code:
                if code < 0 or code >= _TABLE_SIZE:
                    self.fail("invalid LWZ data")
                    return -3
                if not self._push(self.suffix[code]):
                    return -3
                if code == self.prefix[code]:
                    self.fail("circular table entry BIG ERROR")
                    return -3
                code = self.prefix[code]
            if code < 0 or code >= _TABLE_SIZE:
                self.fail("invalid LWZ data")
                return -4
            self.firstcode = self.suffix[code]
            if not self._push(self.firstcode):
                return -3

            slot = self.max_code
            if slot < _TABLE_SIZE:
                self.prefix[slot] = self.oldcode
                self.suffix[slot] = self.firstcode
                self.max_code += 1
                if self.max_code >= self.max_code_size and self.max_code_size < _TABLE_SIZE:
                    self.max_code_size *= 2
                    self.code_size += 1
            self.oldcode = incode

            if self.stack:
                return self.stack.pop()
            code = self.get_code(self.code_size)
        return code

    def read_image(
        self,
        width: int,
        height: int,
        cmap_size: int,
        cmap: list[_Colour],
        interlace: bool,
    ) -> Surface | None:
        head = self.read_exact(1)
        if head is None:
            self.fail("EOF / read error on image data")
            return None
        if self.lzw_init(head[0]) < 0:
            self.fail("error reading image")
            return None
        if width == 0 or height == 0:
            return None

        image = Surface(width, height, PixelFormat.INDEX8)
        assert image.palette is not None
        for index in range(cmap_size):
            r, g, b = cmap[index]
            image.palette[index] = (r, g, b, 255)

        pixels = image.pixels
        xpos = ypos = 0
        pass_no = 0
        while True:
            value = self.lzw_next()
            if value < 0:
                break
            pixels[xpos + ypos * width] = value & 0xFF
            xpos += 1
            if xpos == width:
                xpos = 0
                if interlace:
                    if pass_no in (0, 1):
                        ypos += 8
                    elif pass_no == 2:
                        ypos += 4
                    elif pass_no == 3:
                        ypos += 2
                    if ypos >= height:
                        pass_no += 1
                        if pass_no == 1:
                            ypos = 4
                        elif pass_no == 2:
                            ypos = 2
                        elif pass_no == 3:
                            ypos = 1
                        else:
                            break
                else:
                    ypos += 1
            if ypos >= height:
                break
        return image


def _normalize(frames: list[_Frame]) -> None:
    """Composite every frame onto a full canvas, honouring disposal methods."""
    first = frames[0].image
    fmt = PixelFormat.ARGB8888 if first.color_key is not None else PixelFormat.XRGB8888
    canvas = first.convert(fmt)
    fill = fmt.pack(0, 0, 0, 0)
    rect = Rect(0, 0, canvas.width, canvas.height)
    last_dispose = DISPOSE_RESTORE_BACKGROUND
    restore = 0

    for index, frame in enumerate(frames):
        if last_dispose == DISPOSE_RESTORE_BACKGROUND:
            canvas.fill_rect(rect, fill)
        elif last_dispose == DISPOSE_RESTORE_PREVIOUS:
            rect = canvas.blit(frames[restore].image, rect, rect)

        if frame.disposal != DISPOSE_RESTORE_PREVIOUS:
            restore = index

        target = Rect(_s16(frame.x), _s16(frame.y), frame.image.width, frame.image.height)
        rect = canvas.blit(frame.image, None, target)
        frame.image = canvas.copy()
        last_dispose = frame.disposal


def _decode(stream: BinaryIO, load_anim: bool) -> list[_Frame]:
    reader = _GifReader(stream)
    frames: list[_Frame] = []
    reader.error = "no image found in GIF data"

    def run() -> None:
        magic = reader.read_exact(6)
        if magic is None:
            reader.fail("error reading magic number")
            return
        if magic[:3] != b"GIF":
            reader.fail("not a GIF file")
            return
        if magic[3:6] not in (b"87a", b"89a"):
            reader.fail("bad version number, not '87a' or '89a'")
            return

        screen = reader.read_exact(7)
        if screen is None:
            reader.fail("failed to read screen descriptor")
            return
        bit_pixel = 2 << (screen[4] & 0x07)
        global_map: list[_Colour] = [(0, 0, 0)] * 256
        if screen[4] & _COLOR_MAP:
            cmap = reader.read_color_map(bit_pixel)
            if cmap is None:
                reader.fail("error reading global colormap")
                return
            global_map = cmap

        while True:
            head = reader.read_exact(1)
            if head is None:
                reader.fail("EOF / read error on image data")
                return
            c = head[0]
            if c == _TERMINATOR:
                return
            if c == _EXTENSION:
                label = reader.read_exact(1)
                if label is None:
                    reader.fail("EOF / read error on extension function code")
                    return
                reader.do_extension(label[0])
                continue
            if c != _IMAGE:
                continue

            desc = reader.read_exact(9)
            if desc is None:
                reader.fail("couldn't read left/top/width/height")
                return
            flags = desc[8]
            width = _u16(desc[4], desc[5])
            height = _u16(desc[6], desc[7])
            interlace = bool(flags & _INTERLACE)
            if flags & _COLOR_MAP:
                local_size = 1 << ((flags & 0x07) + 1)
                local_map = reader.read_color_map(local_size)
                if local_map is None:
                    reader.fail("error reading local colormap")
                    return
                image = reader.read_image(width, height, local_size, local_map, interlace)
            else:
                image = reader.read_image(width, height, bit_pixel, global_map, interlace)

            if image is None:
                continue
            if reader.transparent >= 0:
                image.color_key = reader.transparent
            delay = DEFAULT_DELAY if reader.delay_time < 2 else reader.delay_time * 10
            frames.append(
                _Frame(
                    image=image,
                    x=_u16(desc[0], desc[1]),
                    y=_u16(desc[2], desc[3]),
                    disposal=reader.disposal,
                    delay=delay,
                )
            )
            if not load_anim:
                return

    run()
    if not frames:
        raise ImageError(reader.error)
    if len(frames) > 1:
        _normalize(frames)
    return frames


def is_gif(stream: BinaryIO) -> bool:
    """Return whether the stream starts with a GIF87a or GIF89a signature.

    The stream position is left unchanged.
    """
    start = stream.tell()
    try:
        magic = stream.read(6)
    finally:
        stream.seek(start)
    return bool(magic) and len(magic) == 6 and magic[:3] == b"GIF" and magic[3:6] in (b"87a", b"89a")


def load_gif(stream: BinaryIO) -> Surface:
    """Decode the first image of a GIF as an indexed surface."""
    return _decode(stream, load_anim=False)[0].image


def load_gif_animation(stream: BinaryIO) -> Animation:
    """Decode every frame of a GIF, composited into full-size frames."""
    frames = _decode(stream, load_anim=True)
    first = frames[0].image
    return Animation(
        first.width,
        first.height,
        [frame.image for frame in frames],
        [frame.delay for frame in frames],
    )