import io
import struct

import pytest

from pixelload.ico import is_bmp, is_cur, is_ico, load_cur, load_ico
from pixelload.surface import ImageError, PixelFormat


def build_dib(width, height, bit_count, rows, mask_rows, palette=b"",
              compression=0, info_size=40, colors_used=0):
    info = struct.pack(
        "<IiiHHIIiiII",
        info_size, width, height * 2, 1, bit_count, compression, 0, 0, 0, colors_used, 0,
    )
    return info + palette + b"".join(rows) + b"".join(mask_rows)


def build_file(entries, kind=1):
    """entries: list of (color_count, dib bytes)."""
    header = struct.pack("<HHH", 0, kind, len(entries))
    offset = 6 + 16 * len(entries)
    directory = b""
    body = b""
    for color_count, dib in entries:
        directory += struct.pack("<BBBBHHII", 1, 1, color_count, 0, 1, 32, len(dib), offset + len(body))
        body += dib
    return header + directory + body


def icon32_2x1():
    row = bytes([1, 2, 3, 4, 5, 6, 7, 8])
    mask = bytes([0b01000000, 0, 0, 0])
    return build_file([(0, build_dib(2, 1, 32, [row], [mask]))])


def test_is_bmp():
    stream = io.BytesIO(b"BM\x00\x00")
    assert is_bmp(stream) is True
    assert stream.tell() == 0
    assert is_bmp(io.BytesIO(b"MB")) is False
    assert is_bmp(io.BytesIO(b"B")) is False


def test_is_ico_and_cur():
    ico = io.BytesIO(icon32_2x1())
    assert is_ico(ico) is True
    assert is_cur(ico) is False
    assert ico.tell() == 0
    cur = io.BytesIO(struct.pack("<HHH", 0, 2, 1))
    assert is_cur(cur) is True
    assert is_ico(cur) is False


def test_is_ico_rejects_zero_count_and_reserved():
    assert is_ico(io.BytesIO(struct.pack("<HHH", 0, 1, 0))) is False
    assert is_ico(io.BytesIO(struct.pack("<HHH", 1, 1, 1))) is False
    assert is_ico(io.BytesIO(b"\x00\x00")) is False


def test_load_32bit_with_mask():
    surface = load_ico(io.BytesIO(icon32_2x1()))
    assert surface.pixel_format is PixelFormat.ARGB8888
    assert (surface.width, surface.height) == (2, 1)
    # Mask bit clear: forced opaque. Mask bit set: alpha from the data.
    assert surface.rgba(0, 0) == (3, 2, 1, 255)
    assert surface.rgba(1, 0) == (7, 6, 5, 8)


def test_load_24bit():
    rows = [bytes([10, 20, 30, 0])]
    opaque = build_file([(0, build_dib(1, 1, 24, rows, [bytes(4)]))])
    assert load_ico(io.BytesIO(opaque)).rgba(0, 0) == (30, 20, 10, 255)
    masked = build_file([(0, build_dib(1, 1, 24, rows, [bytes([0x80, 0, 0, 0])]))])
    assert load_ico(io.BytesIO(masked)).rgba(0, 0) == (30, 20, 10, 0)


def test_load_1bit_palette():
    palette = bytes([0, 0, 0, 0, 255, 255, 255, 0])
    rows = [bytes([0b10100000, 0, 0, 0])]
    data = build_file([(2, build_dib(8, 1, 1, rows, [bytes(4)], palette=palette, colors_used=2))])
    surface = load_ico(io.BytesIO(data))
    colours = [surface.rgba(x, 0) for x in range(8)]
    white = (255, 255, 255, 255)
    black = (0, 0, 0, 255)
    assert colours == [white, black, white, black, black, black, black, black]


def test_load_4bit_palette_default_size():
    palette = bytearray(64)
    palette[4:8] = bytes([1, 2, 3, 0])
    palette[8:12] = bytes([4, 5, 6, 0])
    rows = [bytes([0x12, 0, 0, 0])]
    data = build_file([(16, build_dib(2, 1, 4, rows, [bytes(4)], palette=bytes(palette)))])
    surface = load_ico(io.BytesIO(data))
    assert surface.rgba(0, 0) == (3, 2, 1, 255)
    assert surface.rgba(1, 0) == (6, 5, 4, 255)


def test_rows_are_bottom_up():
    bottom = bytes([1, 1, 1, 255])
    top = bytes([9, 9, 9, 255])
    data = build_file([(0, build_dib(1, 2, 32, [bottom, top], [bytes(4), bytes(4)]))])
    surface = load_ico(io.BytesIO(data))
    assert surface.height == 2
    assert surface.rgba(0, 0) == (9, 9, 9, 255)
    assert surface.rgba(0, 1) == (1, 1, 1, 255)


def test_picks_entry_with_most_colours():
    small = build_dib(1, 1, 32, [bytes([1, 1, 1, 255])], [bytes(4)])
    big = build_dib(1, 1, 32, [bytes([2, 2, 2, 255])], [bytes(4)])
    data = build_file([(2, small), (16, big)])
    assert load_ico(io.BytesIO(data)).rgba(0, 0) == (2, 2, 2, 255)


def test_load_cur():
    dib = build_dib(1, 1, 32, [bytes([5, 6, 7, 255])], [bytes(4)])
    surface = load_cur(io.BytesIO(build_file([(0, dib)], kind=2)))
    assert surface.rgba(0, 0) == (7, 6, 5, 255)


def test_wrong_type_raises_and_restores_position():
    stream = io.BytesIO(b"xyz" + icon32_2x1())
    stream.seek(3)
    with pytest.raises(ImageError, match="CUR"):
        load_cur(stream)
    assert stream.tell() == 3


def test_not_an_icon():
    with pytest.raises(ImageError, match="not a Windows ICO"):
        load_ico(io.BytesIO(b"GIF89a"))


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"compression": 1}, "Compressed"),
        ({"info_size": 12}, "Unsupported ICO bitmap format"),
    ],
)
def test_header_errors(kwargs, message):
    dib = build_dib(1, 1, 32, [bytes(4)], [bytes(4)], **kwargs)
    with pytest.raises(ImageError, match=message):
        load_ico(io.BytesIO(build_file([(0, dib)])))


def test_unsupported_bit_count():
    dib = build_dib(1, 1, 16, [bytes(4)], [bytes(4)])
    with pytest.raises(ImageError, match="bit count"):
        load_ico(io.BytesIO(build_file([(0, dib)])))


def test_too_many_palette_entries():
    dib = build_dib(1, 1, 8, [bytes(4)], [bytes(4)], colors_used=300)
    with pytest.raises(ImageError, match="biClrUsed"):
        load_ico(io.BytesIO(build_file([(0, dib)])))


def test_negative_dimensions():
    dib = build_dib(-1, 1, 32, [], [])
    with pytest.raises(ImageError, match="dimensions"):
        load_ico(io.BytesIO(build_file([(0, dib)])))


def test_truncated_data_raises_and_restores():
    data = icon32_2x1()[:-2]
    stream = io.BytesIO(data)
    with pytest.raises(ImageError):
        load_ico(stream)
    assert stream.tell() == 0