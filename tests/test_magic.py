import io

import pytest

from pixelload.magic import is_jpg, is_png, is_tif, read_avif_header

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _jpeg(*parts: bytes) -> io.BytesIO:
    return io.BytesIO(b"".join(parts))


@pytest.mark.parametrize(
    "data, expected",
    [
        (PNG_SIGNATURE + b"rest", True),
        (b"\x89PN", False),
        (b"GIF89a", False),
        (b"", False),
    ],
)
def test_is_png(data, expected):
    assert is_png(io.BytesIO(data)) is expected


def test_is_png_keeps_position():
    stream = io.BytesIO(b"xx" + PNG_SIGNATURE)
    stream.seek(2)
    assert is_png(stream) is True
    assert stream.tell() == 2


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"II*\x00\x08\x00\x00\x00", True),
        (b"MM\x00*\x00\x00\x00\x08", True),
        (b"II\x00*", False),
        (b"MM*\x00", False),
        (b"II*", False),
    ],
)
def test_is_tif(data, expected):
    assert is_tif(io.BytesIO(data)) is expected


def test_is_tif_keeps_position():
    stream = io.BytesIO(b"MM\x00*")
    assert is_tif(stream) is True
    assert stream.tell() == 0


def test_is_jpg_full_stream():
    stream = _jpeg(
        b"\xff\xd8",
        b"\xff\xe0\x00\x04ab",
        b"\xff\xda\x00\x02",
        b"\x12\x34\xff\x00\x56",
        b"\xff\xd9",
    )
    assert is_jpg(stream) is True
    assert stream.tell() == 0


def test_is_jpg_with_fill_bytes():
    assert is_jpg(_jpeg(b"\xff\xd8", b"\xff\xff\xd9")) is True


def test_is_jpg_restart_markers_in_scan():
    stream = _jpeg(b"\xff\xd8", b"\xff\xda\x00\x02", b"\x01\xff\xd0\x02", b"\xff\xd9")
    assert is_jpg(stream) is True


def test_is_jpg_rejects_data_outside_scan():
    assert is_jpg(_jpeg(b"\xff\xd8", b"\x00\x00")) is False


def test_is_jpg_rejects_missing_end_marker():
    assert is_jpg(_jpeg(b"\xff\xd8", b"\xff\xe0\x00\x04ab")) is False


def test_is_jpg_rejects_segment_past_end():
    assert is_jpg(_jpeg(b"\xff\xd8", b"\xff\xe0\x00\x10ab")) is False


def test_is_jpg_rejects_bad_segment_length():
    assert is_jpg(_jpeg(b"\xff\xd8", b"\xff\xe0\x00\x01", b"\xff\xd9")) is False


@pytest.mark.parametrize("data", [b"", b"\xff", b"\xff\xd9", PNG_SIGNATURE])
def test_is_jpg_rejects_other_data(data):
    assert is_jpg(io.BytesIO(data)) is False


def test_read_avif_header_short_box():
    box = b"\x00\x00\x00\x10ftypavif\x00\x00\x00\x00"
    stream = io.BytesIO(box + b"trailing")
    assert read_avif_header(stream) == box
    assert stream.tell() == 0


def test_read_avif_header_extended_size():
    box = b"\x00\x00\x00\x01ftyp" + (24).to_bytes(8, "big") + b"avifmif1"
    assert read_avif_header(io.BytesIO(box + b"more")) == box


def test_read_avif_header_keeps_position():
    box = b"\x00\x00\x00\x0cftypavif"
    stream = io.BytesIO(b"??" + box)
    stream.seek(2)
    assert read_avif_header(stream) == box
    assert stream.tell() == 2


@pytest.mark.parametrize(
    "data",
    [
        b"\x00\x00\x00\x10moovavif\x00\x00\x00\x00",
        b"\x00\x00\x00\x08ftyp",
        b"\x00\x00\x00\x04ftypavif",
        b"\x00\x00\x00\x01ftyp" + (16).to_bytes(8, "big"),
        b"\x00\x00\x00\x01ftyp\x00\x00",
        b"\x00\x00\x00\x20ftypavif",
        b"\x00\x00",
    ],
)
def test_read_avif_header_rejects(data):
    assert read_avif_header(io.BytesIO(data)) is None