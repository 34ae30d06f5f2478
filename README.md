# pixelload

A small library with no dependencies that loads images into in-memory surfaces.

## What it decodes

- **GIF**, either as a single image or as a full animation.
  - `pixelload.gif.load_gif` returns the first image as an indexed (`INDEX8`) surface. If the GIF names a transparent index, that index becomes the surface's colour key.
  - `pixelload.gif.load_gif_animation` composites every frame onto a full-size canvas. It honours each frame's disposal method. A frame that asks for less than 2/100 s gets a delay of 100 ms.
- **ICO and CUR**, Windows icons and cursors, through `pixelload.ico.load_ico` and `pixelload.ico.load_cur`.
  - The loader picks the directory entry with the most colours.
  - It reads uncompressed 1, 4, 8, 24 and 32-bit bitmaps.
  - It applies the AND mask as alpha, and returns an `ARGB8888` surface.

## What it recognises

`pixelload.loader.detect_format(stream)` checks a stream against these signatures, in this order: `"CUR"`, `"ICO"`, `"BMP"`, `"GIF"`, `"JPG"`, `"PNG"`, `"TIF"`. It returns the first name that matches, or `None` if none does.

- JPEG detection walks the marker segments to the end-of-image marker rather than looking only at the first bytes.
- The individual checks are also available on their own:
  - `is_bmp`, `is_ico` and `is_cur` in `pixelload.ico`
  - `is_gif` in `pixelload.gif`
  - `is_png`, `is_jpg` and `is_tif` in `pixelload.magic`
- `pixelload.magic.read_avif_header(stream)` returns the leading `ftyp` box of an AVIF/ISO-BMFF stream, or `None` if there is none.

Every check leaves the stream position where it found it.

## What it does not do

BMP, PNG, JPEG, TIFF and AVIF data can be recognised but not decoded. Passing such a stream to `load_stream` or `load_typed` raises `ImageError("Unsupported image format")`.

The package has no image viewer and no command-line program. It only produces surfaces in memory and cannot write images back out.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Usage

```python
from pixelload.loader import load, load_animation, detect_format

surface = load("icon.ico")
print(surface.width, surface.height)
print(surface.rgba(0, 0))            # (r, g, b, a)

anim = load_animation("spinner.gif")
for frame, delay in anim:            # delay is in milliseconds
    ...

with open("picture.gif", "rb") as stream:
    print(detect_format(stream))     # "GIF"
```

Images can also be loaded from any seekable binary stream:

```python
import io
from pixelload.loader import load_stream, load_animation_stream

surface = load_stream(io.BytesIO(data))
anim = load_animation_stream(io.BytesIO(data))
```

### Format hints

`load` and `load_animation` pass the file's extension to `load_typed` and `load_animation_typed` as a format hint, compared case-insensitively. The hint only selects formats that carry no signature. Every format decoded at present has a signature and is recognised from the data itself.

### Single images as animations

`load_animation` and its stream variants return a GIF as a multi-frame animation. Any other decodable image is returned as a one-frame animation with a delay of 0, built with `Animation.from_surface`.

## Surfaces

`pixelload.surface.Surface` holds `width * height` raw pixel values in one `PixelFormat`:

- `INDEX8`, with a palette of up to 256 RGBA entries
- `ARGB8888`
- `XRGB8888`
- `ABGR8888`

Any surface may carry a `color_key`: a raw value whose pixels read as fully transparent.

The methods are:

- `pixel(x, y)` and `set_pixel(x, y, value)` read and write a raw value.
- `rgba(x, y)` returns the colour as an `(r, g, b, a)` tuple.
- `fill_rect(rect, value)` fills a rectangle, or the whole surface when `rect` is `None`. The rectangle is clipped to the surface.
- `blit(src, src_rect, dest_rect)` composites another surface over this one by its alpha. Colour-keyed pixels leave the destination untouched.
- `convert(pixel_format)` returns a copy in a direct-colour format.
- `copy()` returns an independent duplicate.

`pixelload.surface.Animation` holds `frames` and `delays`. Iterating over it yields `(frame, delay)` pairs.

## Errors

Loading problems raise `pixelload.surface.ImageError`. These include:

- an unsupported format
- truncated or malformed data
- a data source that is `None` or cannot seek

When an ICO or CUR load fails, the stream is returned to where it started.