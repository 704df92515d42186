"""Image codec: compressed bytes <-> RGBA pixel buffers.

Formats are detected from content (Pillow header sniffing), never from a
filename or declared content type. Decoded buffers are always HxWx4 RGBA uint8.
"""

from __future__ import annotations

import io
import logging
import warnings
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from faceframe.ml.errors import DecodeError, EncodeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS: tuple[str, ...] = ("PNG", "JPEG", "GIF", "BMP", "WEBP", "TIFF")
ENCODE_FORMATS: tuple[str, ...] = ("JPEG", "PNG")
DEFAULT_JPEG_QUALITY: int = 90


def decode_image(data: bytes, max_pixels: int | None = None) -> NDArray[np.uint8]:
    """Decode compressed image bytes into an RGBA uint8 array.

    Args:
        data: Raw file bytes in any supported format.
        max_pixels: Optional upper bound on width * height.

    Returns:
        HxWx4 RGBA uint8 numpy array (a fresh allocation).

    Raises:
        DecodeError: If the bytes are empty, truncated, not a recognized
            format, or the image exceeds ``max_pixels``.
    """
    if not data:
        raise DecodeError("empty input")

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(data), formats=SUPPORTED_FORMATS) as img:
                width, height = img.size
                if max_pixels is not None and width * height > max_pixels:
                    raise DecodeError(f"image is {width}x{height}, exceeds limit of {max_pixels} pixels")
                # Force a full decode so truncated data fails here.
                img.load()
                upright = ImageOps.exif_transpose(img)
                rgba = _to_8bit(upright).convert("RGBA")
    except DecodeError:
        raise
    except UnidentifiedImageError:
        raise DecodeError("unrecognized image format") from None
    except (Image.DecompressionBombError, Image.DecompressionBombWarning) as exc:
        raise DecodeError(str(exc)) from exc
    except (OSError, SyntaxError, ValueError, EOFError) as exc:
        # Pillow reports truncated and corrupt streams as OSError/SyntaxError.
        raise DecodeError(str(exc) or type(exc).__name__) from exc

    buffer = np.array(rgba, dtype=np.uint8)
    logger.debug("Decoded %dx%d image", buffer.shape[1], buffer.shape[0])
    return buffer


def _to_8bit(img: Image.Image) -> Image.Image:
    """Rescale 16-bit, 32-bit integer and float grayscale images to mode L.

    Pillow's own conversion clips these modes to 0..255 instead of scaling.
    """
    if img.mode.startswith("I;16"):
        values = np.asarray(img).astype(np.uint16)
        return Image.fromarray((values >> 8).astype(np.uint8))
    if img.mode not in ("I", "F"):
        return img

    values = np.asarray(img, dtype=np.float64)
    low, high = float(values.min()), float(values.max())
    if img.mode == "I" and low >= 0 and high <= 65535:
        # 16-bit sources opened as 32-bit integers
        scaled = values / 257.0
    elif img.mode == "F" and low >= 0 and high <= 1:
        scaled = values * 255.0
    elif high > low:
        scaled = (values - low) * (255.0 / (high - low))
    else:
        scaled = np.zeros_like(values)
    return Image.fromarray(np.clip(np.rint(scaled), 0, 255).astype(np.uint8))


def encode_image(
    buffer: NDArray[np.uint8],
    fmt: str = "JPEG",
    quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes:
    """Encode an RGB or RGBA uint8 array into compressed bytes.

    JPEG output drops the alpha channel.

    Raises:
        EncodeError: If the buffer is malformed or the encoder fails.
    """
    fmt = fmt.upper()
    if fmt not in ENCODE_FORMATS:
        raise EncodeError(f"unsupported output format {fmt!r}")
    if not isinstance(buffer, np.ndarray) or buffer.dtype != np.uint8:
        raise EncodeError("buffer must be a uint8 numpy array")
    if buffer.ndim != 3 or buffer.shape[2] not in (3, 4) or buffer.shape[0] == 0 or buffer.shape[1] == 0:
        raise EncodeError(f"unexpected buffer shape {buffer.shape}")

    img = Image.fromarray(np.ascontiguousarray(buffer))
    if fmt == "JPEG" and img.mode == "RGBA":
        img = img.convert("RGB")

    out = io.BytesIO()
    try:
        if fmt == "JPEG":
            img.save(out, format=fmt, quality=quality)
        else:
            img.save(out, format=fmt)
    except (OSError, ValueError) as exc:
        raise EncodeError(str(exc)) from exc
    return out.getvalue()
