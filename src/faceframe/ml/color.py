"""Color space conversion between the application's RGBA buffers and OpenCV's BGR."""

from __future__ import annotations

from typing import TYPE_CHECKING

import cv2
import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

_TO_BGR: dict[int, int] = {
    1: cv2.COLOR_GRAY2BGR,
    3: cv2.COLOR_RGB2BGR,
    4: cv2.COLOR_RGBA2BGR,
}


def to_detector_format(buffer: NDArray[np.uint8]) -> NDArray[np.uint8]:
    """Drop alpha and reorder channels to BGR.

    The input is left untouched; the result is a new allocation.

    Raises:
        ValueError: If the buffer has an unsupported channel count.
    """
    channels = 1 if buffer.ndim == 2 else buffer.shape[2]
    code = _TO_BGR.get(channels)
    if code is None:
        raise ValueError(f"Unsupported channel count: {channels}")
    return cv2.cvtColor(buffer, code)


def from_detector_format(buffer: NDArray[np.uint8], *, with_alpha: bool = True) -> NDArray[np.uint8]:
    """Reorder a BGR buffer back to RGBA (alpha fully opaque) or RGB.

    Alpha is not recoverable: a buffer that went through
    ``to_detector_format`` comes back with alpha 255 everywhere.
    """
    if buffer.ndim != 3 or buffer.shape[2] != 3:
        raise ValueError(f"Expected an HxWx3 BGR buffer, got shape {buffer.shape}")
    code = cv2.COLOR_BGR2RGBA if with_alpha else cv2.COLOR_BGR2RGB
    return cv2.cvtColor(buffer, code)
