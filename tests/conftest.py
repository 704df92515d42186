"""Shared fixtures: in-memory test images and fake detectors."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import numpy as np
import pytest
from PIL import Image

from faceframe.ml.errors import DetectionFailure
from faceframe.ml.face_detector import FaceRect

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray


def encode_array(pixels: NDArray[np.uint8], fmt: str = "PNG", **save_args: object) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format=fmt, **save_args)
    return buf.getvalue()


@pytest.fixture()
def encode() -> Callable[..., bytes]:
    """Encode a numpy array with Pillow."""
    return encode_array


@pytest.fixture()
def make_image() -> Callable[..., bytes]:
    """Factory for solid-color encoded images."""

    def _make(
        width: int = 100,
        height: int = 100,
        color: tuple[int, ...] = (255, 255, 255),
        fmt: str = "PNG",
    ) -> bytes:
        pixels = np.empty((height, width, len(color)), dtype=np.uint8)
        pixels[:, :] = color
        return encode_array(pixels, fmt)

    return _make


@pytest.fixture()
def noise_image() -> NDArray[np.uint8]:
    """Deterministic 160x120 RGB noise."""
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(120, 160, 3), dtype=np.uint8)


class FakeDetector:
    """Detector returning a fixed set of rectangles, recording what it saw."""

    def __init__(self, faces: tuple[FaceRect, ...] = (), *, fail: bool = False) -> None:
        self._faces = faces
        self._fail = fail
        self.calls: list[tuple[int, ...]] = []

    @property
    def model_name(self) -> str:
        return "fake"

    def detect(self, image: NDArray[np.uint8]) -> tuple[FaceRect, ...]:
        self.calls.append(image.shape)
        if self._fail:
            raise DetectionFailure("simulated failure")
        return self._faces


@pytest.fixture()
def fake_detector_cls() -> type[FakeDetector]:
    return FakeDetector
