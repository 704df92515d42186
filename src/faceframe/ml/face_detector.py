"""Cascade face detection.

The classifier math (integral image, per-stage feature evaluation with early
rejection, scale pyramid, candidate grouping) is delegated to OpenCV's
``CascadeClassifier.detectMultiScale``. This module owns model loading,
input preparation, and the bounds contract of the returned rectangles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cv2
import numpy as np

from faceframe.ml.errors import DetectionFailure, ModelLoadError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FaceRect:
    """Axis-aligned face region in pixel coordinates of the input image."""

    x: int
    y: int
    width: int
    height: int

    def clip(self, image_width: int, image_height: int) -> FaceRect | None:
        """Return this rectangle clipped to the image, or None if nothing is left."""
        x1 = max(0, self.x)
        y1 = max(0, self.y)
        x2 = min(image_width, self.x + self.width)
        y2 = min(image_height, self.y + self.height)
        if x2 <= x1 or y2 <= y1:
            return None
        return FaceRect(x=x1, y=y1, width=x2 - x1, height=y2 - y1)


@dataclass(frozen=True)
class DetectionParams:
    """Tuning knobs for multi-scale detection.

    The defaults are stricter than a bare ``detectMultiScale`` call
    (min_neighbors=3, no minimum size, no equalization): they drop the small,
    weakly supported hits that show up on textured backgrounds and even out
    backlit faces. Pass ``min_neighbors=3, min_size=(0, 0),
    equalize_histogram=False`` to get OpenCV's plain behavior.
    """

    scale_factor: float = 1.1
    min_neighbors: int = 5
    min_size: tuple[int, int] = (30, 30)
    # (0, 0) means "up to the image size"
    max_size: tuple[int, int] = (0, 0)
    equalize_histogram: bool = True

    def __post_init__(self) -> None:
        if self.scale_factor <= 1.0:
            raise ValueError("scale_factor must be greater than 1.0")
        if self.min_neighbors < 0:
            raise ValueError("min_neighbors must be non-negative")


@dataclass(frozen=True, eq=False)
class CascadeModel:
    """A loaded, read-only cascade classifier."""

    name: str
    path: Path
    classifier: cv2.CascadeClassifier = field(repr=False)


def load_cascade(path: str | Path, name: str | None = None) -> CascadeModel:
    """Load a cascade definition (Haar or LBP XML) from disk.

    Raises:
        ModelLoadError: If the file is missing, unreadable, or malformed.
    """
    model_path = Path(path)
    if not model_path.is_file():
        raise ModelLoadError(str(model_path), "file not found")

    try:
        classifier = cv2.CascadeClassifier(str(model_path))
    except cv2.error as exc:
        raise ModelLoadError(str(model_path), str(exc)) from exc
    if classifier.empty():
        raise ModelLoadError(str(model_path), "not a valid cascade definition")

    logger.info("Loaded cascade %s from %s", name or model_path.stem, model_path)
    return CascadeModel(name=name or model_path.stem, path=model_path, classifier=classifier)


class FaceDetector(Protocol):
    """Protocol for face detectors."""

    @property
    def model_name(self) -> str:
        """Return the model identifier string."""
        ...

    def detect(self, image: NDArray[np.uint8]) -> tuple[FaceRect, ...]:
        """Detect faces in an image.

        Args:
            image: HxWx3 BGR (or HxW grayscale) uint8 array.

        Returns:
            Face rectangles, all within the image bounds. Empty if none found.
        """
        ...


class HaarCascadeDetector:
    """Multi-scale sliding-window detector backed by a shared CascadeModel."""

    def __init__(self, model: CascadeModel, params: DetectionParams | None = None) -> None:
        self._model = model
        self._params = params or DetectionParams()

    @property
    def model_name(self) -> str:
        return self._model.name

    @property
    def params(self) -> DetectionParams:
        return self._params

    def detect(self, image: NDArray[np.uint8]) -> tuple[FaceRect, ...]:
        """Run the cascade over the image and return merged face rectangles.

        Raises:
            DetectionFailure: On an internal OpenCV error or memory exhaustion.
        """
        height, width = image.shape[:2]
        params = self._params

        try:
            gray = self._to_gray(image)
            raw = self._model.classifier.detectMultiScale(
                gray,
                scaleFactor=params.scale_factor,
                minNeighbors=params.min_neighbors,
                minSize=params.min_size,
                maxSize=params.max_size,
            )
        except cv2.error as exc:
            raise DetectionFailure(str(exc)) from exc
        except MemoryError as exc:
            raise DetectionFailure("out of memory") from exc

        faces: list[FaceRect] = []
        for x, y, w, h in np.asarray(raw, dtype=np.int64).reshape(-1, 4):
            rect = FaceRect(x=int(x), y=int(y), width=int(w), height=int(h)).clip(width, height)
            if rect is not None:
                faces.append(rect)
        faces.sort(key=lambda r: (r.y, r.x, r.width, r.height))

        logger.debug("Cascade %s found %d face(s) in %dx%d image", self.model_name, len(faces), width, height)
        return tuple(faces)

    def _to_gray(self, image: NDArray[np.uint8]) -> NDArray[np.uint8]:
        if image.ndim == 2:
            gray = image
        elif image.shape[2] == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        else:
            raise DetectionFailure(f"unsupported input shape {image.shape}")
        if self._params.equalize_histogram:
            # equalizeHist allocates a new array; the input stays untouched.
            gray = cv2.equalizeHist(gray)
        return gray
