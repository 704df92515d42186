"""Detection pipeline: decode -> convert -> detect -> annotate -> convert back -> encode."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from faceframe.ml.annotator import AnnotationStyle, annotate
from faceframe.ml.codec import DEFAULT_JPEG_QUALITY, decode_image, encode_image
from faceframe.ml.color import from_detector_format, to_detector_format
from faceframe.ml.errors import PipelineError, PipelineStage

if TYPE_CHECKING:
    from collections.abc import Callable

    from faceframe.ml.face_detector import FaceDetector, FaceRect

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class DetectionResult:
    """Annotated image bytes plus the faces drawn on it."""

    image: bytes
    faces: tuple[FaceRect, ...]
    width: int
    height: int

    @property
    def face_count(self) -> int:
        return len(self.faces)


class DetectionPipeline:
    """Runs one image through every stage. Holds no per-request state."""

    def __init__(
        self,
        detector: FaceDetector,
        *,
        style: AnnotationStyle | None = None,
        output_format: str = "JPEG",
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        max_pixels: int | None = None,
    ) -> None:
        self._detector = detector
        self._style = style or AnnotationStyle()
        self._output_format = output_format
        self._jpeg_quality = jpeg_quality
        self._max_pixels = max_pixels

    @property
    def detector(self) -> FaceDetector:
        return self._detector

    def run(self, data: bytes) -> DetectionResult:
        """Detect faces in ``data`` and return the annotated, re-encoded image.

        Raises:
            PipelineError: Tagged with the stage that failed; the original
                error is available as ``cause`` and as ``__cause__``.
        """
        started = time.perf_counter()

        rgba = _stage(PipelineStage.DECODE, decode_image, data, self._max_pixels)
        height, width = rgba.shape[:2]
        bgr = _stage(PipelineStage.CONVERT, to_detector_format, rgba)
        detected = _stage(PipelineStage.DETECT, self._detector.detect, bgr)
        # Count and draw the same in-bounds set whatever the detector returned.
        faces = tuple(rect for rect in (face.clip(width, height) for face in detected) if rect is not None)
        annotated = _stage(PipelineStage.ANNOTATE, annotate, bgr, faces, self._style)
        output = _stage(PipelineStage.CONVERT, from_detector_format, annotated)
        encoded = _stage(PipelineStage.ENCODE, encode_image, output, self._output_format, self._jpeg_quality)

        logger.info(
            "Detected %d face(s) in %dx%d image (%.1f ms)",
            len(faces),
            width,
            height,
            (time.perf_counter() - started) * 1000,
        )
        return DetectionResult(image=encoded, faces=faces, width=width, height=height)


def _stage(stage: PipelineStage, func: Callable[..., T], *args: object) -> T:
    try:
        return func(*args)
    except PipelineError:
        raise
    except Exception as exc:
        logger.warning("Pipeline stage %s failed: %s", stage, exc)
        raise PipelineError(stage, exc) from exc
