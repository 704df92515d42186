"""Draw face rectangles onto a copy of a BGR image."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import cv2

if TYPE_CHECKING:
    from collections.abc import Iterable

    import numpy as np
    from numpy.typing import NDArray

    from faceframe.ml.face_detector import FaceRect


@dataclass(frozen=True)
class AnnotationStyle:
    """Stroke settings for face outlines. ``color`` is an RGB triple."""

    color: tuple[int, int, int] = (0, 255, 0)
    thickness: int = 3
    line_type: int = cv2.LINE_AA

    @property
    def bgr(self) -> tuple[int, int, int]:
        r, g, b = self.color
        return (b, g, r)


def annotate(
    image: NDArray[np.uint8],
    faces: Iterable[FaceRect],
    style: AnnotationStyle | None = None,
) -> NDArray[np.uint8]:
    """Return a copy of ``image`` with an unfilled rectangle around each face.

    Rectangles reaching outside the image are clipped; ones entirely outside
    are skipped.
    """
    style = style or AnnotationStyle()
    height, width = image.shape[:2]
    canvas = image.copy()

    for face in faces:
        rect = face.clip(width, height)
        if rect is None:
            continue
        top_left = (rect.x, rect.y)
        bottom_right = (rect.x + rect.width - 1, rect.y + rect.height - 1)
        cv2.rectangle(canvas, top_left, bottom_right, style.bgr, style.thickness, style.line_type)

    return canvas
