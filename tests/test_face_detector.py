"""Tests for cascade loading and the Haar cascade detector."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest

from faceframe.ml.errors import DetectionFailure, ModelLoadError
from faceframe.ml.face_detector import (
    CascadeModel,
    DetectionParams,
    FaceRect,
    HaarCascadeDetector,
    load_cascade,
)
from faceframe.ml.model_manager import bundled_models_dir

if TYPE_CHECKING:
    from numpy.typing import NDArray

DEFAULT_CASCADE = bundled_models_dir() / "haarcascade_frontalface_default.xml"


def _mock_model(raw: object = (), side_effect: BaseException | None = None) -> CascadeModel:
    classifier = MagicMock()
    classifier.detectMultiScale.return_value = raw
    classifier.detectMultiScale.side_effect = side_effect
    return CascadeModel(name="mock", path=Path("mock.xml"), classifier=classifier)


@pytest.fixture(scope="module")
def frontal_model() -> CascadeModel:
    return load_cascade(DEFAULT_CASCADE)


# ---------------------------------------------------------------------------
# FaceRect
# ---------------------------------------------------------------------------


class TestFaceRect:
    def test_clip_inside_is_identity(self) -> None:
        rect = FaceRect(10, 10, 20, 20)
        assert rect.clip(100, 100) == rect

    def test_clip_overhanging_edges(self) -> None:
        assert FaceRect(-5, -10, 30, 30).clip(100, 100) == FaceRect(0, 0, 25, 20)
        assert FaceRect(90, 95, 30, 30).clip(100, 100) == FaceRect(90, 95, 10, 5)

    def test_clip_outside_returns_none(self) -> None:
        assert FaceRect(200, 200, 10, 10).clip(100, 100) is None
        assert FaceRect(-20, 0, 10, 10).clip(100, 100) is None


# ---------------------------------------------------------------------------
# load_cascade
# ---------------------------------------------------------------------------


class TestLoadCascade:
    def test_loads_bundled_model(self, frontal_model: CascadeModel) -> None:
        assert frontal_model.name == "haarcascade_frontalface_default"
        assert frontal_model.path == DEFAULT_CASCADE
        assert not frontal_model.classifier.empty()

    def test_explicit_name(self) -> None:
        model = load_cascade(DEFAULT_CASCADE, name="frontal")
        assert model.name == "frontal"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        missing = tmp_path / "nope.xml"
        with pytest.raises(ModelLoadError) as exc_info:
            load_cascade(missing)
        assert exc_info.value.path == str(missing)

    def test_malformed_file_raises(self, tmp_path: Path) -> None:
        bogus = tmp_path / "bogus.xml"
        bogus.write_text("<opencv_storage><nothing/></opencv_storage>")
        with pytest.raises(ModelLoadError):
            load_cascade(bogus)


# ---------------------------------------------------------------------------
# DetectionParams
# ---------------------------------------------------------------------------


class TestDetectionParams:
    def test_defaults(self) -> None:
        params = DetectionParams()
        assert params.scale_factor == pytest.approx(1.1)
        assert params.min_neighbors == 5

    def test_scale_factor_must_grow(self) -> None:
        with pytest.raises(ValueError, match="scale_factor"):
            DetectionParams(scale_factor=1.0)

    def test_min_neighbors_non_negative(self) -> None:
        with pytest.raises(ValueError, match="min_neighbors"):
            DetectionParams(min_neighbors=-1)


# ---------------------------------------------------------------------------
# HaarCascadeDetector
# ---------------------------------------------------------------------------


class TestHaarCascadeDetector:
    def test_blank_image_has_no_faces(self, frontal_model: CascadeModel) -> None:
        detector = HaarCascadeDetector(frontal_model)
        image = np.full((100, 100, 3), 255, dtype=np.uint8)
        assert detector.detect(image) == ()

    def test_input_not_mutated(self, frontal_model: CascadeModel, noise_image: NDArray[np.uint8]) -> None:
        detector = HaarCascadeDetector(frontal_model)
        before = noise_image.copy()
        detector.detect(noise_image)
        assert np.array_equal(noise_image, before)

    def test_deterministic(self, frontal_model: CascadeModel, noise_image: NDArray[np.uint8]) -> None:
        detector = HaarCascadeDetector(frontal_model, DetectionParams(min_neighbors=0))
        assert detector.detect(noise_image) == detector.detect(noise_image)

    def test_results_within_bounds(self, frontal_model: CascadeModel, noise_image: NDArray[np.uint8]) -> None:
        detector = HaarCascadeDetector(frontal_model, DetectionParams(min_neighbors=0, min_size=(20, 20)))
        height, width = noise_image.shape[:2]
        for rect in detector.detect(noise_image):
            assert rect.x >= 0
            assert rect.y >= 0
            assert rect.width > 0
            assert rect.height > 0
            assert rect.x + rect.width <= width
            assert rect.y + rect.height <= height

    def test_raw_rectangles_are_clipped_and_sorted(self) -> None:
        raw = np.array([[90, 90, 40, 40], [-5, -5, 50, 50], [200, 200, 10, 10]], dtype=np.int32)
        detector = HaarCascadeDetector(_mock_model(raw))
        faces = detector.detect(np.zeros((100, 100, 3), dtype=np.uint8))
        assert faces == (FaceRect(0, 0, 45, 45), FaceRect(90, 90, 10, 10))

    def test_passes_params_to_classifier(self) -> None:
        model = _mock_model()
        params = DetectionParams(scale_factor=1.3, min_neighbors=2, min_size=(24, 24), max_size=(80, 80))
        HaarCascadeDetector(model, params).detect(np.zeros((50, 50, 3), dtype=np.uint8))
        _, kwargs = model.classifier.detectMultiScale.call_args
        assert kwargs == {"scaleFactor": 1.3, "minNeighbors": 2, "minSize": (24, 24), "maxSize": (80, 80)}

    def test_default_params_are_stricter_than_opencv(self) -> None:
        params = DetectionParams()
        assert params.min_neighbors == 5
        assert params.min_size == (30, 30)
        assert params.equalize_histogram is True

    def test_plain_opencv_params_skip_equalization(self) -> None:
        model = _mock_model()
        image = np.tile(np.arange(10, 20, dtype=np.uint8), (10, 1))
        params = DetectionParams(min_neighbors=3, min_size=(0, 0), equalize_histogram=False)
        HaarCascadeDetector(model, params).detect(image)
        (gray,), kwargs = model.classifier.detectMultiScale.call_args
        assert np.array_equal(gray, image)
        assert kwargs["minNeighbors"] == 3
        assert kwargs["minSize"] == (0, 0)

    def test_grayscale_input_accepted(self) -> None:
        model = _mock_model()
        HaarCascadeDetector(model, DetectionParams(equalize_histogram=False)).detect(np.zeros((10, 10), dtype=np.uint8))
        (gray,), _ = model.classifier.detectMultiScale.call_args
        assert gray.shape == (10, 10)

    def test_opencv_error_becomes_detection_failure(self) -> None:
        detector = HaarCascadeDetector(_mock_model(side_effect=cv2.error("boom")))
        with pytest.raises(DetectionFailure):
            detector.detect(np.zeros((10, 10, 3), dtype=np.uint8))

    def test_unsupported_shape_raises_detection_failure(self) -> None:
        detector = HaarCascadeDetector(_mock_model())
        with pytest.raises(DetectionFailure, match="unsupported"):
            detector.detect(np.zeros((10, 10, 4), dtype=np.uint8))

    def test_model_name(self, frontal_model: CascadeModel) -> None:
        assert HaarCascadeDetector(frontal_model).model_name == "haarcascade_frontalface_default"
