"""Model manager: resolve, load, and share cascade classifiers.

Cascades are resolved either from an explicit path or from the set of models
bundled with OpenCV. Each model is loaded at most once and then shared,
read-only, by every detection request.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cv2

from faceframe.ml.face_detector import CascadeModel, load_cascade

if TYPE_CHECKING:
    from faceframe.config import Settings

logger = logging.getLogger(__name__)


class ModelManager(Protocol):
    """What the app needs from a model manager: load-once models and release."""

    def get_model(self, model_name: str | None = None) -> CascadeModel:
        """Return a cached or newly loaded model."""
        ...

    def get_loaded_models(self) -> list[str]:
        """Return names of currently loaded models."""
        ...

    def shutdown(self) -> None:
        """Release all loaded models."""
        ...


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelSpec:
    """Static metadata for a bundled cascade model."""

    name: str
    filename: str
    description: str


MODEL_REGISTRY: dict[str, ModelSpec] = {
    "haarcascade_frontalface_default": ModelSpec(
        name="haarcascade_frontalface_default",
        filename="haarcascade_frontalface_default.xml",
        description="Frontal faces, Haar features (default)",
    ),
    "haarcascade_frontalface_alt": ModelSpec(
        name="haarcascade_frontalface_alt",
        filename="haarcascade_frontalface_alt.xml",
        description="Frontal faces, Haar features, alternative training",
    ),
    "haarcascade_frontalface_alt2": ModelSpec(
        name="haarcascade_frontalface_alt2",
        filename="haarcascade_frontalface_alt2.xml",
        description="Frontal faces, Haar features, tree-based stages",
    ),
    "haarcascade_frontalface_alt_tree": ModelSpec(
        name="haarcascade_frontalface_alt_tree",
        filename="haarcascade_frontalface_alt_tree.xml",
        description="Frontal faces, Haar features, stage tree",
    ),
    "haarcascade_profileface": ModelSpec(
        name="haarcascade_profileface",
        filename="haarcascade_profileface.xml",
        description="Profile faces, Haar features",
    ),
}


def bundled_models_dir() -> Path:
    """Directory holding the cascade files shipped with opencv-python."""
    return Path(cv2.data.haarcascades)


# ---------------------------------------------------------------------------
# Concrete implementation
# ---------------------------------------------------------------------------


class CascadeModelManager:
    """Resolves, loads, and caches cascade models."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._lock = threading.Lock()
        self._models: dict[str, CascadeModel] = {}

    @property
    def default_model(self) -> str:
        return self._settings.cascade_model

    # -- Public API ---------------------------------------------------------

    def resolve_path(self, model_name: str | None = None) -> Path:
        """Return the path for a model; an explicit cascade_path wins for the default model."""
        name = model_name or self.default_model
        if name == self.default_model and self._settings.cascade_path:
            return Path(self._settings.cascade_path)
        spec = self._get_spec(name)
        return bundled_models_dir() / spec.filename

    def get_model(self, model_name: str | None = None) -> CascadeModel:
        """Return a cached CascadeModel, loading it if needed.

        Raises:
            KeyError: If the model name is unknown.
            ModelLoadError: If the model file cannot be loaded.
        """
        name = model_name or self.default_model
        with self._lock:
            cached = self._models.get(name)
            if cached is not None:
                return cached

        model = load_cascade(self.resolve_path(name), name=name)

        with self._lock:
            # Double-check: another thread may have loaded it while we did.
            existing = self._models.get(name)
            if existing is not None:
                return existing
            self._models[name] = model
            return model

    def get_loaded_models(self) -> list[str]:
        """Return names of loaded models."""
        with self._lock:
            return list(self._models.keys())

    def shutdown(self) -> None:
        """Release all loaded models."""
        with self._lock:
            self._models.clear()
            logger.info("All cascade models released")

    # -- Internal -----------------------------------------------------------

    @staticmethod
    def _get_spec(model_name: str) -> ModelSpec:
        try:
            return MODEL_REGISTRY[model_name]
        except KeyError:
            raise KeyError(f"Unknown model: {model_name}") from None
