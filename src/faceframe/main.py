"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from faceframe.api.routes import error_response, router
from faceframe.config import Settings, get_settings
from faceframe.ml.annotator import AnnotationStyle
from faceframe.ml.face_detector import DetectionParams, HaarCascadeDetector
from faceframe.ml.inference import InferencePool
from faceframe.ml.model_manager import CascadeModelManager, ModelManager
from faceframe.ml.pipeline import DetectionPipeline

logger = logging.getLogger(__name__)


def build_pipeline(settings: Settings, model_manager: ModelManager) -> DetectionPipeline:
    """Load the configured cascade and wire it into a pipeline.

    Raises:
        ModelLoadError: If the cascade cannot be loaded.
    """
    model = model_manager.get_model()
    params = DetectionParams(
        scale_factor=settings.scale_factor,
        min_neighbors=settings.min_neighbors,
        min_size=(settings.min_face_size, settings.min_face_size),
        max_size=(settings.max_face_size, settings.max_face_size),
        equalize_histogram=settings.equalize_histogram,
    )
    return DetectionPipeline(
        HaarCascadeDetector(model, params),
        style=AnnotationStyle(color=settings.box_color, thickness=settings.box_thickness),
        jpeg_quality=settings.jpeg_quality,
        max_pixels=settings.max_image_pixels,
    )


def init_state(app: FastAPI, settings: Settings, model_manager: ModelManager | None = None) -> None:
    """Populate app.state with the shared model, pipeline, and worker pool."""
    model_manager = model_manager or CascadeModelManager(settings)
    app.state.settings = settings
    app.state.model_manager = model_manager
    app.state.pipeline = build_pipeline(settings, model_manager)
    app.state.inference_pool = InferencePool(settings.max_concurrent)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load the model on startup, release on shutdown."""
    settings: Settings = app.state.settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting FaceFrame (model=%s, max_concurrent=%s, scale_factor=%s, min_neighbors=%s)",
        settings.cascade_path or settings.cascade_model,
        settings.max_concurrent,
        settings.scale_factor,
        settings.min_neighbors,
    )

    # A ModelLoadError here is fatal: the server must not start without a model.
    init_state(app, settings)

    logger.info("FaceFrame ready")
    yield

    logger.info("Shutting down FaceFrame")
    app.state.inference_pool.shutdown()
    app.state.model_manager.shutdown()
    logger.info("FaceFrame shutdown complete")


async def _validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, f"Invalid request: {exc}")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    application = FastAPI(
        title="FaceFrame",
        description="Face detection API: outlines every face found in an image",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.settings = settings

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    application.add_exception_handler(RequestValidationError, _validation_error_handler)

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run("faceframe.main:app", host=settings.host, port=settings.port)
