"""API route definitions."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from faceframe.api.schemas import (
    FaceBox,
    FaceDetectionRequest,
    FaceDetectionResponse,
    HealthResponse,
    ModelInfo,
    ModelsResponse,
)
from faceframe.ml.errors import PipelineError, PipelineStage
from faceframe.ml.model_manager import MODEL_REGISTRY

if TYPE_CHECKING:
    from faceframe.config import Settings
    from faceframe.ml.inference import InferencePool
    from faceframe.ml.model_manager import ModelManager
    from faceframe.ml.pipeline import DetectionPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

DATA_URL_PREFIX = "data:image/jpeg;base64,"


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_pipeline(request: Request) -> DetectionPipeline:
    pipeline: DetectionPipeline = request.app.state.pipeline
    return pipeline


def _get_model_manager(request: Request) -> ModelManager:
    manager: ModelManager = request.app.state.model_manager
    return manager


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build a ``success: false`` response body."""
    body = FaceDetectionResponse(success=False, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


def decode_payload(image_data: str) -> bytes:
    """Strip an optional data URL prefix and decode base64.

    Whitespace anywhere in the payload (MIME-style line wrapping) is ignored.

    Raises:
        ValueError: If the payload is not valid base64.
    """
    if ";base64," in image_data:
        image_data = image_data.split(";base64,", 1)[1]
    try:
        return base64.b64decode("".join(image_data.split()), validate=True)
    except binascii.Error as exc:
        raise ValueError(str(exc)) from exc


@router.post(
    "/detect-face",
    response_model=FaceDetectionResponse,
    response_model_exclude_none=True,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": FaceDetectionResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": FaceDetectionResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": FaceDetectionResponse},
    },
    summary="Detect faces and outline them",
)
async def detect_face(payload: FaceDetectionRequest, request: Request) -> FaceDetectionResponse | JSONResponse:
    """Detect faces in a base64 image and return it annotated as a JPEG data URL."""
    settings = _get_settings(request)

    try:
        image_bytes = decode_payload(payload.image_data)
    except ValueError as exc:
        return error_response(status.HTTP_400_BAD_REQUEST, f"Failed to decode image: {exc}")

    if len(image_bytes) > settings.max_file_size:
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            f"Image is {len(image_bytes)} bytes, limit is {settings.max_file_size}",
        )

    try:
        result = await _get_inference_pool(request).detect(_get_pipeline(request), image_bytes)
    except TimeoutError:
        logger.warning("Inference pool saturated, rejecting request")
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Server busy, try again later")
    except PipelineError as exc:
        if exc.stage == PipelineStage.DECODE:
            return error_response(status.HTTP_400_BAD_REQUEST, str(exc.cause))
        logger.error("Face detection failed at stage %s: %s", exc.stage, exc.cause)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Face detection failed: {exc.cause}")

    return FaceDetectionResponse(
        success=True,
        image_data=DATA_URL_PREFIX + base64.b64encode(result.image).decode("ascii"),
        face_count=result.face_count,
        faces=[FaceBox(x=f.x, y=f.y, width=f.width, height=f.height) for f in result.faces],
        message=f"Detected {result.face_count} face(s)",
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool = _get_inference_pool(request)
    manager = _get_model_manager(request)
    return HealthResponse(
        status="ok",
        model=_get_pipeline(request).detector.model_name,
        models_loaded=manager.get_loaded_models(),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/models",
    response_model=ModelsResponse,
    summary="List bundled cascade models",
)
async def list_models(request: Request) -> ModelsResponse:
    """Return the bundled cascade models and which one is active."""
    active = _get_pipeline(request).detector.model_name
    models = [
        ModelInfo(
            name=spec.name,
            description=spec.description,
            status="active" if spec.name == active else "available",
        )
        for spec in MODEL_REGISTRY.values()
    ]
    return ModelsResponse(models=models)
