"""Pydantic request/response schemas for the FaceFrame API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FaceDetectionRequest(_CamelModel):
    """Image to scan, base64 encoded, optionally as a data URL."""

    image_data: str = Field(alias="imageData", min_length=1)


class FaceBox(BaseModel):
    """A detected face in pixel coordinates of the input image."""

    x: int
    y: int
    width: int
    height: int


class FaceDetectionResponse(_CamelModel):
    """Result of a detect-face call. ``imageData`` is a JPEG data URL."""

    success: bool
    image_data: str = Field(default="", alias="imageData")
    face_count: int = Field(default=0, ge=0, alias="faceCount")
    faces: list[FaceBox] = Field(default_factory=list)
    message: str | None = None


class HealthResponse(_CamelModel):
    """Health check response."""

    status: str = "ok"
    model: str
    models_loaded: list[str] = Field(alias="modelsLoaded")
    concurrent_requests: int = Field(alias="concurrentRequests")
    queue_depth: int = Field(alias="queueDepth")


class ModelInfo(BaseModel):
    """Information about a bundled cascade model."""

    name: str
    description: str
    status: str = Field(description="Model status: 'active' or 'available'")


class ModelsResponse(BaseModel):
    """Response for the models listing endpoint."""

    models: list[ModelInfo]
