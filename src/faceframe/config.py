"""Environment-based configuration for FaceFrame."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000,http://localhost:80,http://127.0.0.1:3000,http://127.0.0.1:80"


class Settings(BaseSettings):
    """Application settings loaded from FACEFRAME_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACEFRAME_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    allowed_origins: str = DEFAULT_ALLOWED_ORIGINS
    log_level: str = "INFO"

    # Cascade model (an explicit path overrides the bundled model name)
    cascade_model: str = "haarcascade_frontalface_default"
    cascade_path: str | None = None

    # Detection parameters (stricter than OpenCV's defaults, see DetectionParams)
    scale_factor: float = Field(default=1.1, gt=1.0)
    min_neighbors: int = Field(default=5, ge=0)
    min_face_size: int = Field(default=30, ge=1)
    max_face_size: int = Field(default=0, ge=0)
    equalize_histogram: bool = True

    # Annotation
    box_color: tuple[int, int, int] = (0, 255, 0)
    box_thickness: int = Field(default=3, ge=1)

    # Output encoding
    jpeg_quality: int = Field(default=90, ge=1, le=100)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)

    @property
    def origins(self) -> list[str]:
        """Allowed CORS origins as a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
