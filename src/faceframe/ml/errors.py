"""Error taxonomy for the detection pipeline."""

from __future__ import annotations

from enum import StrEnum


class PipelineStage(StrEnum):
    DECODE = "decode"
    CONVERT = "convert"
    DETECT = "detect"
    ANNOTATE = "annotate"
    ENCODE = "encode"


class FaceFrameError(Exception):
    """Base class for all FaceFrame errors."""


class DecodeError(FaceFrameError):
    """Input bytes are not a recognized or valid compressed image."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to decode image: {reason}")
        self.reason = reason


class EncodeError(FaceFrameError):
    """The output image could not be produced."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to encode image: {reason}")
        self.reason = reason


class ModelLoadError(FaceFrameError):
    """A cascade model file is missing, unreadable, or malformed."""

    def __init__(self, path: str, reason: str | None = None) -> None:
        message = f"Failed to load cascade model from {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path
        self.reason = reason


class DetectionFailure(FaceFrameError):
    """Internal failure of the detection stage. Finding no faces is not a failure."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Face detection failed: {reason}")
        self.reason = reason


class PipelineError(FaceFrameError):
    """Wraps the error raised by a pipeline stage, tagged with that stage."""

    def __init__(self, stage: PipelineStage, cause: BaseException) -> None:
        super().__init__(f"Pipeline failed at stage '{stage}': {cause}")
        self.stage = stage
        self.cause = cause
