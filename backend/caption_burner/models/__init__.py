"""
Pydantic models for the caption service.
"""

from caption_burner.models.schemas import (
    CaptionResult,
    CombineRequest,
    CombineResponse,
    CombineResult,
    FileRef,
    HealthResponse,
    JobStage,
    TranscodeMode,
    TranscodeResult,
    UploadResponse,
)

__all__ = [
    "CaptionResult",
    "CombineRequest",
    "CombineResponse",
    "CombineResult",
    "FileRef",
    "HealthResponse",
    "JobStage",
    "TranscodeMode",
    "TranscodeResult",
    "UploadResponse",
]
