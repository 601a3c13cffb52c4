"""
Pydantic models for the caption and combine pipelines.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class JobStage(str, Enum):
    """Stage of an upload-and-caption request.

    received -> renamed -> caption_written -> transcoding -> done | failed
    """
    RECEIVED = "received"
    RENAMED = "renamed"
    CAPTION_WRITTEN = "caption_written"
    TRANSCODING = "transcoding"
    DONE = "done"
    FAILED = "failed"


class TranscodeMode(str, Enum):
    """Operating mode of a single ffmpeg invocation."""
    CAPTION_BURN = "caption-burn"
    CONCAT = "concat"


class TranscodeResult(BaseModel):
    """Outcome of a successful ffmpeg run."""

    mode: TranscodeMode
    output_path: Path
    elapsed_seconds: float


class CaptionResult(BaseModel):
    """Result of the upload-and-caption pipeline."""

    upload_id: str
    video_path: Path
    caption_path: Path
    output_path: Path
    duration_seconds: float | None = None  # Output duration from ffprobe

    @property
    def file_name(self) -> str:
        return self.output_path.name


class CombineResult(BaseModel):
    """Result of the combine pipeline."""

    job_id: str
    manifest_path: Path
    output_path: Path
    input_count: int

    @property
    def file_name(self) -> str:
        return self.output_path.name


# ═══════════════════════════════════════════════════════════════════════════════
# API payloads
# ═══════════════════════════════════════════════════════════════════════════════


class FileRef(BaseModel):
    """Reference to a previously stored file."""

    name: str


class CombineRequest(BaseModel):
    """Body of POST /api/combine."""

    files: list[FileRef] = Field(default_factory=list)


class UploadResponse(BaseModel):
    """Response of POST /api/upload."""

    model_config = {"populate_by_name": True}

    message: str
    video_url: str = Field(alias="videoUrl")
    file_name: str = Field(alias="fileName")


class CombineResponse(BaseModel):
    """Response of POST /api/combine."""

    model_config = {"populate_by_name": True}

    message: str
    combined_video_url: str = Field(alias="combinedVideoUrl")
    file_name: str = Field(alias="fileName")


class HealthResponse(BaseModel):
    """Response of GET /."""

    status: str = "success"
    message: str = "Server is running!"
    timestamp: datetime
