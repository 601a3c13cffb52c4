"""
HTTP API routes for caption burn-in and video combining.

Provides endpoints for:
- Uploading a video and burning a caption into it
- Combining previously stored videos into one
"""

import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from caption_burner.config import Settings
from caption_burner.exceptions import (
    MissingFileError,
    PathError,
    PayloadTooLargeError,
    PipelineError,
    TranscodeError,
    TranscodeTimeoutError,
    ValidationError,
)
from caption_burner.logging_config import job_context
from caption_burner.models.schemas import CombineRequest, CombineResponse, UploadResponse
from caption_burner.services.path_resolver import PathResolver
from caption_burner.services.pipeline import CaptionPipeline, CombinePipeline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["captions"])


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_resolver(request: Request) -> PathResolver:
    return request.app.state.resolver


def get_caption_pipeline(request: Request) -> CaptionPipeline:
    return request.app.state.caption_pipeline


def get_combine_pipeline(request: Request) -> CombinePipeline:
    return request.app.state.combine_pipeline


def public_url(request: Request, settings: Settings, filename: str) -> str:
    """Public URL of a file in the storage area."""
    base = settings.public_base_url or str(request.base_url)
    return f"{base.rstrip('/')}/uploads/{filename}"


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    """JSON error body in the {error, ...} shape used by every endpoint."""
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


def _is_timeout(error: PipelineError) -> bool:
    return isinstance(error.cause, TranscodeTimeoutError)


def _diagnostic_summary(error: PipelineError, resolver: PathResolver) -> str:
    """Short, path-free description of a failed run for API callers."""
    summary = error.message
    if isinstance(error.cause, TranscodeError) and error.cause.diagnostics:
        last_line = error.cause.diagnostics.strip().splitlines()[-1]
        summary = f"{summary}: {last_line}"
    return resolver.scrub(summary)


@router.post("/upload", response_model=UploadResponse)
async def upload_video(
    request: Request,
    video: UploadFile | None = File(None),
    question: str | None = Form(None),
    settings: Settings = Depends(get_settings_dep),
    pipeline: CaptionPipeline = Depends(get_caption_pipeline),
):
    """
    Upload a video and burn the caption text into it.

    Holds the response until ffmpeg finishes.

    Args:
        video: Multipart video file
        question: Caption text

    Returns:
        UploadResponse with the output URL and file name

    Raises:
        400: No video file, or empty caption text
        413: Upload too large
        500: Pipeline failure (details in server log)
        504: Transcoding timed out
    """
    if video is None or not video.filename:
        return error_response(400, "No video file uploaded.")

    if not question or not question.strip():
        return error_response(400, "No subtitle text provided.")

    upload_id = pipeline.resolver.new_job_id()
    logger.info(f"Upload {upload_id}: {video.filename} ({video.content_type})")

    try:
        with job_context(upload_id):
            result = await pipeline.run(video, question, upload_id=upload_id)
    except PayloadTooLargeError as e:
        return error_response(413, e.message)
    except ValidationError as e:
        return error_response(400, e.message)
    except PipelineError as e:
        logger.error(f"Upload {upload_id} failed: {e}", exc_info=e.cause)
        if _is_timeout(e):
            return error_response(504, "Transcoding timed out.", requestId=upload_id)
        return error_response(500, "Failed to add subtitles.", requestId=upload_id)
    finally:
        await video.close()

    return UploadResponse(
        message="Video uploaded with subtitles successfully.",
        video_url=public_url(request, settings, result.file_name),
        file_name=result.file_name,
    )


@router.post("/combine", response_model=CombineResponse)
async def combine_videos(
    request: Request,
    body: CombineRequest | None = None,
    settings: Settings = Depends(get_settings_dep),
    resolver: PathResolver = Depends(get_resolver),
    pipeline: CombinePipeline = Depends(get_combine_pipeline),
):
    """
    Combine two or more stored videos, in order, by stream copy.

    Args:
        body: CombineRequest with files [{name}, ...]

    Returns:
        CombineResponse with the combined video URL

    Raises:
        400: Fewer than two files, invalid names, or missing files
        500: ffmpeg failure (details and requestId in body)
        504: Transcoding timed out
    """
    names = [ref.name for ref in body.files] if body else []
    job_id = resolver.new_job_id()
    logger.info(f"Combine {job_id}: {names}")

    try:
        with job_context(job_id):
            result = await pipeline.run(names, job_id=job_id)
    except ValidationError as e:
        return error_response(400, e.message)
    except PathError as e:
        logger.warning(f"Combine {job_id} rejected: {e.message}")
        return error_response(400, "Invalid file name.")
    except MissingFileError as e:
        return error_response(400, "Some files do not exist.", missingFiles=e.missing)
    except PipelineError as e:
        logger.error(f"Combine {job_id} failed: {e}", exc_info=e.cause)
        if _is_timeout(e):
            return error_response(504, "Transcoding timed out.", requestId=job_id)
        return error_response(
            500,
            "Failed to combine videos.",
            details=_diagnostic_summary(e, resolver),
            requestId=job_id,
        )

    return CombineResponse(
        message="Videos combined successfully.",
        combined_video_url=public_url(request, settings, result.file_name),
        file_name=result.file_name,
    )
