"""
Upload-to-transcode and combine pipelines.

Caption pipeline (one upload):
    received -> renamed -> caption_written -> transcoding -> done | failed

Each step runs once; the first failure ends the request. Input validation
errors are raised as-is, later failures are wrapped in PipelineError with
the stage the request had reached.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from caption_burner.config import Settings
from caption_burner.exceptions import (
    CaptionBurnerError,
    MissingFileError,
    PathError,
    PayloadTooLargeError,
    PipelineError,
    StorageIOError,
    ValidationError,
)
from caption_burner.models.schemas import CaptionResult, CombineResult, JobStage
from caption_burner.services.caption_writer import CaptionWriter
from caption_burner.services.path_resolver import PathResolver
from caption_burner.services.transcoder import Transcoder
from caption_burner.utils.media_utils import get_media_duration, is_video_file

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 1024 * 1024


class UploadSource(Protocol):
    """Anything with an async read(size), such as FastAPI's UploadFile."""

    async def read(self, size: int = -1) -> bytes: ...


class CaptionPipeline:
    """
    Saves an upload, writes its caption track and burns it in.

    Example:
        pipeline = CaptionPipeline(settings, resolver, writer, transcoder)
        result = await pipeline.run(upload_file, "Hello")
        print(result.file_name)
    """

    def __init__(
        self,
        settings: Settings,
        resolver: PathResolver,
        caption_writer: CaptionWriter,
        transcoder: Transcoder,
    ):
        self.settings = settings
        self.resolver = resolver
        self.caption_writer = caption_writer
        self.transcoder = transcoder

    async def run(
        self,
        upload: UploadSource,
        text: str | None,
        upload_id: str | None = None,
    ) -> CaptionResult:
        """
        Run the full upload-and-caption pipeline.

        Args:
            upload: Uploaded video stream
            text: Caption text
            upload_id: Identifier for all artifacts (generated if omitted)

        Returns:
            CaptionResult with the output path

        Raises:
            ValidationError: Empty caption text or empty upload
            PayloadTooLargeError: Upload larger than settings.max_body_size
            PipelineError: Any later failure, with the stage reached
        """
        if not text or not text.strip():
            raise ValidationError("No subtitle text provided.")

        paths = self.resolver.upload_paths(upload_id or self.resolver.new_job_id())
        stage = JobStage.RECEIVED

        try:
            size = await self._receive(upload, paths.partial)
            logger.info(f"Upload {paths.upload_id} received ({size / 1024 / 1024:.1f} MB)")

            self._rename(paths.partial, paths.video)
            stage = JobStage.RENAMED

            self.caption_writer.write(text, paths.caption)
            stage = JobStage.CAPTION_WRITTEN
            logger.debug(f"Upload {paths.upload_id} caption: {text!r}")

            stage = JobStage.TRANSCODING
            result = await self.transcoder.burn_captions(
                paths.video, paths.caption, paths.output
            )

        except ValidationError:
            paths.partial.unlink(missing_ok=True)
            raise
        except CaptionBurnerError as e:
            paths.partial.unlink(missing_ok=True)
            logger.error(
                f"Upload {paths.upload_id} {JobStage.FAILED.value} at {stage.value}: {e.message}"
            )
            raise PipelineError(stage, e.message, e) from e

        duration = await asyncio.to_thread(
            get_media_duration, result.output_path, self.settings.ffprobe_binary
        )
        stage = JobStage.DONE
        logger.info(
            f"Upload {paths.upload_id} {stage.value}: {result.output_path.name}"
            + (f" ({duration:.1f}s)" if duration is not None else "")
        )

        return CaptionResult(
            upload_id=paths.upload_id,
            video_path=paths.video,
            caption_path=paths.caption,
            output_path=result.output_path,
            duration_seconds=duration,
        )

    async def _receive(self, upload: UploadSource, partial: Path) -> int:
        """Stream the upload into a partial file, enforcing the size ceiling."""
        limit = self.settings.max_body_size
        size = 0
        try:
            with open(partial, "wb") as f:
                while chunk := await upload.read(UPLOAD_CHUNK_SIZE):
                    size += len(chunk)
                    if size > limit:
                        raise PayloadTooLargeError(limit)
                    f.write(chunk)
        except OSError as e:
            raise StorageIOError(f"Could not store upload: {e}", e) from e

        if size == 0:
            raise ValidationError("No video file uploaded.")
        return size

    @staticmethod
    def _rename(source: Path, target: Path) -> None:
        try:
            source.replace(target)
        except OSError as e:
            raise StorageIOError(f"Could not rename upload to {target.name}", e) from e


class CombinePipeline:
    """
    Concatenates previously stored videos into one output.

    Each run gets its own manifest and output path, so concurrent combines
    never overwrite each other.

    Example:
        pipeline = CombinePipeline(resolver, transcoder)
        result = await pipeline.run(["output_a.mp4", "output_b.mp4"])
    """

    def __init__(self, resolver: PathResolver, transcoder: Transcoder):
        self.resolver = resolver
        self.transcoder = transcoder

    async def run(self, names: list[str], job_id: str | None = None) -> CombineResult:
        """
        Combine stored videos in the given order.

        Args:
            names: File names inside the storage area (at least two)
            job_id: Identifier for the manifest and output (generated if omitted)

        Returns:
            CombineResult with the output path

        Raises:
            ValidationError: Fewer than two names, or a stored non-video file
            PathError: A name would resolve outside the storage area
            MissingFileError: Listing every name that does not exist
                (checked before file types)
            PipelineError: ffmpeg or manifest failure
        """
        if len(names) < 2:
            raise ValidationError("At least two video files are required to combine.")

        inputs = [self.resolver.resolve(name) for name in names]

        missing = [path.name for path in inputs if not path.exists()]
        if missing:
            logger.warning(f"Combine inputs not found: {missing}")
            raise MissingFileError(missing, "Some files do not exist.")

        not_video = [path.name for path in inputs if not is_video_file(path)]
        if not_video:
            raise ValidationError(f"Only video files can be combined: {', '.join(not_video)}")

        paths = self.resolver.concat_paths(job_id or self.resolver.new_job_id())

        try:
            result = await self.transcoder.concat(inputs, paths.manifest, paths.output)
        except (ValidationError, MissingFileError, PathError):
            raise
        except CaptionBurnerError as e:
            logger.error(f"Combine {paths.job_id} failed: {e.message}")
            raise PipelineError(JobStage.TRANSCODING, e.message, e) from e

        logger.info(f"Combine {paths.job_id} done: {len(inputs)} files -> {result.output_path.name}")

        return CombineResult(
            job_id=paths.job_id,
            manifest_path=paths.manifest,
            output_path=result.output_path,
            input_count=len(inputs),
        )
