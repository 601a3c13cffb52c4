"""
Transcoding service using ffmpeg.

Two modes:
- caption-burn: re-encode one video with an SRT track rendered into the frames
- concat: join several stored videos by stream copy via the concat demuxer

Each run logs the command line, streams ffmpeg's stderr to the debug log and
resolves to exactly one outcome: a TranscodeResult or a TranscodeError.
"""

import asyncio
import logging
import shlex
import time
from collections import deque
from pathlib import Path

from caption_burner.config import Settings, load_profile
from caption_burner.exceptions import (
    MissingFileError,
    StorageIOError,
    TranscodeError,
    TranscodeTimeoutError,
    ValidationError,
)
from caption_burner.models.schemas import TranscodeMode, TranscodeResult
from caption_burner.services.path_resolver import PathResolver

logger = logging.getLogger(__name__)

# Max bytes per stderr line before asyncio gives up on the reader
STDERR_LINE_LIMIT = 1024 * 1024


def build_manifest(inputs: list[Path]) -> str:
    """
    Render a concat demuxer list, one `file '<path>'` line per input.

    Single quotes inside a path are closed, escaped and reopened.
    """
    lines = []
    for path in inputs:
        quoted = PathResolver.to_posix(path).replace("'", "'\\''")
        lines.append(f"file '{quoted}'")
    return "\n".join(lines) + "\n"


class Transcoder:
    """
    Runs ffmpeg for caption burn-in and concatenation.

    At most `settings.max_concurrent_jobs` ffmpeg processes run at once;
    further requests wait for a free slot.

    Example:
        transcoder = Transcoder(settings, resolver)
        result = await transcoder.burn_captions(video, srt, output)
        print(result.output_path)
    """

    def __init__(self, settings: Settings, resolver: PathResolver):
        """
        Initialize transcoder.

        Args:
            settings: Application settings
            resolver: Path resolver for the storage area

        Raises:
            KeyError: If the configured caption profile does not exist
        """
        self.settings = settings
        self.resolver = resolver
        self.profile = load_profile(settings.caption_profile, settings)
        self._slots = asyncio.Semaphore(max(1, settings.max_concurrent_jobs))

    # ═══════════════════════════════════════════════════════════════════════
    # Caption burn-in
    # ═══════════════════════════════════════════════════════════════════════

    async def burn_captions(
        self,
        video_path: Path,
        caption_path: Path,
        output_path: Path,
    ) -> TranscodeResult:
        """
        Burn a caption track into a video.

        Video is re-encoded with the configured codec profile, audio is
        copied unchanged.

        Args:
            video_path: Input video
            caption_path: SRT caption track
            output_path: Destination video

        Returns:
            TranscodeResult with the output path

        Raises:
            MissingFileError: If the video or caption file does not exist
                (ffmpeg is not started)
            StorageIOError: If the caption track is empty
            TranscodeError: If ffmpeg fails
        """
        missing = [p.name for p in (video_path, caption_path) if not Path(p).exists()]
        if missing:
            logger.error(f"Caption burn inputs not found: {missing}")
            raise MissingFileError(missing)

        if Path(caption_path).stat().st_size == 0:
            raise StorageIOError(f"Caption track is empty: {Path(caption_path).name}")

        cmd = self._caption_command(video_path, caption_path, output_path)
        return await self._run(TranscodeMode.CAPTION_BURN, cmd, Path(output_path))

    def _caption_command(
        self,
        video_path: Path,
        caption_path: Path,
        output_path: Path,
    ) -> list[str]:
        """Build ffmpeg argv for caption burn-in."""
        subtitle_filter = f"subtitles='{self.resolver.escape_filter_path(caption_path)}'"

        cmd = [
            self.settings.ffmpeg_binary,
            "-hide_banner",
            "-nostats",
            "-y",                                 # Overwrite output
            "-i", self.resolver.to_posix(video_path),
            "-vf", subtitle_filter,
            "-c:v", self.profile["video_codec"],
        ]
        if self.profile.get("preset"):
            cmd += ["-preset", str(self.profile["preset"])]
        if self.profile.get("crf") is not None:
            cmd += ["-crf", str(self.profile["crf"])]
        cmd += [str(arg) for arg in self.profile.get("extra_args", [])]
        cmd += [
            "-c:a", "copy",                       # Audio passes through
            self.resolver.to_posix(output_path),
        ]
        return cmd

    # ═══════════════════════════════════════════════════════════════════════
    # Concatenation
    # ═══════════════════════════════════════════════════════════════════════

    async def concat(
        self,
        inputs: list[Path],
        manifest_path: Path,
        output_path: Path,
    ) -> TranscodeResult:
        """
        Concatenate videos by stream copy.

        All inputs must share codec parameters; this is not validated here
        and a mismatch surfaces as an ffmpeg error.

        Args:
            inputs: Ordered input videos (at least two)
            manifest_path: Where to write the concat list
            output_path: Destination video

        Returns:
            TranscodeResult with the output path

        Raises:
            ValidationError: If fewer than two inputs are given
            MissingFileError: Listing every input that does not exist
            StorageIOError: If the manifest cannot be written
            TranscodeError: If ffmpeg fails
        """
        if len(inputs) < 2:
            raise ValidationError("At least two video files are required to combine.")

        missing = [p.name for p in inputs if not Path(p).exists()]
        if missing:
            logger.warning(f"Concat inputs not found: {missing}")
            raise MissingFileError(missing, "Some files do not exist.")

        try:
            Path(manifest_path).write_text(build_manifest(inputs), encoding="utf-8")
        except OSError as e:
            raise StorageIOError(f"Could not write concat manifest: {Path(manifest_path).name}", e) from e

        logger.info(f"Concatenating {len(inputs)} files -> {Path(output_path).name}")

        cmd = [
            self.settings.ffmpeg_binary,
            "-hide_banner",
            "-nostats",
            "-y",
            "-f", "concat",
            "-safe", "0",                         # Manifest holds absolute paths
            "-i", self.resolver.to_posix(manifest_path),
            "-c", "copy",                         # No re-encode
            self.resolver.to_posix(output_path),
        ]
        return await self._run(TranscodeMode.CONCAT, cmd, Path(output_path))

    # ═══════════════════════════════════════════════════════════════════════
    # Process handling
    # ═══════════════════════════════════════════════════════════════════════

    async def _run(
        self,
        mode: TranscodeMode,
        cmd: list[str],
        output_path: Path,
    ) -> TranscodeResult:
        """
        Run ffmpeg and wait for its terminal event.

        Raises:
            TranscodeError: On launch failure, non-zero exit or missing output
            TranscodeTimeoutError: If settings.request_timeout is exceeded
        """
        async with self._slots:
            logger.info(f"ffmpeg [{mode.value}] start: {shlex.join(cmd)}")
            started = time.monotonic()

            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                    limit=STDERR_LINE_LIMIT,
                )
            except OSError as e:
                logger.error(f"Failed to launch ffmpeg ({cmd[0]}): {e}")
                raise TranscodeError(f"Failed to start ffmpeg: {e}", cause=e) from e

            diagnostics: deque[str] = deque(maxlen=max(1, self.settings.diagnostic_lines))

            try:
                return_code = await asyncio.wait_for(
                    self._collect(proc, diagnostics),
                    timeout=self.settings.request_timeout,
                )
            except asyncio.TimeoutError:
                await self._terminate(proc)
                logger.error(
                    f"ffmpeg [{mode.value}] timed out after {self.settings.request_timeout:.0f}s"
                )
                raise TranscodeTimeoutError(
                    f"ffmpeg timed out after {self.settings.request_timeout:.0f} seconds",
                    "\n".join(diagnostics),
                )
            except asyncio.CancelledError:
                # Client went away or the server is shutting down
                self._kill(proc)
                logger.warning(f"ffmpeg [{mode.value}] cancelled, process killed")
                await asyncio.shield(proc.wait())
                raise

            elapsed = time.monotonic() - started
            tail = "\n".join(diagnostics)

            if return_code != 0:
                logger.error(f"ffmpeg [{mode.value}] failed (code {return_code}): {tail[-500:]}")
                raise TranscodeError(f"ffmpeg error (code {return_code})", tail)

            if not output_path.exists() or output_path.stat().st_size == 0:
                logger.error(f"ffmpeg [{mode.value}] finished without output: {output_path.name}")
                raise TranscodeError("ffmpeg finished but output file was not created", tail)

            logger.info(f"ffmpeg [{mode.value}] done in {elapsed:.1f}s: {output_path.name}")
            return TranscodeResult(mode=mode, output_path=output_path, elapsed_seconds=elapsed)

    @staticmethod
    async def _collect(proc: asyncio.subprocess.Process, diagnostics: deque) -> int:
        """Stream stderr into the log and the diagnostics buffer, then wait for exit."""
        if proc.stderr is not None:
            async for raw in proc.stderr:
                line = raw.decode("utf-8", errors="replace").rstrip()
                if line:
                    diagnostics.append(line)
                    logger.debug(f"ffmpeg: {line}")
        return await proc.wait()

    @classmethod
    async def _terminate(cls, proc: asyncio.subprocess.Process) -> None:
        """Terminate, then kill if ffmpeg ignores SIGTERM."""
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=5)
        except asyncio.TimeoutError:
            cls._kill(proc)
            await proc.wait()

    @staticmethod
    def _kill(proc: asyncio.subprocess.Process) -> None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
