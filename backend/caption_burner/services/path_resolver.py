"""
Path resolution inside the storage area.

Every artifact a request touches (upload, caption track, concat manifest,
output) is derived here, either from a generated identifier or from a
caller-supplied filename that must not escape the storage root.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from caption_burner.exceptions import PathError

logger = logging.getLogger(__name__)

OUTPUT_EXTENSION = ".mp4"
CAPTION_EXTENSION = ".srt"


@dataclass(frozen=True)
class UploadPaths:
    """Paths for one upload-and-caption request."""

    upload_id: str
    partial: Path
    video: Path
    caption: Path
    output: Path


@dataclass(frozen=True)
class ConcatPaths:
    """Paths for one combine request."""

    job_id: str
    manifest: Path
    output: Path


class PathResolver:
    """
    Derives canonical paths inside the storage root.

    Example:
        resolver = PathResolver(settings.storage_dir)
        paths = resolver.upload_paths(resolver.new_job_id())
        source = resolver.resolve("output_3f2a.mp4")
    """

    def __init__(self, root: Path):
        """
        Initialize resolver.

        Args:
            root: Storage area directory (created if absent)
        """
        self.root = Path(root).resolve()

    def ensure_root(self) -> Path:
        """Create the storage root if it does not exist."""
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    @staticmethod
    def new_job_id() -> str:
        """Generate a collision-resistant identifier for one request."""
        return uuid.uuid4().hex

    def upload_paths(self, upload_id: str) -> UploadPaths:
        """
        Build all paths for an upload.

        Args:
            upload_id: Identifier from new_job_id()

        Returns:
            UploadPaths with partial, video, caption and output paths
        """
        return UploadPaths(
            upload_id=upload_id,
            partial=self.root / f".{upload_id}.part",
            video=self.root / f"{upload_id}{OUTPUT_EXTENSION}",
            caption=self.root / f"{upload_id}{CAPTION_EXTENSION}",
            output=self.root / f"output_{upload_id}{OUTPUT_EXTENSION}",
        )

    def concat_paths(self, job_id: str) -> ConcatPaths:
        """
        Build the manifest and output paths for a combine job.

        Both are unique per job so concurrent combines never share a file.
        """
        return ConcatPaths(
            job_id=job_id,
            manifest=self.root / f"concat_{job_id}.txt",
            output=self.root / f"combined_{job_id}{OUTPUT_EXTENSION}",
        )

    def resolve(self, filename: str) -> Path:
        """
        Resolve a caller-supplied filename inside the storage root.

        Only bare filenames are accepted. Nothing outside the root is
        touched: the check is purely lexical plus symlink resolution of the
        candidate path.

        Args:
            filename: Name of a file previously stored in the storage area

        Returns:
            Absolute path inside the storage root (may not exist)

        Raises:
            PathError: If the name is empty, contains directory components
                or resolves outside the root
        """
        if not filename or not filename.strip():
            raise PathError("File name is empty")

        if "\x00" in filename:
            raise PathError(f"File name contains a NUL byte: {filename!r}")

        if "/" in filename or "\\" in filename or filename in (".", ".."):
            logger.warning(f"Rejected file name with directory components: {filename!r}")
            raise PathError(f"File name must not contain directory components: {filename!r}")

        candidate = (self.root / filename).resolve()
        if not candidate.is_relative_to(self.root) or candidate == self.root:
            logger.warning(f"Rejected file name escaping storage root: {filename!r}")
            raise PathError(f"File name resolves outside the storage area: {filename!r}")

        return candidate

    @staticmethod
    def to_posix(path: Path) -> str:
        """Absolute path with forward slashes, as passed to ffmpeg."""
        return Path(path).resolve().as_posix().strip()

    @classmethod
    def escape_filter_path(cls, path: Path) -> str:
        """
        Escape a path for use inside a quoted ffmpeg filter argument.

        Backslashes and colons are filter-level separators; a single quote
        ends the quoted section and is emitted as '\\''.

        Example:
            C:/media/a.srt -> C\\:/media/a.srt
        """
        value = cls.to_posix(path)
        value = value.replace("\\", "\\\\").replace(":", "\\:")
        return value.replace("'", "'\\''")

    def scrub(self, text: str) -> str:
        """Remove the storage root from diagnostic text before it leaves the service."""
        if not text:
            return text
        root = self.to_posix(self.root)
        return text.replace(root + "/", "").replace(root, "<storage>")
