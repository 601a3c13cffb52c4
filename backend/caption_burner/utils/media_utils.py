"""
Media utilities for video file handling.

Provides common functions for media file operations:
- Duration detection via ffprobe
- Video type detection by extension
"""

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset({".mp4", ".mkv", ".avi", ".mov", ".webm"})


def is_video_file(file_path: Path) -> bool:
    """Check if file is a video file by extension.

    Args:
        file_path: Path to media file

    Returns:
        True if file has video extension
    """
    return file_path.suffix.lower() in VIDEO_EXTENSIONS


def get_media_duration(media_path: Path, ffprobe_binary: str = "ffprobe") -> float | None:
    """Get media duration using ffprobe.

    Args:
        media_path: Path to media file
        ffprobe_binary: ffprobe executable

    Returns:
        Duration in seconds, or None if ffprobe fails or is unavailable
    """
    try:
        result = subprocess.run(
            [
                ffprobe_binary,
                "-v",
                "quiet",
                "-show_entries",
                "format=duration",
                "-of",
                "csv=p=0",
                str(media_path),
            ],
            capture_output=True,
            text=True,
            timeout=30,
        )
        if result.returncode == 0 and result.stdout.strip():
            return float(result.stdout.strip())
    except (OSError, ValueError, subprocess.TimeoutExpired) as e:
        logger.warning(f"ffprobe failed for {media_path.name}: {e}")

    return None
