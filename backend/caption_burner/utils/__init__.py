"""
Shared utilities.

Modules:
    media_utils: Media file handling (duration, type detection)
"""

from caption_burner.utils.media_utils import get_media_duration, is_video_file

__all__ = [
    "get_media_duration",
    "is_video_file",
]
