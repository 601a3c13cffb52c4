"""
SubRip caption track synthesis.

Writes a one-cue subtitle file whose cue spans the whole video. The real
duration is unknown without probing, so the cue ends at a sentinel far past
any plausible video length.
"""

import logging
from pathlib import Path

from caption_burner.exceptions import StorageIOError

logger = logging.getLogger(__name__)

CUE_START = "00:00:00,000"
CUE_END = "99:00:00,000"


def format_cue(text: str) -> str:
    """Render the single SRT cue for the given caption text.

    The text is written as-is: SRT control sequences are not escaped.
    """
    return f"1\n{CUE_START} --> {CUE_END}\n{text}\n"


class CaptionWriter:
    """
    Writes single-cue SRT files.

    Rewriting the same path replaces the previous cue.

    Example:
        writer = CaptionWriter()
        writer.write("Hello", Path("uploads/abc.srt"))
    """

    def write(self, text: str, path: Path) -> Path:
        """
        Write the caption track.

        Args:
            text: Caption text (validated as non-empty by the caller)
            path: Destination .srt path

        Returns:
            The written path

        Raises:
            StorageIOError: If the file cannot be written or ends up empty
        """
        path = Path(path)
        try:
            path.write_text(format_cue(text), encoding="utf-8")
            size = path.stat().st_size
        except OSError as e:
            logger.error(f"Failed to write caption track {path.name}: {e}")
            raise StorageIOError(f"Could not write caption track: {path.name}", e) from e

        if size == 0:
            raise StorageIOError(f"Caption track is empty: {path.name}")

        logger.debug(f"Caption track written: {path.name} ({size} bytes)")
        return path
