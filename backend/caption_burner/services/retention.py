"""
Retention sweeper for the storage area.

Uploads, caption tracks, manifests and outputs are never deleted in the
request path. When RETENTION_HOURS is set, files older than that are removed
periodically.
"""

import asyncio
import logging
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """
    Deletes stale files from the storage root.

    Example:
        sweeper = RetentionSweeper(settings.storage_dir, retention_hours=24)
        removed = sweeper.sweep()
    """

    def __init__(self, root: Path, retention_hours: float):
        self.root = Path(root)
        self.retention_hours = retention_hours

    @property
    def enabled(self) -> bool:
        return self.retention_hours > 0

    def sweep(self, now: float | None = None) -> int:
        """
        Delete regular files whose mtime is older than the retention window.

        Subdirectories are left alone.

        Args:
            now: Reference timestamp (default: current time)

        Returns:
            Number of files deleted
        """
        if not self.enabled or not self.root.exists():
            return 0

        cutoff = (now if now is not None else time.time()) - self.retention_hours * 3600
        deleted = 0

        for path in self.root.iterdir():
            if not path.is_file():
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to delete expired file {path.name}: {e}")

        if deleted:
            logger.info(f"Retention sweep removed {deleted} file(s)")
        return deleted

    async def run_forever(self, interval: float) -> None:
        """Sweep every `interval` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            await asyncio.to_thread(self.sweep)
