"""
Logging configuration for the application.

Every record carries the id of the upload or combine job it belongs to, so
ffmpeg output from concurrent jobs can be told apart.

Supports per-module log levels via environment variables:
- LOG_LEVEL: Global log level (default: INFO)
- LOG_FORMAT: Log format - simple or structured (default: structured)
- LOG_LEVEL_<MODULE>: Per-module override (e.g., LOG_LEVEL_TRANSCODER=DEBUG)
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from caption_burner.config import Settings


# Module name mapping: settings field suffix -> logger name
MODULE_LOGGERS = {
    "transcoder": "caption_burner.services.transcoder",
    "pipeline": "caption_burner.services.pipeline",
    "api": "caption_burner.api.routes",
}

# Shown in place of a job id outside any request
NO_JOB = "-"

_current_job: ContextVar[str | None] = ContextVar("current_job", default=None)


@contextmanager
def job_context(job_id: str) -> Iterator[None]:
    """
    Tag every log record emitted inside the block with a job id.

    The id follows the code into tasks and threads started from the block
    (asyncio copies the context), which covers ffmpeg stderr streaming.

    Example:
        with job_context(upload_id):
            await pipeline.run(video, text, upload_id=upload_id)
    """
    token = _current_job.set(job_id)
    try:
        yield
    finally:
        _current_job.reset(token)


def current_job() -> str | None:
    return _current_job.get()


class JobContextFilter(logging.Filter):
    """Copies the current job id onto the record as `job_id`."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "job_id"):
            record.job_id = current_job() or NO_JOB
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured log formatter for easy parsing.

    Format: timestamp | level | logger | job | message
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record in structured format."""
        logger_name = record.name.removeprefix("caption_burner.")
        logger_name = logger_name.removeprefix("services.")

        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        job_id = getattr(record, "job_id", None) or current_job() or NO_JOB

        message = (
            f"{timestamp} | "
            f"{record.levelname:8} | "
            f"{logger_name:12} | "
            f"{job_id[:8]:8} | "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


def setup_logging(settings: "Settings") -> None:
    """
    Configure logging based on settings.

    Args:
        settings: Application settings with log configuration
    """
    root_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "structured":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(job_id)s] %(message)s"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(root_level)
    handler.addFilter(JobContextFilter())
    root_logger.addHandler(handler)

    for module_key, logger_name in MODULE_LOGGERS.items():
        level_str = getattr(settings, f"log_level_{module_key}", None)
        if level_str:
            level = getattr(logging, level_str.upper(), root_level)
            logging.getLogger(logger_name).setLevel(level)

    # Per-chunk multipart parser debug output
    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("python_multipart").setLevel(logging.WARNING)
