"""
Exception classes for the caption pipeline.

Precondition failures (ValidationError, MissingFileError, PathError) are raised
before any ffmpeg process is spawned and map to 4xx responses. Storage and
transcoding failures map to 5xx.
"""

from caption_burner.models.schemas import JobStage


class CaptionBurnerError(Exception):
    """Base exception for all application errors.

    Attributes:
        message: Error description
        cause: Original exception (if any)
    """

    def __init__(self, message: str, cause: Exception | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class ValidationError(CaptionBurnerError):
    """Raised when a request is missing a field or carries a bad value."""


class PayloadTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured body size ceiling."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Upload exceeds the maximum size of {limit} bytes.")


class MissingFileError(CaptionBurnerError):
    """Raised when one or more referenced files do not exist.

    Attributes:
        missing: Names of every missing file, in request order
    """

    def __init__(self, missing: list[str], message: str | None = None):
        self.missing = list(missing)
        super().__init__(message or f"File(s) not found: {', '.join(self.missing)}")


class PathError(CaptionBurnerError):
    """Raised when a caller-supplied name would resolve outside the storage area."""


class StorageIOError(CaptionBurnerError):
    """Raised when writing a caption track, manifest or upload fails."""


class TranscodeError(CaptionBurnerError):
    """ffmpeg exited non-zero, could not be launched, or produced no output.

    Attributes:
        diagnostics: Tail of ffmpeg's stderr output
    """

    def __init__(
        self,
        message: str,
        diagnostics: str = "",
        cause: Exception | None = None,
    ):
        self.diagnostics = diagnostics
        super().__init__(message, cause)


class TranscodeTimeoutError(TranscodeError):
    """ffmpeg did not finish within the configured request timeout."""


class PipelineError(CaptionBurnerError):
    """
    Pipeline stage error with context.

    Attributes:
        stage: Stage the request had reached when it failed
        message: Error description
        cause: Original exception (if any)
    """

    def __init__(
        self,
        stage: JobStage,
        message: str,
        cause: Exception | None = None,
    ):
        self.stage = stage
        super().__init__(message, cause)

    def __str__(self) -> str:
        return f"[{self.stage.value}] {self.message}"
