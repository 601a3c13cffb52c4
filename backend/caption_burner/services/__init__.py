"""Services for caption burn-in and video concatenation."""

from caption_burner.services.caption_writer import CaptionWriter
from caption_burner.services.path_resolver import PathResolver
from caption_burner.services.pipeline import CaptionPipeline, CombinePipeline
from caption_burner.services.retention import RetentionSweeper
from caption_burner.services.transcoder import Transcoder

__all__ = [
    "CaptionPipeline",
    "CaptionWriter",
    "CombinePipeline",
    "PathResolver",
    "RetentionSweeper",
    "Transcoder",
]
