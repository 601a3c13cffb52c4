"""API routes for caption burn-in and combining."""

from caption_burner.api import routes

__all__ = ["routes"]
