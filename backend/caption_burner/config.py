"""
Application configuration and settings.
"""

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic_settings import BaseSettings

# Used when profiles.yaml is absent or does not define the requested profile
DEFAULT_PROFILES: dict[str, dict] = {
    "h264": {
        "video_codec": "libx264",
        "preset": "medium",
        "crf": 23,
    },
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    host: str = "0.0.0.0"
    port: int = 3003
    public_base_url: str | None = None  # Base for returned URLs (request URL if unset)

    # Paths
    storage_dir: Path = Path("uploads")
    config_dir: Path = Path("config")

    # External tools
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    caption_profile: str = "h264"

    # Limits
    request_timeout: float = 15 * 60  # Transcoding can take minutes
    max_body_size: int = 500 * 1024 * 1024
    max_concurrent_jobs: int = 2
    diagnostic_lines: int = 40  # ffmpeg stderr lines kept for error reports

    # Retention (0 disables the sweeper)
    retention_hours: float = 0
    cleanup_interval: int = 3600

    # Logging
    log_level: str = "INFO"
    log_format: str = "structured"  # "simple" or "structured"

    # Per-module log levels (optional overrides)
    log_level_transcoder: str | None = None
    log_level_pipeline: str | None = None
    log_level_api: str | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_profiles_config(settings: Settings | None = None) -> dict:
    """
    Load codec profiles from config/profiles.yaml.

    Args:
        settings: Optional settings instance

    Returns:
        Mapping of profile name to encoder options. Built-in profiles are
        returned when the file does not exist.
    """
    if settings is None:
        settings = get_settings()

    profiles_path = settings.config_dir / "profiles.yaml"
    if not profiles_path.exists():
        return dict(DEFAULT_PROFILES)

    with open(profiles_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return {**DEFAULT_PROFILES, **data.get("profiles", {})}


def load_profile(name: str, settings: Settings | None = None) -> dict:
    """
    Load a single named codec profile.

    Args:
        name: Profile name (e.g., "h264")
        settings: Optional settings instance

    Returns:
        Encoder options for the profile

    Raises:
        KeyError: If no profile with that name is configured
        ValueError: If the profile is not a mapping or has no video_codec
    """
    profiles = load_profiles_config(settings)
    if name not in profiles:
        raise KeyError(
            f"Codec profile not found: {name}. Available: {sorted(profiles)}"
        )

    profile = profiles[name]
    if not isinstance(profile, dict) or not profile.get("video_codec"):
        raise ValueError(f"Codec profile '{name}' must define video_codec")
    return profile
