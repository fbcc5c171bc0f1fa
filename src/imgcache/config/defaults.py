"""Package-level default configuration values."""

from __future__ import annotations

from typing import Any

# Cache location
DEFAULT_CACHE_PATH = "./data/cache/images"

# Default transform options (0 = no constraint)
DEFAULT_WIDTH = 0
DEFAULT_HEIGHT = 0
DEFAULT_QUALITY = 80
DEFAULT_FORMAT = "webp"

# Orchestration
DEFAULT_COALESCE_DISABLED = False
DEFAULT_STREAM_CHUNK_SIZE = 64 * 1024

# Log level
DEFAULT_LOG_LEVEL = "WARNING"


def get_defaults() -> dict[str, Any]:
    """Return all defaults as a flat dictionary for merging."""
    return {
        "cache_path": DEFAULT_CACHE_PATH,
        "default_width": DEFAULT_WIDTH,
        "default_height": DEFAULT_HEIGHT,
        "default_quality": DEFAULT_QUALITY,
        "default_format": DEFAULT_FORMAT,
        "coalesce_disabled": DEFAULT_COALESCE_DISABLED,
        "stream_chunk_size": DEFAULT_STREAM_CHUNK_SIZE,
        "log_level": DEFAULT_LOG_LEVEL,
    }
