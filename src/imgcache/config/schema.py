"""Pydantic model for resolved imgcache settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from imgcache.config.defaults import (
    DEFAULT_CACHE_PATH,
    DEFAULT_COALESCE_DISABLED,
    DEFAULT_FORMAT,
    DEFAULT_HEIGHT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_QUALITY,
    DEFAULT_STREAM_CHUNK_SIZE,
    DEFAULT_WIDTH,
)
from imgcache.types import ImageFormat, TransformOptions


class ImageCacheConfig(BaseModel):
    """Settings handed to ImageOptimizer.from_config()."""

    model_config = {"extra": "ignore"}

    cache_path: Path = Path(DEFAULT_CACHE_PATH)
    default_width: int = Field(default=DEFAULT_WIDTH, ge=0)
    default_height: int = Field(default=DEFAULT_HEIGHT, ge=0)
    default_quality: int = Field(default=DEFAULT_QUALITY, ge=1, le=100)
    default_format: ImageFormat = ImageFormat(DEFAULT_FORMAT)
    coalesce_disabled: bool = DEFAULT_COALESCE_DISABLED
    stream_chunk_size: int = Field(default=DEFAULT_STREAM_CHUNK_SIZE, gt=0)
    log_level: str = DEFAULT_LOG_LEVEL

    @field_validator("default_format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() == "jpg":
            return ImageFormat.JPEG
        return value

    def default_options(self) -> TransformOptions:
        return TransformOptions(
            width=self.default_width,
            height=self.default_height,
            quality=self.default_quality,
            format=self.default_format,
        )
