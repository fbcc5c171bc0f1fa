"""Error handling — exception hierarchy for the transform cache."""

from imgcache.errors.exceptions import (
    CodecError,
    ImageCacheError,
    InvalidOptionsError,
    SourceUnavailableError,
)

__all__ = [
    "ImageCacheError",
    "CodecError",
    "SourceUnavailableError",
    "InvalidOptionsError",
]
