"""imgcache — resize/re-encode images on demand, memoized on disk."""

from imgcache.cache.keys import derive_key
from imgcache.codec import ImageCodec, PillowCodec
from imgcache.config import ImageCacheConfig, load_config
from imgcache.errors import (
    CodecError,
    ImageCacheError,
    InvalidOptionsError,
    SourceUnavailableError,
)
from imgcache.negotiate import pick_format
from imgcache.optimizer import ImageOptimizer
from imgcache.types import (
    ImageFormat,
    StreamResult,
    TransformOptions,
    TransformResult,
    resolve_options,
)

__all__ = [
    "ImageOptimizer",
    "ImageCodec",
    "PillowCodec",
    "ImageCacheConfig",
    "load_config",
    "ImageFormat",
    "TransformOptions",
    "TransformResult",
    "StreamResult",
    "resolve_options",
    "derive_key",
    "pick_format",
    "ImageCacheError",
    "CodecError",
    "SourceUnavailableError",
    "InvalidOptionsError",
]
