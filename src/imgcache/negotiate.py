"""Output format negotiation from an Accept-style header."""

from __future__ import annotations

from imgcache.types import ImageFormat

MODERN_FORMAT = ImageFormat.WEBP
FALLBACK_FORMAT = ImageFormat.JPEG


def pick_format(accept: str | None) -> ImageFormat:
    """WebP when the client advertises image/webp, JPEG otherwise.

    Plain substring check; q-values are not parsed.
    """
    if not accept:
        return FALLBACK_FORMAT
    if MODERN_FORMAT.content_type in accept:
        return MODERN_FORMAT
    return FALLBACK_FORMAT
