"""Custom exception hierarchy for imgcache."""

from __future__ import annotations

from pathlib import Path
from typing import Any


class ImageCacheError(Exception):
    """Base exception for all imgcache errors."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message


class CodecError(ImageCacheError):
    """Decode or encode failure. Fatal to the request, never retried.

    Examples: corrupt source, unsupported input format, encoder error.
    """

    def __init__(
        self,
        message: str = "",
        source_path: str | Path | None = None,
        original: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.source_path = source_path
        self.original = original


class SourceUnavailableError(CodecError):
    """The source image could not be read (missing file, permissions)."""


class InvalidOptionsError(ImageCacheError):
    """Transform options failed validation (negative size, bad quality, unknown format)."""

    def __init__(
        self,
        message: str = "",
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []
