"""Shared Pydantic models for imgcache."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from imgcache.errors.exceptions import InvalidOptionsError

# ── Enums ──


class ImageFormat(StrEnum):
    WEBP = "webp"
    JPEG = "jpeg"
    PNG = "png"

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"


_FORMAT_ALIASES = {"jpg": "jpeg"}


# ── Options ──


class TransformOptions(BaseModel):
    """Fully resolved transform parameters. 0 means no constraint on a dimension."""

    model_config = {"frozen": True}

    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    quality: int = Field(default=80, ge=1, le=100)
    format: ImageFormat = ImageFormat.WEBP

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        if isinstance(value, str) and not isinstance(value, ImageFormat):
            lowered = value.strip().lower()
            return _FORMAT_ALIASES.get(lowered, lowered)
        return value

    @property
    def content_type(self) -> str:
        return self.format.content_type

    @property
    def needs_resize(self) -> bool:
        return self.width > 0 or self.height > 0

    @property
    def bounding_box(self) -> tuple[int | None, int | None]:
        """(max_width, max_height) with None for unconstrained sides."""
        return (self.width or None, self.height or None)


DEFAULT_OPTIONS = TransformOptions()


def resolve_options(
    options: TransformOptions | Mapping[str, Any] | None = None,
    defaults: TransformOptions | None = None,
    **overrides: Any,
) -> TransformOptions:
    """Merge partial options over defaults and validate the result.

    Missing and None-valued fields fall back to the default, so an omitted
    field always resolves the same as passing the default explicitly.

    Raises InvalidOptionsError on out-of-range values or unknown formats.
    """
    base = (defaults or DEFAULT_OPTIONS).model_dump()

    if isinstance(options, TransformOptions):
        given: dict[str, Any] = options.model_dump()
    else:
        given = dict(options or {})
    given.update(overrides)

    unknown = set(given) - set(base)
    if unknown:
        raise InvalidOptionsError(
            f"Unknown transform option(s): {', '.join(sorted(unknown))}",
        )

    for key, value in given.items():
        if value is not None:
            base[key] = value

    try:
        return TransformOptions(**base)
    except ValidationError as e:
        raise InvalidOptionsError(
            f"Invalid transform options: {e.error_count()} error(s)",
            errors=e.errors(include_url=False),
        ) from e


# ── Results ──


class TransformResult(BaseModel):
    """Encoded image returned to the calling layer."""

    data: bytes
    content_type: str
    cached: bool = False

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class StreamResult:
    """Lazily evaluated transform pipeline; nothing runs until iterated."""

    stream: AsyncIterator[bytes]
    content_type: str
