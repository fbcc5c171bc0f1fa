"""Image codec: decode, bounded resize and encode, backed by Pillow."""

from __future__ import annotations

import io
import logging
from typing import Any, Protocol

from PIL import Image, ImageFile, UnidentifiedImageError

from imgcache.errors.exceptions import CodecError
from imgcache.types import ImageFormat

logger = logging.getLogger(__name__)

_PIL_FORMATS: dict[ImageFormat, str] = {
    ImageFormat.WEBP: "WEBP",
    ImageFormat.JPEG: "JPEG",
    ImageFormat.PNG: "PNG",
}

# Modes JPEG can store directly; everything else is flattened to RGB.
_JPEG_MODES = {"RGB", "L", "CMYK"}
# Modes the PNG writer accepts; CMYK, YCbCr and friends become RGB.
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}

_PIL_ERRORS = (OSError, ValueError, UnidentifiedImageError, Image.DecompressionBombError)


class IncrementalDecoder(Protocol):
    def feed(self, data: bytes) -> None: ...

    def close(self) -> Image.Image: ...


class ImageCodec(Protocol):
    """Collaborator contract used by the optimizer."""

    def decode(self, data: bytes) -> Image.Image: ...

    def decoder(self) -> IncrementalDecoder: ...

    def resize(
        self, image: Image.Image, max_width: int | None, max_height: int | None
    ) -> Image.Image: ...

    def encode(self, image: Image.Image, fmt: ImageFormat, quality: int) -> bytes: ...


class _PillowDecoder:
    """Wraps ImageFile.Parser so failures surface as CodecError."""

    def __init__(self) -> None:
        self._parser = ImageFile.Parser()

    def feed(self, data: bytes) -> None:
        try:
            self._parser.feed(data)
        except _PIL_ERRORS as e:
            raise CodecError(f"Cannot decode image stream: {e}", original=e) from e

    def close(self) -> Image.Image:
        try:
            return self._parser.close()
        except _PIL_ERRORS as e:
            raise CodecError(f"Cannot decode image stream: {e}", original=e) from e


class PillowCodec:
    """Pillow implementation of ImageCodec."""

    def __init__(self, resample: Image.Resampling = Image.Resampling.LANCZOS) -> None:
        self._resample = resample

    def decode(self, data: bytes) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except _PIL_ERRORS as e:
            raise CodecError(f"Cannot decode image: {e}", original=e) from e
        return img

    def decoder(self) -> IncrementalDecoder:
        return _PillowDecoder()

    def resize(
        self, image: Image.Image, max_width: int | None, max_height: int | None
    ) -> Image.Image:
        """Fit inside the box, keeping aspect ratio. Never enlarges."""
        if not max_width and not max_height:
            return image
        box = (max_width or image.width, max_height or image.height)
        if image.width <= box[0] and image.height <= box[1]:
            return image

        resized = image.copy()
        try:
            resized.thumbnail(box, self._resample)
        except _PIL_ERRORS as e:
            raise CodecError(f"Cannot resize image: {e}", original=e) from e
        logger.debug("Resized %dx%d -> %dx%d", image.width, image.height, *resized.size)
        return resized

    def encode(self, image: Image.Image, fmt: ImageFormat, quality: int) -> bytes:
        buf = io.BytesIO()
        try:
            image = _prepare_mode(image, fmt)
            image.save(buf, format=_PIL_FORMATS[fmt], **_save_params(fmt, quality))
        except _PIL_ERRORS as e:
            raise CodecError(f"Cannot encode image as {fmt.value}: {e}", original=e) from e
        return buf.getvalue()


def _prepare_mode(image: Image.Image, fmt: ImageFormat) -> Image.Image:
    if fmt is ImageFormat.JPEG and image.mode not in _JPEG_MODES:
        return image.convert("RGB")
    if fmt is ImageFormat.PNG and image.mode not in _PNG_MODES:
        return image.convert("RGB")
    if fmt is ImageFormat.WEBP:
        # Palette and grey images carry transparency in info, not in a band.
        has_alpha = "A" in image.getbands() or "transparency" in image.info
        if has_alpha and image.mode != "RGBA":
            return image.convert("RGBA")
        if not has_alpha and image.mode != "RGB":
            return image.convert("RGB")
    return image


def _save_params(fmt: ImageFormat, quality: int) -> dict[str, Any]:
    if fmt is ImageFormat.PNG:
        # PNG is lossless; quality only participates in the cache key.
        return {"optimize": True}
    return {"quality": quality}
