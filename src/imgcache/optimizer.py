"""Transform orchestration: cache lookup, codec pipeline, detached write-back."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from imgcache.cache.disk import DiskImageCache
from imgcache.cache.inflight import InFlightRegistry
from imgcache.cache.stats import CacheStats
from imgcache.codec import ImageCodec, IncrementalDecoder, PillowCodec
from imgcache.errors.exceptions import CodecError, SourceUnavailableError
from imgcache.types import (
    DEFAULT_OPTIONS,
    StreamResult,
    TransformOptions,
    TransformResult,
    resolve_options,
)

if TYPE_CHECKING:
    from PIL import Image

    from imgcache.config.schema import ImageCacheConfig

logger = logging.getLogger(__name__)

DEFAULT_STREAM_CHUNK_SIZE = 64 * 1024


class ImageOptimizer:
    """Serves resized/re-encoded images, memoized on disk.

    Lookup → hit: return stored bytes. Miss: read source, decode, resize
    (shrink only), encode, start a detached write-back and return the fresh
    bytes without waiting for the write.
    """

    def __init__(
        self,
        cache_path: str | Path | None = None,
        defaults: TransformOptions | None = None,
        codec: ImageCodec | None = None,
        coalesce: bool = True,
        stream_chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE,
    ) -> None:
        self._defaults = defaults or DEFAULT_OPTIONS
        self._stats = CacheStats()
        self._cache = DiskImageCache(cache_path, defaults=self._defaults, stats=self._stats)
        self._codec: ImageCodec = codec or PillowCodec()
        self._inflight: InFlightRegistry[bytes] | None = InFlightRegistry() if coalesce else None
        self._chunk_size = stream_chunk_size
        self._pending_writes: set[asyncio.Task[bool]] = set()

    @classmethod
    def from_config(
        cls, config: ImageCacheConfig, codec: ImageCodec | None = None
    ) -> ImageOptimizer:
        return cls(
            cache_path=config.cache_path,
            defaults=config.default_options(),
            codec=codec,
            coalesce=not config.coalesce_disabled,
            stream_chunk_size=config.stream_chunk_size,
        )

    @property
    def cache(self) -> DiskImageCache:
        return self._cache

    @property
    def defaults(self) -> TransformOptions:
        return self._defaults

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    def resolve(
        self, options: TransformOptions | Mapping[str, Any] | None = None, **overrides: Any
    ) -> TransformOptions:
        return resolve_options(options, defaults=self._defaults, **overrides)

    async def get_transformed(
        self,
        source_path: str | Path,
        options: TransformOptions | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> TransformResult:
        """Return the transformed image, from cache when a fresh entry exists.

        Raises CodecError (or SourceUnavailableError) when the source cannot be
        read or converted. Cache failures never propagate.
        """
        opts = self.resolve(options, **overrides)

        cached = await self._cache.lookup(source_path, opts)
        if cached is not None:
            return TransformResult(data=cached, content_type=opts.content_type, cached=True)

        if self._inflight is None:
            data = await self._compute_and_store(source_path, opts)
        else:
            key = self._cache.key_for(source_path, opts)
            data = await self._inflight.run(
                key, lambda: self._compute_and_store(source_path, opts)
            )

        return TransformResult(data=data, content_type=opts.content_type)

    def open_transformed_stream(
        self,
        source_path: str | Path,
        options: TransformOptions | Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> StreamResult:
        """Pipeline form for large sources. Bypasses the cache entirely.

        Options are validated immediately; the source is not touched until
        the returned stream is iterated.
        """
        opts = self.resolve(options, **overrides)
        return StreamResult(
            stream=self._stream(Path(source_path), opts),
            content_type=opts.content_type,
        )

    def stats(self) -> CacheStats:
        """Snapshot of counters plus a scan of the cache directory."""
        return self._stats.model_copy(update={
            "entries": self._cache.entry_count,
            "size_mb": self._cache.size_mb,
            "coalesced": self._inflight.coalesced if self._inflight else 0,
        })

    async def drain(self) -> None:
        """Wait for every detached write-back started so far."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()

    # ── Buffered path ──

    async def _compute_and_store(self, source_path: str | Path, opts: TransformOptions) -> bytes:
        data, source_mtime_ns = await self._transform(Path(source_path), opts)
        self._schedule_store(source_path, opts, data, source_mtime_ns)
        return data

    async def _transform(self, source: Path, opts: TransformOptions) -> tuple[bytes, int]:
        try:
            source_mtime_ns, raw = await asyncio.to_thread(_read_source, source)
        except OSError as e:
            raise SourceUnavailableError(
                f"Cannot read source image {source}: {e}", source_path=source, original=e
            ) from e

        self._stats.codec_runs += 1
        try:
            image = await asyncio.to_thread(self._codec.decode, raw)
            data = await asyncio.to_thread(self._resize_and_encode, image, opts)
        except CodecError as e:
            if e.source_path is None:
                e.source_path = source
            raise
        return data, source_mtime_ns

    def _resize_and_encode(self, image: Image.Image, opts: TransformOptions) -> bytes:
        if opts.needs_resize:
            image = self._codec.resize(image, *opts.bounding_box)
        return self._codec.encode(image, opts.format, opts.quality)

    # ── Detached write-back ──

    def _schedule_store(
        self,
        source_path: str | Path,
        opts: TransformOptions,
        data: bytes,
        source_mtime_ns: int | None = None,
    ) -> None:
        task = asyncio.create_task(
            self._cache.store(source_path, opts, data, source_mtime_ns=source_mtime_ns)
        )
        self._pending_writes.add(task)
        task.add_done_callback(self._on_store_done)

    def _on_store_done(self, task: asyncio.Task[bool]) -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Detached cache write failed: %s", exc)

    # ── Streaming path ──

    async def _stream(self, source: Path, opts: TransformOptions) -> AsyncIterator[bytes]:
        decoder = self._codec.decoder()
        self._stats.codec_runs += 1
        try:
            await self._feed_source(source, decoder)
            image = await asyncio.to_thread(decoder.close)
            data = await asyncio.to_thread(self._resize_and_encode, image, opts)
        except CodecError as e:
            if e.source_path is None:
                e.source_path = source
            raise

        view = memoryview(data)
        for offset in range(0, len(view), self._chunk_size):
            yield bytes(view[offset:offset + self._chunk_size])

    async def _feed_source(self, source: Path, decoder: IncrementalDecoder) -> None:
        try:
            f = await asyncio.to_thread(source.open, "rb")
        except OSError as e:
            raise SourceUnavailableError(
                f"Cannot open source image {source}: {e}", source_path=source, original=e
            ) from e

        try:
            while True:
                try:
                    chunk = await asyncio.to_thread(f.read, self._chunk_size)
                except OSError as e:
                    raise SourceUnavailableError(
                        f"Cannot read source image {source}: {e}", source_path=source, original=e
                    ) from e
                if not chunk:
                    break
                await asyncio.to_thread(decoder.feed, chunk)
        finally:
            f.close()


def _read_source(source: Path) -> tuple[int, bytes]:
    # Stat before reading: a write racing the read leaves the entry older than the source.
    mtime_ns = source.stat().st_mtime_ns
    return mtime_ns, source.read_bytes()
