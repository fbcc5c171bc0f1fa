"""Filesystem image cache with mtime-based staleness."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import tempfile
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from imgcache.cache.keys import derive_key
from imgcache.cache.stats import CacheStats
from imgcache.types import TransformOptions

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path("./data/cache/images")

_TMP_PREFIX = ".tmp-"
# Returned by _read_fresh for an entry older than its source.
_STALE = object()


class DiskImageCache:
    """One file per derived key under a single cache root.

    The root is created lazily on first write. Entries are never deleted by
    lookups or writes; a stale entry is simply overwritten on the next store.
    Every filesystem error is absorbed: reads degrade to a miss and writes
    report False.
    """

    def __init__(
        self,
        cache_path: str | Path | None = None,
        defaults: TransformOptions | None = None,
        stats: CacheStats | None = None,
    ) -> None:
        self._root = Path(cache_path) if cache_path is not None else DEFAULT_CACHE_PATH
        self._defaults = defaults
        self._stats = stats if stats is not None else CacheStats()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def key_for(
        self,
        source_path: str | Path,
        options: TransformOptions | Mapping[str, Any] | None = None,
    ) -> str:
        return derive_key(source_path, options, defaults=self._defaults)

    def entry_path(
        self,
        source_path: str | Path,
        options: TransformOptions | Mapping[str, Any] | None = None,
    ) -> Path:
        return self._root / self.key_for(source_path, options)

    async def lookup(
        self,
        source_path: str | Path,
        options: TransformOptions | Mapping[str, Any] | None = None,
    ) -> bytes | None:
        """Return cached bytes if a fresh entry exists, else None."""
        entry = self.entry_path(source_path, options)
        try:
            data = await asyncio.to_thread(self._read_fresh, Path(source_path), entry)
        except OSError as e:
            logger.debug("Cache read failed for %s: %s", entry.name, e)
            data = None

        if data is _STALE:
            self._stats.stale += 1
            data = None
        if data is None:
            self._stats.misses += 1
        else:
            self._stats.hits += 1
        return data

    async def store(
        self,
        source_path: str | Path,
        options: TransformOptions | Mapping[str, Any] | None,
        data: bytes,
        source_mtime_ns: int | None = None,
    ) -> bool:
        """Write an entry, replacing any existing one. Never raises on I/O errors.

        ``source_mtime_ns`` pins the entry mtime to the source mtime seen when the
        source was read, so a source changed in the meantime reads as stale.
        """
        entry = self.entry_path(source_path, options)
        try:
            await asyncio.to_thread(self._write_atomic, entry, data, source_mtime_ns)
        except OSError as e:
            self._stats.write_failures += 1
            logger.warning("Failed to cache image %s: %s", entry.name, e)
            return False
        logger.debug("Cached %s (%d bytes)", entry.name, len(data))
        return True

    # ── Operator helpers (scan / clear) ──

    @property
    def entry_count(self) -> int:
        return sum(1 for _ in self._iter_entries())

    @property
    def size_mb(self) -> float:
        total = 0
        for path in self._iter_entries():
            with contextlib.suppress(OSError):
                total += path.stat().st_size
        return total / (1024 * 1024)

    def clear(self) -> int:
        """Delete every entry under the root. Returns the number removed."""
        removed = 0
        for path in list(self._iter_entries(include_tmp=True)):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
        return removed

    # ── Internals (run in worker threads) ──

    def _read_fresh(self, source: Path, entry: Path) -> bytes | object | None:
        try:
            entry_stat = entry.stat()
        except FileNotFoundError:
            return None

        source_stat = source.stat()
        if entry_stat.st_mtime_ns < source_stat.st_mtime_ns:
            logger.debug("Stale cache entry %s (source modified)", entry.name)
            return _STALE

        return entry.read_bytes()

    def _write_atomic(self, entry: Path, data: bytes, mtime_ns: int | None = None) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=_TMP_PREFIX)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, entry)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
        if mtime_ns is not None:
            os.utime(entry, ns=(mtime_ns, mtime_ns))

    def _iter_entries(self, include_tmp: bool = False) -> Iterator[Path]:
        if not self._root.is_dir():
            return
        for path in self._root.iterdir():
            if not path.is_file():
                continue
            if path.name.startswith(_TMP_PREFIX) and not include_tmp:
                continue
            yield path
