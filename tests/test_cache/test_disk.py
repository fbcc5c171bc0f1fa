"""Tests for the filesystem image cache."""

import os

from imgcache.cache.disk import DEFAULT_CACHE_PATH, DiskImageCache
from imgcache.cache.keys import derive_key

OPTS = {"width": 200, "quality": 75, "format": "webp"}


def _age(path, seconds: float) -> None:
    """Shift a file's mtime into the past."""
    st = path.stat()
    delta = int(seconds * 1e9)
    os.utime(path, ns=(st.st_atime_ns - delta, st.st_mtime_ns - delta))


class TestDiskImageCache:
    def test_default_root(self):
        assert DiskImageCache().root == DEFAULT_CACHE_PATH

    def test_root_created_lazily(self, cache_dir):
        DiskImageCache(cache_dir)
        assert not cache_dir.exists()

    async def test_lookup_miss_when_absent(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        assert await cache.lookup(source_image, OPTS) is None
        assert cache.stats.misses == 1

    async def test_store_then_lookup(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        assert await cache.store(source_image, OPTS, b"encoded") is True
        assert await cache.lookup(source_image, OPTS) == b"encoded"
        assert cache.stats.hits == 1

    async def test_entry_path_uses_derived_key(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"x")
        expected = cache_dir / derive_key(source_image, OPTS)
        assert cache.entry_path(source_image, OPTS) == expected
        assert expected.read_bytes() == b"x"

    async def test_other_options_miss(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"x")
        assert await cache.lookup(source_image, {**OPTS, "quality": 76}) is None

    async def test_store_overwrites(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"first")
        await cache.store(source_image, OPTS, b"second")
        assert await cache.lookup(source_image, OPTS) == b"second"
        assert cache.entry_count == 1

    async def test_stale_entry_is_miss_and_kept(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"old")
        entry = cache.entry_path(source_image, OPTS)
        _age(entry, 60)

        assert await cache.lookup(source_image, OPTS) is None
        assert cache.stats.stale == 1
        assert cache.stats.misses == 1
        assert cache.stats.hits == 0
        assert entry.exists()

    async def test_stale_counted_per_lookup(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"old")
        _age(cache.entry_path(source_image, OPTS), 60)

        await cache.lookup(source_image, OPTS)
        await cache.lookup(source_image, OPTS)
        await cache.lookup(source_image, {"format": "png"})
        assert cache.stats.stale == 2
        assert cache.stats.misses == 3

    async def test_entry_mtime_pinned_to_source_mtime(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        read_mtime = source_image.stat().st_mtime_ns
        await cache.store(source_image, OPTS, b"data", source_mtime_ns=read_mtime)

        entry = cache.entry_path(source_image, OPTS)
        assert entry.stat().st_mtime_ns == read_mtime
        assert await cache.lookup(source_image, OPTS) == b"data"

    async def test_source_modified_after_read_is_stale(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        read_mtime = source_image.stat().st_mtime_ns
        # The source is rewritten after the read but before the entry lands.
        _age(source_image, -60)
        await cache.store(source_image, OPTS, b"old", source_mtime_ns=read_mtime)

        assert await cache.lookup(source_image, OPTS) is None
        assert cache.stats.stale == 1

    async def test_equal_mtime_is_fresh(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"data")
        entry = cache.entry_path(source_image, OPTS)
        mtime = source_image.stat().st_mtime_ns
        os.utime(entry, ns=(mtime, mtime))
        assert await cache.lookup(source_image, OPTS) == b"data"

    async def test_missing_source_degrades_to_miss(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"data")
        source_image.unlink()
        assert await cache.lookup(source_image, OPTS) is None

    async def test_store_failure_is_swallowed(self, tmp_path, source_image):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("occupied")
        cache = DiskImageCache(blocker)

        assert await cache.store(source_image, OPTS, b"data") is False
        assert cache.stats.write_failures == 1
        assert await cache.lookup(source_image, OPTS) is None

    async def test_no_temp_files_left(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"data")
        assert [p.name for p in cache_dir.iterdir()] == [derive_key(source_image, OPTS)]

    async def test_size_and_count(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        assert cache.entry_count == 0
        assert cache.size_mb == 0.0
        await cache.store(source_image, OPTS, b"x" * 2048)
        await cache.store(source_image, {"format": "png"}, b"y" * 2048)
        assert cache.entry_count == 2
        assert cache.size_mb > 0

    async def test_temp_files_ignored_by_scan(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"x")
        (cache_dir / ".tmp-leftover").write_bytes(b"partial")
        assert cache.entry_count == 1

    async def test_clear(self, cache_dir, source_image):
        cache = DiskImageCache(cache_dir)
        await cache.store(source_image, OPTS, b"x")
        await cache.store(source_image, {"format": "png"}, b"y")
        (cache_dir / ".tmp-leftover").write_bytes(b"partial")

        assert cache.clear() == 3
        assert cache.entry_count == 0

    def test_clear_missing_root(self, cache_dir):
        assert DiskImageCache(cache_dir).clear() == 0
