"""Tests for cache statistics."""

from imgcache.cache.stats import CacheStats


class TestCacheStats:
    def test_defaults(self):
        stats = CacheStats()
        assert stats.hits == 0
        assert stats.write_failures == 0
        assert stats.hit_rate == 0.0

    def test_hit_rate(self):
        stats = CacheStats(hits=3, misses=1)
        assert stats.hit_rate == 0.75

    def test_stale_not_in_hit_rate_denominator(self):
        # stale reads are already counted as misses
        stats = CacheStats(hits=1, misses=1, stale=1)
        assert stats.hit_rate == 0.5
