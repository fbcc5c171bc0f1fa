"""Cache statistics model."""

from __future__ import annotations

from pydantic import BaseModel


class CacheStats(BaseModel):
    """Aggregate cache statistics.

    Counters are per-process; ``entries`` and ``size_mb`` come from scanning
    the cache directory.
    """

    entries: int = 0
    size_mb: float = 0.0
    hits: int = 0
    misses: int = 0
    stale: int = 0
    write_failures: int = 0
    codec_runs: int = 0
    coalesced: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0
