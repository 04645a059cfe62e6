"""
Result type definitions
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .position import Position


class CacheQuality(Enum):
    """How completely a result set was priced"""
    GOOD = "good"        # at least half of the positions carry a price
    PARTIAL = "partial"  # pricing missing for most positions, or a protocol failed


@dataclass(frozen=True)
class CacheEntry:
    """
    Per-wallet cached result set

    Attributes:
        positions: Positions ordered by descending USD value
        quality: Pricing quality of the set
        captured_at: Epoch seconds at which the set was stored
        ttl: Seconds the entry stays fresh (depends on quality)
    """
    positions: Tuple[Position, ...]
    quality: CacheQuality
    captured_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.captured_at + self.ttl

    def is_fresh(self, now: float) -> bool:
        return now <= self.expires_at


@dataclass(frozen=True)
class PositionsResult:
    """
    Answer to a positions query

    Attributes:
        positions: Positions ordered by descending USD value
        cached: True when served from cache without a new discovery pass
        last_updated: Epoch seconds of the data, None when nothing could be fetched
        quality: Pricing quality, None when nothing could be fetched
    """
    positions: Tuple[Position, ...]
    cached: bool
    last_updated: Optional[float]
    quality: Optional[CacheQuality] = None

    @classmethod
    def from_entry(cls, entry: CacheEntry, cached: bool) -> "PositionsResult":
        return cls(
            positions=entry.positions,
            cached=cached,
            last_updated=entry.captured_at,
            quality=entry.quality,
        )

    @classmethod
    def empty(cls) -> "PositionsResult":
        return cls(positions=(), cached=False, last_updated=None)

    def __len__(self) -> int:
        return len(self.positions)

    def to_dict(self) -> dict:
        return {
            "positions": [p.to_dict() for p in self.positions],
            "cached": self.cached,
            "lastUpdated": self.last_updated,
            "quality": self.quality.value if self.quality else None,
        }
