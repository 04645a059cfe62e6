"""
Valuation cache

Per-wallet result sets tagged with a pricing quality. GOOD sets live for a
long TTL; PARTIAL sets expire quickly so a later pass can recover prices.
Expired entries are retained (stale) until replaced, invalidated or
evicted, and serve as a fallback when a refresh fails.

Lifecycle per wallet key:
    absent -> fresh -> stale-but-retained -> absent
"""

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future
from typing import Callable, Dict, Optional, Sequence, Tuple

from ..types import CacheEntry, CacheQuality, Position

logger = logging.getLogger(__name__)

Loader = Callable[[], Tuple[Sequence[Position], CacheQuality]]

# A set is GOOD when at least this share of positions carries a price
GOOD_PRICED_RATIO = 0.5


def classify_quality(positions: Sequence[Position]) -> CacheQuality:
    """
    GOOD when at least half of the positions have a nonzero unit price on
    some leg. An empty set is GOOD: finding nothing is not a degraded state.
    """
    if not positions:
        return CacheQuality.GOOD
    priced = sum(1 for position in positions if position.is_priced)
    if priced >= GOOD_PRICED_RATIO * len(positions):
        return CacheQuality.GOOD
    return CacheQuality.PARTIAL


class ValuationCache:
    """
    Bounded LRU map of wallet -> CacheEntry with quality-dependent TTL

    All map access goes through one lock. Concurrent misses for the same
    wallet share a single in-flight load.

    Usage:
        cache = ValuationCache(good_ttl=1800, partial_ttl=60, max_entries=500)
        entry, cached = cache.get_or_load(wallet, loader)
    """

    def __init__(
        self,
        good_ttl: float = 1800.0,
        partial_ttl: float = 60.0,
        max_entries: int = 500,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._ttls = {
            CacheQuality.GOOD: good_ttl,
            CacheQuality.PARTIAL: partial_ttl,
        }
        self._max_entries = max_entries
        self._clock = clock

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._inflight: Dict[str, Future] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(wallet: str) -> str:
        return wallet.lower()

    def ttl_for(self, quality: CacheQuality) -> float:
        return self._ttls[quality]

    # =========================================================================
    # Map operations
    # =========================================================================

    def get(self, wallet: str) -> Optional[CacheEntry]:
        """Return the entry (fresh or stale) and mark it recently used"""
        key = self._key(wallet)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
            return entry

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.is_fresh(self._clock())

    def put(
        self,
        wallet: str,
        positions: Sequence[Position],
        quality: Optional[CacheQuality] = None,
    ) -> CacheEntry:
        """
        Store a result set, replacing any previous one atomically

        Args:
            wallet: Wallet address (any case)
            positions: Ordered positions
            quality: Explicit quality; classified from positions when omitted
        """
        if quality is None:
            quality = classify_quality(positions)
        with self._lock:
            return self._put_locked(self._key(wallet), positions, quality)

    def _put_locked(
        self,
        key: str,
        positions: Sequence[Position],
        quality: CacheQuality,
    ) -> CacheEntry:
        entry = CacheEntry(
            positions=tuple(positions),
            quality=quality,
            captured_at=self._clock(),
            ttl=self._ttls[quality],
        )
        self._entries[key] = entry
        self._entries.move_to_end(key)

        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Cache full, evicted least recently used wallet {evicted}")
        return entry

    def invalidate(self, wallet: str) -> bool:
        """Drop the wallet's entry. Returns True if one existed."""
        with self._lock:
            return self._entries.pop(self._key(wallet), None) is not None

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, wallet: str) -> bool:
        with self._lock:
            return self._key(wallet) in self._entries

    # =========================================================================
    # Read-through
    # =========================================================================

    def get_or_load(
        self,
        wallet: str,
        loader: Loader,
        force_refresh: bool = False,
    ) -> Tuple[CacheEntry, bool]:
        """
        Serve a fresh entry or run the loader (once per wallet at a time)

        The caller blocks while a refresh runs. If the loader fails and a
        stale entry is retained, the stale entry is returned instead.

        Args:
            wallet: Wallet address
            loader: Produces (positions, quality) for a new entry
            force_refresh: Invalidate first and always load

        Returns:
            (entry, cached) where cached is True when no new load
            produced the entry

        Raises:
            Whatever the loader raised, when no stale entry exists
        """
        key = self._key(wallet)

        with self._lock:
            if force_refresh:
                self._entries.pop(key, None)

            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
                if entry.is_fresh(self._clock()):
                    return entry, True

            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future

        if leader:
            self._run_load(key, loader, future)

        try:
            return future.result(), False
        except Exception as e:
            with self._lock:
                stale = self._entries.get(key)
            if stale is None:
                raise
            logger.warning(
                f"Refresh failed for {key}, serving stale entry "
                f"captured at {stale.captured_at:.0f}: {e}"
            )
            return stale, True

    def _run_load(self, key: str, loader: Loader, future: Future):
        try:
            positions, quality = loader()
        except BaseException as e:
            with self._lock:
                self._inflight.pop(key, None)
            future.set_exception(e)
            if not isinstance(e, Exception):
                raise
            return

        with self._lock:
            entry = self._put_locked(key, positions, quality)
            self._inflight.pop(key, None)
        future.set_result(entry)
