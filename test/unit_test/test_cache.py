"""
Test Valuation Cache

Tests for quality classification, TTL by quality, LRU eviction, stale
fallback and single-flight loading.
"""

import sys
import threading
import time
from decimal import Decimal
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_tracker.errors import DiscoveryFailed
from lp_tracker.modules import ValuationCache, classify_quality
from lp_tracker.types import CacheQuality, Position, Protocol, Token, TokenLeg

WALLET_A = "0xaAaAaAaaAaAaAaaAaAAAAAAAAaaaAaAaAaaAaaAa"
WALLET_B = "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"
WALLET_C = "0xcCcCCcCCCCcCCcCcccCcCcCCCCCcCcCcCcCCCCcc"


def _position(index: int, priced: bool) -> Position:
    price = Decimal(1) if priced else None
    return Position(
        id=f"v2-{index}",
        protocol=Protocol.V2,
        pool=f"0x{index:040x}",
        token0=TokenLeg(Token(f"0x{index + 100:040x}", "A", 18), amount_raw=10 ** 18, price_usd=price),
        token1=TokenLeg(Token(f"0x{index + 200:040x}", "B", 18), amount_raw=10 ** 18),
    )


def _positions(priced: int, total: int):
    return [_position(i, i < priced) for i in range(total)]


# =============================================================================
# Quality
# =============================================================================

def test_classify_quality():
    print("Testing quality classification...")

    assert classify_quality([]) == CacheQuality.GOOD
    assert classify_quality(_positions(1, 4)) == CacheQuality.PARTIAL
    assert classify_quality(_positions(2, 4)) == CacheQuality.GOOD
    assert classify_quality(_positions(4, 4)) == CacheQuality.GOOD
    assert classify_quality(_positions(0, 1)) == CacheQuality.PARTIAL
    assert classify_quality(_positions(1, 1)) == CacheQuality.GOOD

    print("  quality classification: PASSED")


def test_zero_price_is_unpriced():
    position = _position(0, priced=False)
    zero = position.with_legs(position.token0.with_price(Decimal(0)), position.token1)
    assert classify_quality([zero]) == CacheQuality.PARTIAL


# =============================================================================
# Map operations
# =============================================================================

class TestValuationCache:

    def test_ttl_depends_on_quality(self, clock):
        cache = ValuationCache(good_ttl=1800, partial_ttl=60, clock=clock)

        good = cache.put(WALLET_A, _positions(2, 2))
        partial = cache.put(WALLET_B, _positions(0, 2))

        assert good.quality == CacheQuality.GOOD and good.ttl == 1800
        assert partial.quality == CacheQuality.PARTIAL and partial.ttl == 60

        clock.advance(61)
        assert cache.is_fresh(good)
        assert not cache.is_fresh(partial)

        clock.advance(1800)
        assert not cache.is_fresh(good)

    def test_expired_entries_are_retained(self, clock):
        cache = ValuationCache(clock=clock)
        cache.put(WALLET_A, [])

        clock.advance(10_000)
        entry = cache.get(WALLET_A)
        assert entry is not None
        assert not cache.is_fresh(entry)

    def test_keys_are_case_insensitive(self, clock):
        cache = ValuationCache(clock=clock)
        cache.put(WALLET_A, [])

        assert WALLET_A.lower() in cache
        assert cache.get(WALLET_A.upper().replace("0X", "0x")) is not None

    def test_lru_evicts_least_recently_accessed(self, clock):
        """Eviction follows access order, not insertion order"""
        print("Testing LRU eviction...")

        cache = ValuationCache(max_entries=2, clock=clock)
        cache.put(WALLET_A, [])
        cache.put(WALLET_B, [])

        cache.get(WALLET_A)
        cache.put(WALLET_C, [])

        assert WALLET_A in cache
        assert WALLET_B not in cache
        assert WALLET_C in cache
        assert len(cache) == 2

        print("  LRU eviction: PASSED")

    def test_replace_is_atomic(self, clock):
        cache = ValuationCache(clock=clock)
        cache.put(WALLET_A, _positions(1, 1))
        clock.advance(5)
        entry = cache.put(WALLET_A, _positions(0, 3))

        assert cache.get(WALLET_A) is entry
        assert len(entry.positions) == 3
        assert len(cache) == 1

    def test_invalidate_and_clear(self, clock):
        cache = ValuationCache(clock=clock)
        cache.put(WALLET_A, [])
        cache.put(WALLET_B, [])

        assert cache.invalidate(WALLET_A) is True
        assert cache.invalidate(WALLET_A) is False
        assert WALLET_A not in cache

        cache.clear()
        assert len(cache) == 0

    def test_rejects_empty_capacity(self):
        with pytest.raises(ValueError):
            ValuationCache(max_entries=0)


# =============================================================================
# Read-through
# =============================================================================

class TestGetOrLoad:

    def test_miss_then_hit(self, clock):
        cache = ValuationCache(clock=clock)
        calls = []

        def loader():
            calls.append(1)
            return _positions(1, 1), CacheQuality.GOOD

        first, cached_first = cache.get_or_load(WALLET_A, loader)
        second, cached_second = cache.get_or_load(WALLET_A, loader)

        assert not cached_first
        assert cached_second
        assert second is first
        assert len(calls) == 1

    def test_expired_entry_reloads(self, clock):
        cache = ValuationCache(partial_ttl=60, clock=clock)
        cache.get_or_load(WALLET_A, lambda: ([], CacheQuality.PARTIAL))

        clock.advance(61)
        entry, cached = cache.get_or_load(WALLET_A, lambda: (_positions(1, 1), CacheQuality.GOOD))

        assert not cached
        assert entry.quality == CacheQuality.GOOD

    def test_force_refresh_always_loads(self, clock):
        cache = ValuationCache(clock=clock)
        cache.get_or_load(WALLET_A, lambda: ([], CacheQuality.GOOD))

        entry, cached = cache.get_or_load(
            WALLET_A, lambda: (_positions(1, 1), CacheQuality.GOOD), force_refresh=True
        )
        assert not cached
        assert len(entry.positions) == 1

    def test_failed_refresh_serves_stale(self, clock):
        print("Testing stale fallback...")

        cache = ValuationCache(good_ttl=1800, clock=clock)
        original, _ = cache.get_or_load(WALLET_A, lambda: (_positions(1, 1), CacheQuality.GOOD))
        clock.advance(2000)

        def failing():
            raise DiscoveryFailed(WALLET_A, {"uniswap_v3": "timeout"})

        entry, cached = cache.get_or_load(WALLET_A, failing)

        assert entry is original
        assert cached
        # Stale entry is still retained for the next attempt
        assert cache.get(WALLET_A) is original

        print("  stale fallback: PASSED")

    def test_failed_load_without_stale_raises(self, clock):
        cache = ValuationCache(clock=clock)

        def failing():
            raise DiscoveryFailed(WALLET_A)

        with pytest.raises(DiscoveryFailed):
            cache.get_or_load(WALLET_A, failing)
        assert WALLET_A not in cache

        # A later load is not blocked by the failed one
        entry, cached = cache.get_or_load(WALLET_A, lambda: ([], CacheQuality.GOOD))
        assert not cached

    def test_force_refresh_failure_has_no_fallback(self, clock):
        cache = ValuationCache(clock=clock)
        cache.get_or_load(WALLET_A, lambda: ([], CacheQuality.GOOD))

        def failing():
            raise DiscoveryFailed(WALLET_A)

        with pytest.raises(DiscoveryFailed):
            cache.get_or_load(WALLET_A, failing, force_refresh=True)

    def test_concurrent_misses_share_one_load(self):
        print("Testing single-flight load...")

        cache = ValuationCache()
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_loader():
            calls.append(1)
            started.set()
            release.wait(timeout=5)
            return _positions(1, 1), CacheQuality.GOOD

        results = []

        def query():
            results.append(cache.get_or_load(WALLET_A, slow_loader))

        leader = threading.Thread(target=query)
        leader.start()
        assert started.wait(timeout=5)

        followers = [threading.Thread(target=query) for _ in range(3)]
        for thread in followers:
            thread.start()
        # Give the followers time to reach the in-flight future
        time.sleep(0.1)
        release.set()

        for thread in [leader] + followers:
            thread.join(timeout=5)

        assert len(calls) == 1
        assert len(results) == 4
        entries = {id(entry) for entry, _ in results}
        assert len(entries) == 1

        print("  single-flight load: PASSED")

    def test_distinct_wallets_load_independently(self, clock):
        cache = ValuationCache(clock=clock)

        a, _ = cache.get_or_load(WALLET_A, lambda: (_positions(1, 1), CacheQuality.GOOD))
        b, _ = cache.get_or_load(WALLET_B, lambda: ([], CacheQuality.GOOD))

        assert a is not b
        assert len(cache) == 2
