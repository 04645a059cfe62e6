"""
PositionTracker - Unified entry point for LP position valuation

Wires the chain reader, NFT index, price feed, protocol adapters and the
valuation cache from configuration, and exposes the positions query.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Union

from .config import Config, config as global_config
from .infra import ChainReader, AlchemyNftIndex, GeckoTerminalPriceFeed, RetryPolicy
from .protocols import ProtocolAdapter, ProtocolRegistry
from .modules import (
    PositionsModule,
    PositionEnricher,
    TokenMetadataResolver,
    ValuationCache,
)
from .types import PositionsResult


class PositionTracker:
    """
    Unified LP position tracker client

    Usage:
        with PositionTracker() as tracker:
            result = tracker.get_positions("0xabc...")
            for position in result.positions:
                print(position.id, position.value_usd, position.in_range)

        # Explicit endpoints
        tracker = PositionTracker(rpc_url=[
            "https://primary-rpc.example.com",
            "https://mainnet.base.org",
        ])
    """

    def __init__(
        self,
        rpc_url: Optional[Union[str, List[str]]] = None,
        config: Optional[Config] = None,
        chain: Optional[ChainReader] = None,
        nft_index: Optional[AlchemyNftIndex] = None,
        price_feed: Optional[GeckoTerminalPriceFeed] = None,
        cache: Optional[ValuationCache] = None,
        adapters: Optional[List[ProtocolAdapter]] = None,
    ):
        """
        Initialize PositionTracker

        Args:
            rpc_url: Endpoint URL or list of URLs (defaults from config)
            config: Configuration (global config if None)
            chain: Pre-built chain reader
            nft_index: Pre-built NFT index
            price_feed: Pre-built price feed
            cache: Shared valuation cache (one per process)
            adapters: Pre-built adapters (registry defaults if None)
        """
        self._config = config or global_config
        self._config.validate()

        retry = RetryPolicy.from_config(self._config.rpc)

        # Leaf remote reads; adapter passes get their own executor in PositionsModule
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.rpc.max_workers,
            thread_name_prefix="lp-tracker-io",
        )

        self._chain = chain if chain is not None else ChainReader(
            rpc_url or self._config.rpc_endpoints(),
            timeout_seconds=self._config.rpc.timeout_seconds,
            retry_policy=retry,
        )

        indexer = self._config.indexer
        self._nft_index = nft_index if nft_index is not None else AlchemyNftIndex(
            api_key=indexer.api_key,
            base_url=indexer.base_url,
            timeout=indexer.timeout,
            max_pages=indexer.max_pages,
            retry_policy=retry,
        )

        pricing = self._config.pricing
        self._price_feed = price_feed if price_feed is not None else GeckoTerminalPriceFeed(
            base_url=pricing.base_url,
            network=pricing.network,
            timeout=pricing.timeout,
            batch_size=pricing.batch_size,
            cache_ttl=pricing.cache_ttl,
            retry_policy=retry,
            executor=self._executor,
        )

        # ValuationCache defines __len__, so an empty shared cache is falsy
        self._cache = cache if cache is not None else ValuationCache(
            good_ttl=self._config.cache.good_ttl,
            partial_ttl=self._config.cache.partial_ttl,
            max_entries=self._config.cache.max_entries,
        )

        self._adapters = adapters if adapters is not None else ProtocolRegistry.create_all(
            self._chain,
            self._executor,
            nft_index=self._nft_index,
            extra_pools=self._config.protocols.extra_v2_pools,
        )

        # Lazy-loaded modules
        self._positions: Optional[PositionsModule] = None

    @property
    def chain(self) -> ChainReader:
        """Access to chain reader"""
        return self._chain

    @property
    def cache(self) -> ValuationCache:
        return self._cache

    @property
    def adapters(self) -> List[ProtocolAdapter]:
        return list(self._adapters)

    @property
    def positions(self) -> PositionsModule:
        """
        Positions module

        Provides:
        - get_positions(wallet, force_refresh): cached valuation query
        - discover(wallet): uncached discovery pass
        - invalidate(wallet): drop a wallet's cache entry
        """
        if self._positions is None:
            enricher = PositionEnricher(
                TokenMetadataResolver(self._chain),
                self._price_feed,
                self._executor,
            )
            self._positions = PositionsModule(self._adapters, enricher, self._cache)
        return self._positions

    def get_positions(self, wallet: str, force_refresh: bool = False) -> PositionsResult:
        """Positions held by a wallet (see PositionsModule.get_positions)"""
        return self.positions.get_positions(wallet, force_refresh=force_refresh)

    def invalidate(self, wallet: str) -> bool:
        return self.positions.invalidate(wallet)

    def close(self):
        """Close client connections and release resources"""
        if self._positions is not None:
            self._positions.close()
        self._executor.shutdown(wait=False)
        self._price_feed.close()
        self._nft_index.close()
        self._chain.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"PositionTracker(endpoint={self._chain.endpoint}, protocols={[a.protocol.value for a in self._adapters]})"
