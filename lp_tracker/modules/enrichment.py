"""
Metadata & Pricing Enrichment

Resolves symbol/decimals and a USD unit price for every token referenced by
a batch of positions, then returns new Position objects carrying them.
A token without a price contributes 0 USD; that is a quality signal for the
cache, not an error.
"""

import logging
import threading
from concurrent.futures import Executor
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from ..errors import DecodeError, LpTrackerError, UpstreamUnavailable
from ..infra import ChainReader, GeckoTerminalPriceFeed, submit_in_context
from ..protocols.uniswap.constants import SYMBOL, SYMBOL_BYTES32, DECIMALS
from ..types import Position, Token, UNKNOWN_SYMBOL, get_known_token, pricing_address

logger = logging.getLogger(__name__)


class TokenMetadataResolver:
    """
    ERC20 symbol/decimals lookup with a registry fast path

    Successful lookups are memoised for the resolver's lifetime (token
    metadata does not change). Failed lookups fall back to ("???", 18)
    and are retried on the next pass.
    """

    def __init__(self, chain: ChainReader):
        self._chain = chain
        self._tokens: Dict[str, Token] = {}
        self._lock = threading.Lock()

    def _read_symbol(self, address: str) -> str:
        try:
            (symbol,) = self._chain.read(address, SYMBOL)
        except DecodeError:
            # Some older tokens (MKR style) return bytes32
            (raw,) = self._chain.read(address, SYMBOL_BYTES32)
            symbol = raw.rstrip(b"\x00").decode("utf-8", errors="replace")
        return symbol.strip() or UNKNOWN_SYMBOL

    def resolve(self, address: str) -> Token:
        address = address.lower()

        known = get_known_token(address)
        if known is not None:
            return known

        with self._lock:
            cached = self._tokens.get(address)
        if cached is not None:
            return cached

        try:
            symbol = self._read_symbol(address)
            (decimals,) = self._chain.read(address, DECIMALS)
        except LpTrackerError as e:
            logger.warning(f"Token metadata unavailable for {address}: {e}")
            return Token(address)

        token = Token(address, symbol, decimals)
        with self._lock:
            self._tokens[address] = token
        return token


class PositionEnricher:
    """
    Fills token metadata and USD prices into assembled positions

    Usage:
        enricher = PositionEnricher(resolver, price_feed, executor)
        positions = enricher.enrich(positions)
    """

    def __init__(
        self,
        resolver: TokenMetadataResolver,
        price_feed: Optional[GeckoTerminalPriceFeed],
        executor: Executor,
    ):
        self._resolver = resolver
        self._price_feed = price_feed
        self._executor = executor

    def _resolve_prices(self, addresses: Sequence[str]) -> Dict[str, Decimal]:
        if self._price_feed is None:
            return {}
        try:
            return self._price_feed.get_prices(pricing_address(a) for a in addresses)
        except UpstreamUnavailable as e:
            logger.warning(f"Pricing unavailable, positions will be unpriced: {e}")
            return {}

    def enrich(self, positions: Sequence[Position]) -> List[Position]:
        if not positions:
            return []

        addresses = list(dict.fromkeys(
            leg.token.address for position in positions for leg in position.legs
        ))

        metadata_futures = {
            address: submit_in_context(self._executor, self._resolver.resolve, address)
            for address in addresses
        }
        # Prices on the calling thread; the feed fans its batches out itself
        prices = self._resolve_prices(addresses)

        tokens: Dict[str, Token] = {}
        for address, future in metadata_futures.items():
            try:
                tokens[address] = future.result()
            except Exception as e:
                logger.error(f"Token metadata lookup crashed for {address}: {e}")
                tokens[address] = Token(address)

        enriched = []
        for position in positions:
            legs = [
                leg.with_token(tokens[leg.token.address]).with_price(
                    prices.get(pricing_address(leg.token.address))
                )
                for leg in position.legs
            ]
            enriched.append(position.with_legs(*legs))

        priced = sum(1 for a in addresses if pricing_address(a) in prices)
        logger.debug(f"Enriched {len(enriched)} positions ({priced}/{len(addresses)} tokens priced)")
        return enriched
