"""
Infrastructure layer for LP Tracker

Provides:
- ChainReader: read-only JSON-RPC client with endpoint failover
- AlchemyNftIndex: owner -> token id lookup for non-enumerable NFTs
- GeckoTerminalPriceFeed: batched USD token prices
- RetryPolicy: exponential backoff shared by every remote call
"""

from .retry import (
    RetryPolicy,
    CorrelationContext,
    classify_error,
    get_correlation_id,
    submit_in_context,
)
from .chain import AbiFunction, ChainReader, function_selector
from .nft_index import AlchemyNftIndex
from .price_feed import GeckoTerminalPriceFeed

__all__ = [
    "RetryPolicy",
    "CorrelationContext",
    "classify_error",
    "get_correlation_id",
    "submit_in_context",
    "AbiFunction",
    "ChainReader",
    "function_selector",
    "AlchemyNftIndex",
    "GeckoTerminalPriceFeed",
]
