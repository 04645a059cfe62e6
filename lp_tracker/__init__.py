"""
LP Tracker - Uniswap liquidity position valuation for Base

Discovers a wallet's positions across:
- Uniswap V2 (constant product LP shares in known pairs)
- Uniswap V3 (enumerable position NFTs)
- Uniswap V4 (non-enumerable position NFTs via an NFT index)

and values them (token amounts, in-range status, uncollected fees, USD)
behind a quality-aware cache.
"""

from .client import PositionTracker
from .types import (
    Protocol,
    Token,
    TokenLeg,
    Position,
    PositionsResult,
    CacheQuality,
    CacheEntry,
)
from .errors import (
    LpTrackerError,
    RpcError,
    DecodeError,
    UpstreamUnavailable,
    InvalidWalletAddress,
    PositionNotFound,
    DiscoveryFailed,
    ConfigurationError,
    ErrorCode,
)
from .modules import PositionsModule, ValuationCache, classify_quality

__version__ = "0.1.0"

__all__ = [
    # Client
    "PositionTracker",
    # Types
    "Protocol",
    "Token",
    "TokenLeg",
    "Position",
    "PositionsResult",
    "CacheQuality",
    "CacheEntry",
    # Errors
    "LpTrackerError",
    "RpcError",
    "DecodeError",
    "UpstreamUnavailable",
    "InvalidWalletAddress",
    "PositionNotFound",
    "DiscoveryFailed",
    "ConfigurationError",
    "ErrorCode",
    # Modules
    "PositionsModule",
    "ValuationCache",
    "classify_quality",
]
