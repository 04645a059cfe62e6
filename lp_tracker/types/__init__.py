"""
Type definitions for LP Tracker
"""

from .common import Protocol, Token, TokenLeg, UNKNOWN_SYMBOL, DEFAULT_DECIMALS
from .position import (
    PairShare,
    NftPosition,
    RawPosition,
    ConstantProductState,
    ConcentratedState,
    PositionState,
    Position,
)
from .result import CacheQuality, CacheEntry, PositionsResult
from .tokens import (
    KNOWN_TOKENS,
    NATIVE_TOKEN_ADDRESS,
    WETH_ADDRESS,
    get_known_token,
    is_native_token,
    pricing_address,
)

__all__ = [
    "Protocol",
    "Token",
    "TokenLeg",
    "UNKNOWN_SYMBOL",
    "DEFAULT_DECIMALS",
    "PairShare",
    "NftPosition",
    "RawPosition",
    "ConstantProductState",
    "ConcentratedState",
    "PositionState",
    "Position",
    "CacheQuality",
    "CacheEntry",
    "PositionsResult",
    "KNOWN_TOKENS",
    "NATIVE_TOKEN_ADDRESS",
    "WETH_ADDRESS",
    "get_known_token",
    "is_native_token",
    "pricing_address",
]
