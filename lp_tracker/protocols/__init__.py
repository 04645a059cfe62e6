"""
Protocol adapters

Currently supported:
- Uniswap V2 (constant product, known pair registry)
- Uniswap V3 (enumerable position NFTs)
- Uniswap V4 (non-enumerable position NFTs, indexed off-chain)
"""

from .base import ProtocolAdapter
from .registry import ProtocolRegistry
from .uniswap import UniswapV2Adapter, UniswapV3Adapter, UniswapV4Adapter

__all__ = [
    "ProtocolAdapter",
    "ProtocolRegistry",
    "UniswapV2Adapter",
    "UniswapV3Adapter",
    "UniswapV4Adapter",
]
