"""
Uniswap V2/V3/V4 position adapters for Base
"""

from .v2 import UniswapV2Adapter
from .v3 import UniswapV3Adapter
from .v4 import UniswapV4Adapter
from .position_info import (
    PositionInfo,
    decode_position_info,
    encode_position_info,
    compute_pool_id,
    compute_position_id,
)

__all__ = [
    "UniswapV2Adapter",
    "UniswapV3Adapter",
    "UniswapV4Adapter",
    "PositionInfo",
    "decode_position_info",
    "encode_position_info",
    "compute_pool_id",
    "compute_position_id",
]
