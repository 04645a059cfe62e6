"""
Uniswap contract addresses and view-function ABIs on Base
"""

from typing import List

from ...infra.chain import AbiFunction


# =============================================================================
# Fixed-point constants
# =============================================================================

Q96 = 1 << 96
Q128 = 1 << 128
MAX_UINT128 = (1 << 128) - 1
MAX_UINT256 = (1 << 256) - 1

MIN_TICK = -887272
MAX_TICK = 887272


# =============================================================================
# Contract addresses (Base mainnet)
# =============================================================================

V3_POSITION_MANAGER = "0x03a520b32C04BF3bEEf7BEb72E919cf822Ed34f1"
V3_FACTORY = "0x33128a8fC17869897dcE68Ed026d694621f6FDfD"

V4_POSITION_MANAGER = "0x7c5f5a4bbd8fd63184577525326123b519429bdc"
V4_STATE_VIEW = "0xa3c0c9b65bad0b08107aa264b0f3db444b867a71"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# V2 pairs scanned for LP shares (no per-wallet enumeration exists for V2)
KNOWN_V2_POOLS: List[str] = [
    "0x11FD4947bE07E721B57622df3ef1E1C773ED5655",  # PAGE/ARBME
    "0x14aeb8cfdf477001a60f5196ec2ddfe94771b794",  # CLANKER/ARBME
]


# =============================================================================
# ERC20 / V2 pair
# =============================================================================

BALANCE_OF = AbiFunction("balanceOf", ("address",), ("uint256",))
TOTAL_SUPPLY = AbiFunction("totalSupply", (), ("uint256",))
TOKEN0 = AbiFunction("token0", (), ("address",))
TOKEN1 = AbiFunction("token1", (), ("address",))
GET_RESERVES = AbiFunction("getReserves", (), ("uint112", "uint112", "uint32"))

SYMBOL = AbiFunction("symbol", (), ("string",))
SYMBOL_BYTES32 = AbiFunction("symbol", (), ("bytes32",))
DECIMALS = AbiFunction("decimals", (), ("uint8",))


# =============================================================================
# V3
# =============================================================================

TOKEN_OF_OWNER_BY_INDEX = AbiFunction(
    "tokenOfOwnerByIndex", ("address", "uint256"), ("uint256",)
)

# nonce, operator, token0, token1, fee, tickLower, tickUpper, liquidity,
# feeGrowthInside0LastX128, feeGrowthInside1LastX128, tokensOwed0, tokensOwed1
V3_POSITIONS = AbiFunction(
    "positions",
    ("uint256",),
    (
        "uint96", "address", "address", "address", "uint24", "int24", "int24",
        "uint128", "uint256", "uint256", "uint128", "uint128",
    ),
)

V3_GET_POOL = AbiFunction("getPool", ("address", "address", "uint24"), ("address",))

# sqrtPriceX96, tick, observationIndex, observationCardinality,
# observationCardinalityNext, feeProtocol, unlocked
V3_SLOT0 = AbiFunction(
    "slot0",
    (),
    ("uint160", "int24", "uint16", "uint16", "uint16", "uint8", "bool"),
)

V3_FEE_GROWTH_GLOBAL0 = AbiFunction("feeGrowthGlobal0X128", (), ("uint256",))
V3_FEE_GROWTH_GLOBAL1 = AbiFunction("feeGrowthGlobal1X128", (), ("uint256",))

# liquidityGross, liquidityNet, feeGrowthOutside0X128, feeGrowthOutside1X128,
# tickCumulativeOutside, secondsPerLiquidityOutsideX128, secondsOutside, initialized
V3_TICKS = AbiFunction(
    "ticks",
    ("int24",),
    ("uint128", "int128", "uint256", "uint256", "int56", "uint160", "uint32", "bool"),
)


# =============================================================================
# V4
# =============================================================================

# ((currency0, currency1, fee, tickSpacing, hooks), packed PositionInfo)
V4_GET_POOL_AND_POSITION_INFO = AbiFunction(
    "getPoolAndPositionInfo",
    ("uint256",),
    ("(address,address,uint24,int24,address)", "uint256"),
)

V4_GET_POSITION_LIQUIDITY = AbiFunction("getPositionLiquidity", ("uint256",), ("uint128",))

# sqrtPriceX96, tick, protocolFee, lpFee
V4_GET_SLOT0 = AbiFunction("getSlot0", ("bytes32",), ("uint160", "int24", "uint24", "uint24"))

V4_GET_FEE_GROWTH_INSIDE = AbiFunction(
    "getFeeGrowthInside", ("bytes32", "int24", "int24"), ("uint256", "uint256")
)

# liquidity, feeGrowthInside0LastX128, feeGrowthInside1LastX128
V4_GET_POSITION_INFO = AbiFunction(
    "getPositionInfo", ("bytes32", "bytes32"), ("uint128", "uint256", "uint256")
)
