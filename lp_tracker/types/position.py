"""
Position type definitions

Adapters produce a RawPosition during discovery and a PositionState after
fetching; the assembler turns a PositionState into a Position. Each stage is
a closed set of variants, one per liquidity model.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional, Tuple, Union

from .common import Protocol, TokenLeg


# =============================================================================
# Discovery output
# =============================================================================

@dataclass(frozen=True)
class PairShare:
    """A V2 pair in which the wallet holds LP shares"""
    pool: str
    share_balance: int

    @property
    def protocol(self) -> Protocol:
        return Protocol.V2

    @property
    def ref(self) -> str:
        return self.pool.lower()


@dataclass(frozen=True)
class NftPosition:
    """A concentrated-liquidity position NFT (V3 or V4)"""
    protocol: Protocol
    token_id: int

    @property
    def ref(self) -> str:
        return str(self.token_id)


RawPosition = Union[PairShare, NftPosition]


# =============================================================================
# Fetched state
# =============================================================================

@dataclass(frozen=True)
class ConstantProductState:
    """V2 pair reserves and the wallet's share of them"""
    pool: str
    token0: str
    token1: str
    share_balance: int
    total_supply: int
    reserve0: int
    reserve1: int

    @property
    def protocol(self) -> Protocol:
        return Protocol.V2


@dataclass(frozen=True)
class ConcentratedState:
    """
    V3/V4 position state

    Attributes:
        pool: Pool contract address (V3) or 32-byte pool id hex (V4)
        fee_growth_inside0/1: Current fee growth inside the range (X128)
        fee_growth_inside0_last/1_last: Snapshot stored with the position (X128)
        tokens_owed0/1: Fees already credited to the position but not collected (V3)
    """
    protocol: Protocol
    token_id: int
    pool: str
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    liquidity: int
    sqrt_price_x96: int
    current_tick: int
    fee_growth_inside0: int = 0
    fee_growth_inside1: int = 0
    fee_growth_inside0_last: int = 0
    fee_growth_inside1_last: int = 0
    tokens_owed0: int = 0
    tokens_owed1: int = 0
    tick_spacing: Optional[int] = None
    hooks: Optional[str] = None


PositionState = Union[ConstantProductState, ConcentratedState]


# =============================================================================
# Assembled position
# =============================================================================

@dataclass(frozen=True)
class Position:
    """
    LP position with amounts, fees and (after enrichment) USD values

    Attributes:
        id: "{protocol tag}-{pool address or token id}"
        protocol: Uniswap generation
        pool: Pool address (V2/V3) or pool id (V4)
        token0: Token0 leg
        token1: Token1 leg
        in_range: Current tick within [tick_lower, tick_upper]; always True on V2

        # Concentrated liquidity
        token_id: Position NFT id
        liquidity: Raw liquidity units
        tick_lower: Lower tick
        tick_upper: Upper tick
        current_tick: Pool tick at fetch time
        sqrt_price_x96: Pool sqrt price at fetch time
        fee: Pool fee in hundredths of a bip

        # Constant product
        share_balance: Wallet LP share balance
        total_supply: Pair total supply
    """
    id: str
    protocol: Protocol
    pool: str
    token0: TokenLeg
    token1: TokenLeg
    in_range: bool = True

    token_id: Optional[int] = None
    liquidity: Optional[int] = None
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None
    current_tick: Optional[int] = None
    sqrt_price_x96: Optional[int] = None
    fee: Optional[int] = None

    share_balance: Optional[int] = None
    total_supply: Optional[int] = None

    def __str__(self) -> str:
        return f"Position({self.id}, {self.token0.token}/{self.token1.token}, ${self.value_usd:.2f})"

    @property
    def legs(self) -> Tuple[TokenLeg, TokenLeg]:
        return self.token0, self.token1

    @property
    def value_usd(self) -> Decimal:
        """Sum of both legs' USD value (unpriced legs count as 0)"""
        return self.token0.value_usd + self.token1.value_usd

    @property
    def uncollected_fees_usd(self) -> Decimal:
        return self.token0.fees_usd + self.token1.fees_usd

    @property
    def is_priced(self) -> bool:
        """True when at least one leg has a nonzero USD price"""
        return self.token0.is_priced or self.token1.is_priced

    @property
    def share_percent(self) -> Optional[Decimal]:
        """Wallet's share of a V2 pair, in percent"""
        if not self.total_supply or self.share_balance is None:
            return None
        return Decimal(self.share_balance) * 100 / Decimal(self.total_supply)

    @property
    def price_range(self) -> Optional[Tuple[Decimal, Decimal]]:
        """Human price bounds (token1 per token0, decimal adjusted)"""
        if self.tick_lower is None or self.tick_upper is None:
            return None
        # Import here to avoid circular import
        from ..protocols.uniswap.math import tick_to_price
        d0, d1 = self.token0.token.decimals, self.token1.token.decimals
        return tick_to_price(self.tick_lower, d0, d1), tick_to_price(self.tick_upper, d0, d1)

    def with_legs(self, token0: TokenLeg, token1: TokenLeg) -> "Position":
        return replace(self, token0=token0, token1=token1)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "protocol": self.protocol.value,
            "pool": self.pool,
            "token0": self.token0.to_dict(),
            "token1": self.token1.to_dict(),
            "inRange": self.in_range,
            "valueUsd": str(self.value_usd),
            "uncollectedFeesUsd": str(self.uncollected_fees_usd),
        }
        if self.protocol.is_concentrated:
            price_range = self.price_range
            data.update({
                "tokenId": str(self.token_id),
                "liquidity": str(self.liquidity),
                "tickLower": self.tick_lower,
                "tickUpper": self.tick_upper,
                "currentTick": self.current_tick,
                "fee": self.fee,
                "priceRange": [str(p) for p in price_range] if price_range else None,
            })
        else:
            data.update({
                "shareBalance": str(self.share_balance),
                "totalSupply": str(self.total_supply),
            })
        return data
