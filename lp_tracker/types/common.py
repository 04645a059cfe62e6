"""
Common type definitions
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Optional


# Symbol/decimals used until real token metadata is known
UNKNOWN_SYMBOL = "???"
DEFAULT_DECIMALS = 18


class Protocol(Enum):
    """
    Uniswap generation a position belongs to

    The value doubles as the position id prefix.
    """
    V2 = "v2"  # constant product, ERC20 LP shares
    V3 = "v3"  # concentrated liquidity, enumerable ERC721
    V4 = "v4"  # concentrated liquidity, non-enumerable ERC721

    @property
    def tag(self) -> str:
        return self.value

    @property
    def is_concentrated(self) -> bool:
        return self is not Protocol.V2


@dataclass(frozen=True)
class Token:
    """
    Token information

    Attributes:
        address: Token contract address (lower-case hex)
        symbol: Token symbol (e.g., "WETH", "USDC")
        decimals: Number of decimal places
    """
    address: str
    symbol: str = UNKNOWN_SYMBOL
    decimals: int = DEFAULT_DECIMALS

    def __post_init__(self):
        object.__setattr__(self, "address", self.address.lower())

    def __str__(self) -> str:
        return self.symbol

    def __repr__(self) -> str:
        return f"Token({self.symbol}, {self.address[:10]}...)"

    @property
    def is_resolved(self) -> bool:
        return self.symbol != UNKNOWN_SYMBOL

    def ui_amount(self, raw_amount: int) -> Decimal:
        """
        Convert raw amount to UI amount with full precision

        Args:
            raw_amount: Raw token amount (smallest units)

        Returns:
            UI amount as Decimal for precision
        """
        return Decimal(raw_amount).scaleb(-self.decimals)


@dataclass(frozen=True)
class TokenLeg:
    """
    One side of a position: token, raw amounts and an optional USD unit price

    Attributes:
        token: Token metadata
        amount_raw: Current token amount in the position (smallest units)
        fees_raw: Uncollected fees for this token (smallest units)
        price_usd: USD unit price, None when the price feed had none
    """
    token: Token
    amount_raw: int = 0
    fees_raw: int = 0
    price_usd: Optional[Decimal] = None

    @property
    def amount(self) -> Decimal:
        return self.token.ui_amount(self.amount_raw)

    @property
    def fees(self) -> Decimal:
        return self.token.ui_amount(self.fees_raw)

    @property
    def is_priced(self) -> bool:
        """True when a nonzero USD price is known"""
        return self.price_usd is not None and self.price_usd > 0

    @property
    def value_usd(self) -> Decimal:
        if self.price_usd is None:
            return Decimal(0)
        return self.amount * self.price_usd

    @property
    def fees_usd(self) -> Decimal:
        if self.price_usd is None:
            return Decimal(0)
        return self.fees * self.price_usd

    def with_token(self, token: Token) -> "TokenLeg":
        return replace(self, token=token)

    def with_price(self, price_usd: Optional[Decimal]) -> "TokenLeg":
        return replace(self, price_usd=price_usd)

    def to_dict(self) -> dict:
        return {
            "address": self.token.address,
            "symbol": self.token.symbol,
            "decimals": self.token.decimals,
            "amount": str(self.amount),
            "amountRaw": str(self.amount_raw),
            "fees": str(self.fees),
            "unitPriceUsd": str(self.price_usd) if self.price_usd is not None else None,
            "valueUsd": str(self.value_usd),
        }
