"""
Uniswap V3 adapter

Positions are ERC721 tokens of the NonfungiblePositionManager, which is
enumerable: balanceOf + tokenOfOwnerByIndex list a wallet's token ids.
Uncollected fees combine tokensOwed with fee growth accrued since the
position's last snapshot.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from ...errors import PositionNotFound
from ...types import Protocol, NftPosition, ConcentratedState
from ..base import ProtocolAdapter
from .constants import (
    V3_POSITION_MANAGER,
    V3_FACTORY,
    ZERO_ADDRESS,
    BALANCE_OF,
    TOKEN_OF_OWNER_BY_INDEX,
    V3_POSITIONS,
    V3_GET_POOL,
    V3_SLOT0,
    V3_FEE_GROWTH_GLOBAL0,
    V3_FEE_GROWTH_GLOBAL1,
    V3_TICKS,
)
from .math import fee_growth_inside

logger = logging.getLogger(__name__)


class UniswapV3Adapter(ProtocolAdapter):
    """Enumerable concentrated-liquidity position NFTs"""

    protocol = Protocol.V3
    name = "uniswap_v3"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Factory mapping is immutable, so pool addresses are memoised for the adapter lifetime
        self._pool_addresses: Dict[Tuple[str, str, int], str] = {}
        self._pool_lock = threading.Lock()

    def discover(self, wallet: str) -> List[NftPosition]:
        (count,) = self._chain.read(V3_POSITION_MANAGER, BALANCE_OF, wallet)
        if count == 0:
            return []

        token_ids, errors = self._fan_out(
            lambda index: self._chain.read(
                V3_POSITION_MANAGER, TOKEN_OF_OWNER_BY_INDEX, wallet, index
            )[0],
            range(count),
            "tokenOfOwnerByIndex",
        )
        if not token_ids:
            raise errors[-1]

        return [NftPosition(Protocol.V3, token_id) for _, token_id in token_ids]

    def _pool_address(self, token0: str, token1: str, fee: int) -> str:
        key = (token0.lower(), token1.lower(), fee)
        with self._pool_lock:
            cached = self._pool_addresses.get(key)
        if cached is not None:
            return cached

        (pool,) = self._chain.read(V3_FACTORY, V3_GET_POOL, token0, token1, fee)
        pool = pool.lower()
        if pool != ZERO_ADDRESS:
            with self._pool_lock:
                self._pool_addresses[key] = pool
        return pool

    def fetch_state(self, raw: NftPosition) -> Optional[ConcentratedState]:
        (
            _nonce, _operator, token0, token1, fee, tick_lower, tick_upper, liquidity,
            fee_growth0_last, fee_growth1_last, tokens_owed0, tokens_owed1,
        ) = self._chain.read(V3_POSITION_MANAGER, V3_POSITIONS, raw.token_id)

        if liquidity == 0:
            logger.debug(f"V3 position {raw.token_id} has zero liquidity, skipping")
            return None

        pool = self._pool_address(token0, token1, fee)
        if pool == ZERO_ADDRESS:
            raise PositionNotFound.pool_not_found(f"v3-{raw.token_id}", f"{token0}/{token1}/{fee}")

        slot0, (global0,), (global1,), lower, upper = self._chain.read_many([
            (pool, V3_SLOT0, ()),
            (pool, V3_FEE_GROWTH_GLOBAL0, ()),
            (pool, V3_FEE_GROWTH_GLOBAL1, ()),
            (pool, V3_TICKS, (tick_lower,)),
            (pool, V3_TICKS, (tick_upper,)),
        ])
        sqrt_price_x96, current_tick = slot0[0], slot0[1]

        # ticks(): index 2/3 are feeGrowthOutside0/1X128
        inside0 = fee_growth_inside(current_tick, tick_lower, tick_upper, global0, lower[2], upper[2])
        inside1 = fee_growth_inside(current_tick, tick_lower, tick_upper, global1, lower[3], upper[3])

        return ConcentratedState(
            protocol=Protocol.V3,
            token_id=raw.token_id,
            pool=pool,
            token0=token0.lower(),
            token1=token1.lower(),
            fee=fee,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            liquidity=liquidity,
            sqrt_price_x96=sqrt_price_x96,
            current_tick=current_tick,
            fee_growth_inside0=inside0,
            fee_growth_inside1=inside1,
            fee_growth_inside0_last=fee_growth0_last,
            fee_growth_inside1_last=fee_growth1_last,
            tokens_owed0=tokens_owed0,
            tokens_owed1=tokens_owed1,
        )
