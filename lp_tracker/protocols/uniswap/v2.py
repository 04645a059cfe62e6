"""
Uniswap V2 adapter

V2 pairs have no per-wallet enumeration, so discovery scans a registry of
known pair addresses for a nonzero LP share balance.
"""

import logging
from typing import List, Optional

from ...types import Protocol, PairShare, ConstantProductState
from ..base import ProtocolAdapter
from .constants import (
    KNOWN_V2_POOLS,
    BALANCE_OF,
    TOTAL_SUPPLY,
    GET_RESERVES,
    TOKEN0,
    TOKEN1,
)

logger = logging.getLogger(__name__)


class UniswapV2Adapter(ProtocolAdapter):
    """Constant-product LP shares in known pairs"""

    protocol = Protocol.V2
    name = "uniswap_v2"

    @property
    def pools(self) -> List[str]:
        """Known pairs plus configured extras, deduplicated"""
        pools = [p.lower() for p in KNOWN_V2_POOLS + self._extra_pools]
        return list(dict.fromkeys(pools))

    def discover(self, wallet: str) -> List[PairShare]:
        pools = self.pools
        balances, errors = self._fan_out(
            lambda pool: self._chain.read(pool, BALANCE_OF, wallet)[0],
            pools,
            "balanceOf",
        )
        if pools and not balances:
            raise errors[-1]

        return [
            PairShare(pool=pool, share_balance=balance)
            for pool, balance in balances
            if balance > 0
        ]

    def fetch_state(self, raw: PairShare) -> Optional[ConstantProductState]:
        (total_supply,), (reserve0, reserve1, _), (token0,), (token1,) = self._chain.read_many([
            (raw.pool, TOTAL_SUPPLY, ()),
            (raw.pool, GET_RESERVES, ()),
            (raw.pool, TOKEN0, ()),
            (raw.pool, TOKEN1, ()),
        ])

        if total_supply == 0:
            logger.debug(f"V2 pair {raw.pool} has zero supply, skipping")
            return None

        return ConstantProductState(
            pool=raw.pool,
            token0=token0.lower(),
            token1=token1.lower(),
            share_balance=raw.share_balance,
            total_supply=total_supply,
            reserve0=reserve0,
            reserve1=reserve1,
        )
