"""
Uniswap V4 adapter

The V4 PositionManager is an ERC721 without enumeration, so token ids come
from the off-chain NFT index. Pool state lives in the singleton PoolManager
and is read through the StateView lens contract.
"""

import logging
from typing import List, Optional

from ...errors import DecodeError, ErrorCode, PositionNotFound, RpcError
from ...types import Protocol, NftPosition, ConcentratedState
from ..base import ProtocolAdapter
from .constants import (
    V4_POSITION_MANAGER,
    V4_STATE_VIEW,
    ZERO_ADDRESS,
    V4_GET_POOL_AND_POSITION_INFO,
    V4_GET_POSITION_LIQUIDITY,
    V4_GET_SLOT0,
    V4_GET_FEE_GROWTH_INSIDE,
    V4_GET_POSITION_INFO,
)
from .position_info import (
    decode_position_info,
    compute_pool_id,
    compute_position_id,
    token_id_salt,
)

logger = logging.getLogger(__name__)


class UniswapV4Adapter(ProtocolAdapter):
    """Non-enumerable concentrated-liquidity position NFTs"""

    protocol = Protocol.V4
    name = "uniswap_v4"

    def discover(self, wallet: str) -> List[NftPosition]:
        if self._nft_index is None or not self._nft_index.configured:
            return []

        token_ids = self._nft_index.owned_token_ids(wallet, V4_POSITION_MANAGER)
        return [NftPosition(Protocol.V4, token_id) for token_id in token_ids]

    def fetch_state(self, raw: NftPosition) -> Optional[ConcentratedState]:
        try:
            pool_key, info = self._chain.read(
                V4_POSITION_MANAGER, V4_GET_POOL_AND_POSITION_INFO, raw.token_id
            )
        except RpcError as e:
            if e.code == ErrorCode.RPC_EXECUTION_REVERTED:
                # Index can lag behind burns
                logger.debug(f"V4 token {raw.token_id} has no position state: {e.message}")
                return None
            raise

        currency0, currency1, fee, tick_spacing, hooks = pool_key
        if info == 0 and currency0.lower() == currency1.lower() == ZERO_ADDRESS:
            logger.debug(f"V4 token {raw.token_id} not found (burned), skipping")
            return None

        (liquidity,) = self._chain.read(
            V4_POSITION_MANAGER, V4_GET_POSITION_LIQUIDITY, raw.token_id
        )
        if liquidity == 0:
            logger.debug(f"V4 position {raw.token_id} has zero liquidity, skipping")
            return None

        decoded = decode_position_info(info)
        pool_id = compute_pool_id(currency0, currency1, fee, tick_spacing, hooks)
        if not decoded.matches_pool(pool_id):
            raise DecodeError(
                f"PositionInfo of token {raw.token_id} does not match pool 0x{pool_id.hex()}",
                target=V4_POSITION_MANAGER,
            )

        position_id = compute_position_id(
            V4_POSITION_MANAGER,
            decoded.tick_lower,
            decoded.tick_upper,
            token_id_salt(raw.token_id),
        )
        slot0, (_, last0, last1), (inside0, inside1) = self._chain.read_many([
            (V4_STATE_VIEW, V4_GET_SLOT0, (pool_id,)),
            (V4_STATE_VIEW, V4_GET_POSITION_INFO, (pool_id, position_id)),
            (V4_STATE_VIEW, V4_GET_FEE_GROWTH_INSIDE, (pool_id, decoded.tick_lower, decoded.tick_upper)),
        ])
        sqrt_price_x96, current_tick, _protocol_fee, _lp_fee = slot0
        if sqrt_price_x96 == 0:
            raise PositionNotFound.pool_not_found(f"v4-{raw.token_id}", f"0x{pool_id.hex()}")

        return ConcentratedState(
            protocol=Protocol.V4,
            token_id=raw.token_id,
            pool="0x" + pool_id.hex(),
            token0=currency0.lower(),
            token1=currency1.lower(),
            fee=fee,
            tick_lower=decoded.tick_lower,
            tick_upper=decoded.tick_upper,
            liquidity=liquidity,
            sqrt_price_x96=sqrt_price_x96,
            current_tick=current_tick,
            fee_growth_inside0=inside0,
            fee_growth_inside1=inside1,
            fee_growth_inside0_last=last0,
            fee_growth_inside1_last=last1,
            tick_spacing=tick_spacing,
            hooks=hooks.lower(),
        )
