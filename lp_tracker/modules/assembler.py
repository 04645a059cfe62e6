"""
Position assembler

Turns fetched protocol state into uniform Position records: current token
amounts, in-range status and uncollected fees. Pure computation, no I/O.
Token metadata is a placeholder until enrichment fills it in.
"""

from typing import List, Sequence

from ..types import (
    Token,
    TokenLeg,
    Position,
    PositionState,
    ConstantProductState,
    ConcentratedState,
)
from ..protocols.uniswap.math import (
    tick_to_sqrt_price_x96,
    get_amounts_for_liquidity,
    fee_amount,
    constant_product_amounts,
    is_in_range,
)


class PositionAssembler:
    """Builds Position records from PositionState variants"""

    def assemble(self, state: PositionState) -> Position:
        if isinstance(state, ConcentratedState):
            return self._assemble_concentrated(state)
        if isinstance(state, ConstantProductState):
            return self._assemble_constant_product(state)
        raise TypeError(f"Unsupported position state: {type(state).__name__}")

    def assemble_all(self, states: Sequence[PositionState]) -> List[Position]:
        return [self.assemble(state) for state in states]

    def _assemble_constant_product(self, state: ConstantProductState) -> Position:
        amount0, amount1 = constant_product_amounts(
            state.share_balance, state.total_supply, state.reserve0, state.reserve1
        )
        return Position(
            id=f"{state.protocol.tag}-{state.pool.lower()}",
            protocol=state.protocol,
            pool=state.pool.lower(),
            token0=TokenLeg(Token(state.token0), amount_raw=amount0),
            token1=TokenLeg(Token(state.token1), amount_raw=amount1),
            in_range=True,
            share_balance=state.share_balance,
            total_supply=state.total_supply,
        )

    def _assemble_concentrated(self, state: ConcentratedState) -> Position:
        sqrt_lower = tick_to_sqrt_price_x96(state.tick_lower)
        sqrt_upper = tick_to_sqrt_price_x96(state.tick_upper)
        amount0, amount1 = get_amounts_for_liquidity(
            state.sqrt_price_x96, sqrt_lower, sqrt_upper, state.liquidity
        )

        fees0 = state.tokens_owed0 + fee_amount(
            state.fee_growth_inside0, state.fee_growth_inside0_last, state.liquidity
        )
        fees1 = state.tokens_owed1 + fee_amount(
            state.fee_growth_inside1, state.fee_growth_inside1_last, state.liquidity
        )

        return Position(
            id=f"{state.protocol.tag}-{state.token_id}",
            protocol=state.protocol,
            pool=state.pool,
            token0=TokenLeg(Token(state.token0), amount_raw=amount0, fees_raw=fees0),
            token1=TokenLeg(Token(state.token1), amount_raw=amount1, fees_raw=fees1),
            in_range=is_in_range(state.current_tick, state.tick_lower, state.tick_upper),
            token_id=state.token_id,
            liquidity=state.liquidity,
            tick_lower=state.tick_lower,
            tick_upper=state.tick_upper,
            current_tick=state.current_tick,
            sqrt_price_x96=state.sqrt_price_x96,
            fee=state.fee,
        )
