"""
Test Position Assembly and Enrichment

Tests for PositionAssembler (state -> Position), TokenMetadataResolver and
PositionEnricher.
"""

import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from conftest import (
    FakePriceFeed,
    DEFAULT_PRICES,
    USDC,
    V3_POOL,
    CURRENT_TICK,
    TICK_LOWER,
    TICK_UPPER,
    LIQUIDITY,
    FEE_GROWTH_GLOBAL,
    FEE_GROWTH_LAST,
)
from lp_tracker.errors import DecodeError, RpcError, UpstreamUnavailable
from lp_tracker.modules import PositionAssembler, PositionEnricher, TokenMetadataResolver
from lp_tracker.protocols.uniswap.constants import Q128, SYMBOL, DECIMALS
from lp_tracker.protocols.uniswap.math import tick_to_sqrt_price_x96
from lp_tracker.types import (
    Protocol,
    ConstantProductState,
    ConcentratedState,
    PairShare,
    UNKNOWN_SYMBOL,
    WETH_ADDRESS,
    NATIVE_TOKEN_ADDRESS,
)

PAIR = "0x3333333333333333333333333333333333333333"
FOO = "0x5555555555555555555555555555555555555555"


def _v2_state(**overrides):
    fields = dict(
        pool=PAIR,
        token0=WETH_ADDRESS,
        token1=USDC,
        share_balance=250,
        total_supply=1000,
        reserve0=4 * 10 ** 18,
        reserve1=10_000 * 10 ** 6,
    )
    fields.update(overrides)
    return ConstantProductState(**fields)


def _v3_state(current_tick=CURRENT_TICK, **overrides):
    fields = dict(
        protocol=Protocol.V3,
        token_id=1,
        pool=V3_POOL,
        token0=WETH_ADDRESS,
        token1=USDC,
        fee=500,
        tick_lower=TICK_LOWER,
        tick_upper=TICK_UPPER,
        liquidity=LIQUIDITY,
        sqrt_price_x96=tick_to_sqrt_price_x96(current_tick),
        current_tick=current_tick,
        fee_growth_inside0=FEE_GROWTH_GLOBAL[0],
        fee_growth_inside1=FEE_GROWTH_GLOBAL[1],
        fee_growth_inside0_last=FEE_GROWTH_LAST[0],
        fee_growth_inside1_last=FEE_GROWTH_LAST[1],
        tokens_owed0=5,
        tokens_owed1=7,
    )
    fields.update(overrides)
    return ConcentratedState(**fields)


# =============================================================================
# Assembler
# =============================================================================

class TestPositionAssembler:

    def setup_method(self):
        self.assembler = PositionAssembler()

    def test_constant_product(self):
        print("Testing V2 assembly...")

        position = self.assembler.assemble(_v2_state())

        assert position.id == f"v2-{PAIR}"
        assert position.protocol == Protocol.V2
        assert position.in_range is True
        assert position.token0.amount_raw == 10 ** 18
        assert position.token1.amount_raw == 2500 * 10 ** 6
        assert position.token0.fees_raw == position.token1.fees_raw == 0
        assert position.share_percent == Decimal(25)
        assert position.tick_lower is None
        # Metadata is a placeholder until enrichment
        assert position.token0.token.symbol == UNKNOWN_SYMBOL
        assert position.value_usd == 0

        print("  V2 assembly: PASSED")

    def test_concentrated_in_range(self):
        print("Testing V3 assembly...")

        position = self.assembler.assemble(_v3_state())

        assert position.id == "v3-1"
        assert position.pool == V3_POOL
        assert position.in_range
        assert position.token0.amount_raw > 0
        assert position.token1.amount_raw > 0
        # (3 - 2) * Q128 growth per unit liquidity plus tokensOwed
        assert position.token0.fees_raw == LIQUIDITY + 5
        assert position.token1.fees_raw == 7
        assert position.liquidity == LIQUIDITY

        print("  V3 assembly: PASSED")

    def test_concentrated_above_range(self):
        position = self.assembler.assemble(_v3_state(current_tick=TICK_UPPER + 100))

        assert not position.in_range
        assert position.token0.amount_raw == 0
        assert position.token1.amount_raw > 0

    def test_concentrated_below_range(self):
        position = self.assembler.assemble(_v3_state(current_tick=TICK_LOWER - 100))

        assert not position.in_range
        assert position.token0.amount_raw > 0
        assert position.token1.amount_raw == 0

    def test_bounds_are_in_range(self):
        assert self.assembler.assemble(_v3_state(current_tick=TICK_LOWER)).in_range
        assert self.assembler.assemble(_v3_state(current_tick=TICK_UPPER)).in_range

    def test_fee_growth_below_snapshot_counts_zero(self):
        state = _v3_state(fee_growth_inside0=Q128, fee_growth_inside0_last=2 * Q128)
        position = self.assembler.assemble(state)

        assert position.token0.fees_raw == 5

    def test_v4_id(self):
        pool_id = "0x" + "ab" * 32
        position = self.assembler.assemble(_v3_state(protocol=Protocol.V4, token_id=99, pool=pool_id))

        assert position.id == "v4-99"
        assert position.pool == pool_id

    def test_out_of_range_tick_rejected(self):
        with pytest.raises(ValueError):
            self.assembler.assemble(_v3_state(tick_lower=-900000))

    def test_unsupported_state(self):
        with pytest.raises(TypeError):
            self.assembler.assemble(PairShare(pool=PAIR, share_balance=1))


# =============================================================================
# Metadata resolver
# =============================================================================

class TestTokenMetadataResolver:

    def test_known_token_needs_no_reads(self, chain):
        resolver = TokenMetadataResolver(chain)

        usdc = resolver.resolve(USDC.upper().replace("0X", "0x"))
        assert (usdc.symbol, usdc.decimals) == ("USDC", 6)
        assert resolver.resolve(NATIVE_TOKEN_ADDRESS).symbol == "ETH"
        assert chain.call_count == 0

    def test_reads_and_memoises(self, chain):
        chain.on(FOO, SYMBOL, ("FOO",))
        chain.on(FOO, DECIMALS, (9,))
        resolver = TokenMetadataResolver(chain)

        token = resolver.resolve(FOO)
        assert (token.address, token.symbol, token.decimals) == (FOO, "FOO", 9)

        calls = chain.call_count
        assert resolver.resolve(FOO) is token
        assert chain.call_count == calls

    def test_bytes32_symbol_fallback(self, chain):
        answers = [DecodeError.failed(FOO, "symbol()", ValueError("not a string")), (b"MKR" + b"\x00" * 29,)]
        chain.on(FOO, SYMBOL, lambda: answers.pop(0))
        chain.on(FOO, DECIMALS, (18,))

        assert TokenMetadataResolver(chain).resolve(FOO).symbol == "MKR"

    def test_failure_falls_back_without_memo(self, chain):
        chain.on(FOO, SYMBOL, RpcError.timeout("https://rpc", 15))
        resolver = TokenMetadataResolver(chain)

        token = resolver.resolve(FOO)
        assert (token.symbol, token.decimals) == (UNKNOWN_SYMBOL, 18)
        assert not token.is_resolved

        chain.on(FOO, SYMBOL, ("FOO",))
        chain.on(FOO, DECIMALS, (9,))
        assert resolver.resolve(FOO).symbol == "FOO"


# =============================================================================
# Enricher
# =============================================================================

class TestPositionEnricher:

    def _positions(self):
        assembler = PositionAssembler()
        return [assembler.assemble(_v2_state()), assembler.assemble(_v3_state())]

    def test_fills_metadata_and_prices(self, chain, executor):
        print("Testing enrichment...")

        feed = FakePriceFeed(DEFAULT_PRICES)
        enricher = PositionEnricher(TokenMetadataResolver(chain), feed, executor)

        v2, v3 = enricher.enrich(self._positions())

        assert v2.token0.token.symbol == "WETH"
        assert v2.token1.token.decimals == 6
        assert v2.token0.amount == Decimal(1)
        assert v2.token1.amount == Decimal(2500)
        assert v2.value_usd == Decimal(5000)
        assert v3.is_priced
        assert v3.value_usd > 0
        assert v3.uncollected_fees_usd > 0
        # One batched lookup for all distinct tokens
        assert len(feed.requests) == 1
        assert sorted(feed.requests[0]) == sorted([WETH_ADDRESS, USDC])

        print("  enrichment: PASSED")

    def test_native_priced_as_weth(self, chain, executor):
        enricher = PositionEnricher(TokenMetadataResolver(chain), FakePriceFeed(DEFAULT_PRICES), executor)
        position = PositionAssembler().assemble(_v3_state(protocol=Protocol.V4, token0=NATIVE_TOKEN_ADDRESS))

        (enriched,) = enricher.enrich([position])

        assert enriched.token0.token.symbol == "ETH"
        assert enriched.token0.price_usd == Decimal(2500)

    def test_missing_price_is_not_zero(self, chain, executor):
        chain.on(FOO, SYMBOL, ("FOO",))
        chain.on(FOO, DECIMALS, (18,))
        enricher = PositionEnricher(TokenMetadataResolver(chain), FakePriceFeed(DEFAULT_PRICES), executor)
        position = PositionAssembler().assemble(_v2_state(token0=FOO))

        (enriched,) = enricher.enrich([position])

        assert enriched.token0.price_usd is None
        assert enriched.token0.value_usd == 0
        assert enriched.token1.is_priced

    def test_pricing_outage_degrades(self, chain, executor):
        feed = FakePriceFeed(error=UpstreamUnavailable.pricing_failed(Exception("503")))
        enricher = PositionEnricher(TokenMetadataResolver(chain), feed, executor)

        enriched = enricher.enrich(self._positions())

        assert len(enriched) == 2
        assert not any(p.is_priced for p in enriched)
        assert enriched[0].token0.token.symbol == "WETH"

    def test_empty_input(self, chain, executor):
        feed = FakePriceFeed(DEFAULT_PRICES)
        enricher = PositionEnricher(TokenMetadataResolver(chain), feed, executor)

        assert enricher.enrich([]) == []
        assert feed.requests == []
