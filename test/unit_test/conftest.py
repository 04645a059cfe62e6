"""
Shared fakes for unit tests

FakeChain answers ChainReader.read() from a table keyed by
(address, function signature), so adapters and enrichment run their real
code paths without a node.
"""

import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_tracker.errors import DecodeError
from lp_tracker.types import WETH_ADDRESS
from lp_tracker.protocols.uniswap.constants import (
    Q128,
    ZERO_ADDRESS,
    KNOWN_V2_POOLS,
    V3_POSITION_MANAGER,
    V3_FACTORY,
    BALANCE_OF,
    TOKEN_OF_OWNER_BY_INDEX,
    V3_POSITIONS,
    V3_GET_POOL,
    V3_SLOT0,
    V3_FEE_GROWTH_GLOBAL0,
    V3_FEE_GROWTH_GLOBAL1,
    V3_TICKS,
)
from lp_tracker.protocols.uniswap.math import tick_to_sqrt_price_x96


WALLET = "0x1111111111111111111111111111111111111111"
USDC = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
V3_POOL = "0x2222222222222222222222222222222222222222"


class FakeChain:
    """In-memory stand-in for ChainReader"""

    def __init__(self):
        self._responses: Dict[tuple, object] = {}
        self._lock = threading.Lock()
        self.calls: List[tuple] = []
        # Function names per read_many round trip
        self.batches: List[List[str]] = []
        self.fail_with: Optional[Exception] = None

    def on(self, address: str, function, response):
        """
        Register a response: a tuple, a callable taking the call args, or an
        exception instance to raise.
        """
        self._responses[(address.lower(), function.signature)] = response
        return self

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def read(self, address: str, function, *args) -> tuple:
        with self._lock:
            self.calls.append((address.lower(), function.name, args))
        if self.fail_with is not None:
            raise self.fail_with

        response = self._responses.get((address.lower(), function.signature))
        if response is None:
            raise DecodeError.empty(address, function.signature)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(*args)
            if isinstance(response, Exception):
                raise response
        return tuple(response)

    def read_many(self, calls):
        with self._lock:
            self.batches.append([function.name for _, function, _ in calls])
        return [self.read(address, function, *args) for address, function, args in calls]

    def close(self):
        pass


class FakePriceFeed:
    """Static price table; counts lookups"""

    def __init__(self, prices: Optional[Dict[str, Decimal]] = None, error: Optional[Exception] = None):
        self.prices = {k.lower(): v for k, v in (prices or {}).items()}
        self.error = error
        self.requests: List[List[str]] = []

    def get_prices(self, addresses):
        wanted = [a.lower() for a in addresses]
        self.requests.append(wanted)
        if self.error is not None:
            raise self.error
        return {a: self.prices[a] for a in wanted if a in self.prices}

    def close(self):
        pass


class FakeNftIndex:
    def __init__(self, token_ids=None, configured=True, error: Optional[Exception] = None):
        self.token_ids = list(token_ids or [])
        self._configured = configured
        self.error = error

    @property
    def configured(self) -> bool:
        return self._configured

    def owned_token_ids(self, owner, contract):
        if self.error is not None:
            raise self.error
        return list(self.token_ids)

    def close(self):
        pass


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


DEFAULT_PRICES = {
    WETH_ADDRESS: Decimal("2500"),
    USDC: Decimal("1"),
}


# =============================================================================
# Chain scenarios
# =============================================================================

# WETH/USDC 0.05% around 2500 USDC per WETH; WETH sorts first so it is token0
CURRENT_TICK = -198080
TICK_LOWER = -198120
TICK_UPPER = -198060
LIQUIDITY = 10 ** 15
FEE_GROWTH_GLOBAL = (3 * Q128, 2 * Q128)
FEE_GROWTH_LAST = (2 * Q128, 2 * Q128)
TOKENS_OWED = (5, 7)


def install_empty_v2(chain: FakeChain):
    """Every known pair answers balanceOf with zero"""
    for pool in KNOWN_V2_POOLS:
        chain.on(pool, BALANCE_OF, (0,))


def install_v3_pool(chain: FakeChain, current_tick: int = CURRENT_TICK, pool: str = V3_POOL):
    chain.on(V3_FACTORY, V3_GET_POOL, (pool,))
    chain.on(pool, V3_SLOT0, (tick_to_sqrt_price_x96(current_tick), current_tick, 0, 1, 1, 0, True))
    chain.on(pool, V3_FEE_GROWTH_GLOBAL0, (FEE_GROWTH_GLOBAL[0],))
    chain.on(pool, V3_FEE_GROWTH_GLOBAL1, (FEE_GROWTH_GLOBAL[1],))
    # Fee growth outside every tick is zero
    chain.on(pool, V3_TICKS, (1, 0, 0, 0, 0, 0, 0, True))


def install_v3_positions(
    chain: FakeChain,
    wallet: str,
    positions: List[Tuple[int, int, int, int]],
    token0: str = WETH_ADDRESS,
    token1: str = USDC,
    fee: int = 500,
):
    """
    Register V3 NFTs owned by `wallet`

    Args:
        positions: (token_id, tick_lower, tick_upper, liquidity) per NFT
    """
    by_id = {p[0]: p for p in positions}

    chain.on(
        V3_POSITION_MANAGER,
        BALANCE_OF,
        lambda owner: (len(positions) if owner.lower() == wallet.lower() else 0,),
    )
    chain.on(
        V3_POSITION_MANAGER,
        TOKEN_OF_OWNER_BY_INDEX,
        lambda owner, index: (positions[index][0],),
    )

    def position_of(token_id):
        if token_id not in by_id:
            return DecodeError.empty(V3_POSITION_MANAGER, "positions(uint256)")
        _, lower, upper, liquidity = by_id[token_id]
        return (
            0, ZERO_ADDRESS, token0, token1, fee, lower, upper, liquidity,
            FEE_GROWTH_LAST[0], FEE_GROWTH_LAST[1], TOKENS_OWED[0], TOKENS_OWED[1],
        )

    chain.on(V3_POSITION_MANAGER, V3_POSITIONS, position_of)


def install_v3_wallet(chain: FakeChain, wallet: str = WALLET, current_tick: int = CURRENT_TICK):
    """One in-range WETH/USDC position (token id 1) and nothing on V2"""
    install_empty_v2(chain)
    install_v3_pool(chain, current_tick=current_tick)
    install_v3_positions(chain, wallet, [(1, TICK_LOWER, TICK_UPPER, LIQUIDITY)])


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def clock():
    return FakeClock()
