"""
Test V4 PositionInfo Module

Tests for int24 handling, PositionInfo packing and pool/position id derivation.
"""

import sys
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_tracker.protocols.uniswap.position_info import (
    PositionInfo,
    to_int24,
    from_int24,
    decode_position_info,
    encode_position_info,
    compute_pool_id,
    compute_position_id,
    token_id_salt,
)

WETH = "0x4200000000000000000000000000000000000006"
USDC = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
NATIVE = "0x0000000000000000000000000000000000000000"


def test_int24_boundaries():
    """Sign bit flips at 0x800000"""
    print("Testing int24 conversion...")

    assert to_int24(0x7FFFFF) == 8388607
    assert to_int24(0x800000) == -8388608
    assert to_int24(0xFFFFFF) == -1
    assert to_int24(0) == 0
    # Only the low 24 bits count
    assert to_int24(0x1_000005) == 5

    assert from_int24(-1) == 0xFFFFFF
    assert from_int24(-8388608) == 0x800000
    with pytest.raises(ValueError):
        from_int24(8388608)
    with pytest.raises(ValueError):
        from_int24(-8388609)

    print("  int24 conversion: PASSED")


def test_decode_known_layout():
    """Fields are read from their documented bit offsets"""
    pool_id = (1 << 199) | 0xABCDEF
    info = (pool_id << 56) | ((-60 & 0xFFFFFF) << 32) | ((-120 & 0xFFFFFF) << 8) | 0x01

    decoded = decode_position_info(info)
    assert decoded.pool_id == pool_id
    assert decoded.tick_lower == -120
    assert decoded.tick_upper == -60
    assert decoded.flags == 1
    assert decoded.has_subscriber


def test_encode_decode_extreme_ticks():
    for lower, upper in ((-887272, 887272), (-1, 0), (0, 60), (-8388608, 8388607)):
        info = encode_position_info(123456789, lower, upper)
        decoded = decode_position_info(info)
        assert (decoded.tick_lower, decoded.tick_upper) == (lower, upper)
        assert decoded.pool_id == 123456789
        assert not decoded.has_subscriber


def test_decode_rejects_out_of_range_word():
    with pytest.raises(ValueError):
        decode_position_info(-1)
    with pytest.raises(ValueError):
        decode_position_info(1 << 256)


def test_encode_rejects_wide_pool_id():
    with pytest.raises(ValueError):
        encode_position_info(1 << 200, 0, 60)


def test_matches_pool_uses_leading_25_bytes():
    full_id = compute_pool_id(NATIVE, USDC, 500, 10, NATIVE)
    truncated = int.from_bytes(full_id[:25], "big")

    info = PositionInfo(pool_id=truncated, tick_lower=-10, tick_upper=10, flags=0)
    assert info.matches_pool(full_id)

    other = compute_pool_id(WETH, USDC, 500, 10, NATIVE)
    assert not info.matches_pool(other)


def test_compute_pool_id_deterministic():
    a = compute_pool_id(NATIVE, USDC, 500, 10, NATIVE)
    b = compute_pool_id(NATIVE, USDC.upper().replace("0X", "0x"), 500, 10, NATIVE)
    assert a == b
    assert len(a) == 32
    assert compute_pool_id(NATIVE, USDC, 3000, 60, NATIVE) != a


def test_compute_position_id_depends_on_all_fields():
    manager = "0x7c5f5a4bbd8fd63184577525326123b519429bdc"
    base = compute_position_id(manager, -60, 60, token_id_salt(1))
    assert len(base) == 32
    assert compute_position_id(manager, -60, 60, token_id_salt(2)) != base
    assert compute_position_id(manager, -120, 60, token_id_salt(1)) != base
    assert compute_position_id(WETH, -60, 60, token_id_salt(1)) != base


def test_token_id_salt():
    assert token_id_salt(1) == b"\x00" * 31 + b"\x01"
    assert len(token_id_salt(2 ** 255)) == 32
