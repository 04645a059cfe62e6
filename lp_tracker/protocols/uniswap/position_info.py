"""
V4 PositionInfo packing and id derivation

The V4 PositionManager stores each position's range as one uint256:

    bits   0..7    flags (hasSubscriber)
    bits   8..31   tickLower (int24)
    bits  32..55   tickUpper (int24)
    bits  56..255  poolId, upper 200 bits (the leading 25 bytes of the real id)

Ticks are two's-complement 24-bit values.
"""

from dataclasses import dataclass
from typing import Tuple

from eth_abi import encode as abi_encode
from web3 import Web3


_FLAGS_MASK = 0xFF
_INT24_MASK = 0xFFFFFF
_INT24_SIGN = 0x800000

TICK_LOWER_OFFSET = 8
TICK_UPPER_OFFSET = 32
POOL_ID_OFFSET = 56
POOL_ID_BITS = 200


def to_int24(raw: int) -> int:
    """Reinterpret the low 24 bits as a signed integer"""
    raw &= _INT24_MASK
    return raw - (1 << 24) if raw & _INT24_SIGN else raw


def from_int24(value: int) -> int:
    """Encode a signed tick as 24-bit two's complement"""
    if not -_INT24_SIGN <= value < _INT24_SIGN:
        raise ValueError(f"value {value} does not fit in int24")
    return value & _INT24_MASK


@dataclass(frozen=True)
class PositionInfo:
    """
    Decoded V4 PositionInfo

    Attributes:
        pool_id: Truncated pool id (200 bits) as stored in the packed word
        tick_lower: Range lower tick
        tick_upper: Range upper tick
        flags: Low byte (bit 0 = position has a subscriber)
    """
    pool_id: int
    tick_lower: int
    tick_upper: int
    flags: int

    @property
    def has_subscriber(self) -> bool:
        return bool(self.flags & 0x1)

    def matches_pool(self, pool_id: bytes) -> bool:
        """Check the truncated id against a full 32-byte pool id"""
        return int.from_bytes(pool_id[:POOL_ID_BITS // 8], "big") == self.pool_id


def decode_position_info(info: int) -> PositionInfo:
    """Split a packed PositionInfo word into its fields"""
    if info < 0 or info >> 256:
        raise ValueError("PositionInfo must be a uint256")
    return PositionInfo(
        pool_id=info >> POOL_ID_OFFSET,
        tick_lower=to_int24(info >> TICK_LOWER_OFFSET),
        tick_upper=to_int24(info >> TICK_UPPER_OFFSET),
        flags=info & _FLAGS_MASK,
    )


def encode_position_info(pool_id: int, tick_lower: int, tick_upper: int, flags: int = 0) -> int:
    """Pack fields into a PositionInfo word (inverse of decode_position_info)"""
    if pool_id < 0 or pool_id >> POOL_ID_BITS:
        raise ValueError("pool_id must fit in 200 bits")
    return (
        (pool_id << POOL_ID_OFFSET)
        | (from_int24(tick_upper) << TICK_UPPER_OFFSET)
        | (from_int24(tick_lower) << TICK_LOWER_OFFSET)
        | (flags & _FLAGS_MASK)
    )


PoolKey = Tuple[str, str, int, int, str]


def compute_pool_id(currency0: str, currency1: str, fee: int, tick_spacing: int, hooks: str) -> bytes:
    """keccak256(abi.encode(PoolKey))"""
    encoded = abi_encode(
        ['address', 'address', 'uint24', 'int24', 'address'],
        [
            Web3.to_checksum_address(currency0),
            Web3.to_checksum_address(currency1),
            fee,
            tick_spacing,
            Web3.to_checksum_address(hooks),
        ],
    )
    return bytes(Web3.keccak(encoded))


def compute_position_id(owner: str, tick_lower: int, tick_upper: int, salt: bytes) -> bytes:
    """
    PoolManager position key

    keccak256(abi.encodePacked(owner, int24 tickLower, int24 tickUpper, bytes32 salt)).
    Positions minted through the PositionManager use the manager as owner and
    the token id as salt.
    """
    return bytes(Web3.solidity_keccak(
        ['address', 'int24', 'int24', 'bytes32'],
        [Web3.to_checksum_address(owner), tick_lower, tick_upper, salt],
    ))


def token_id_salt(token_id: int) -> bytes:
    return token_id.to_bytes(32, "big")
