"""
Error definitions for LP Tracker
"""

from .exceptions import (
    ErrorCode,
    LpTrackerError,
    RpcError,
    DecodeError,
    UpstreamUnavailable,
    InvalidWalletAddress,
    PositionNotFound,
    DiscoveryFailed,
    ConfigurationError,
)

__all__ = [
    "ErrorCode",
    "LpTrackerError",
    "RpcError",
    "DecodeError",
    "UpstreamUnavailable",
    "InvalidWalletAddress",
    "PositionNotFound",
    "DiscoveryFailed",
    "ConfigurationError",
]
