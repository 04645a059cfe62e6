"""
Exception definitions for LP Tracker
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """
    Unified error codes for position tracking

    1xxx - RPC errors
    2xxx - Decode errors
    3xxx - Upstream service errors
    4xxx - Input errors
    5xxx - Position/Pool errors
    6xxx - Discovery errors
    9xxx - Configuration errors
    """
    # RPC errors (mostly recoverable)
    RPC_CONNECTION_FAILED = "1001"
    RPC_TIMEOUT = "1002"
    RPC_RATE_LIMITED = "1003"
    RPC_INVALID_RESPONSE = "1004"
    RPC_EXECUTION_REVERTED = "1005"

    # Decode errors (permanent)
    DECODE_FAILED = "2001"
    EMPTY_RESULT = "2002"

    # Upstream services
    INDEXER_UNAVAILABLE = "3001"
    PRICING_UNAVAILABLE = "3002"

    # Input errors
    INVALID_WALLET = "4001"

    # Position errors
    POSITION_NOT_FOUND = "5001"
    POOL_NOT_FOUND = "5002"

    # Discovery errors
    DISCOVERY_FAILED = "6001"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"


class LpTrackerError(Exception):
    """
    Base exception for all LP tracker errors

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the error might succeed on retry
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        """Indicate if the operation should be retried"""
        return self.recoverable


class RpcError(LpTrackerError):
    """
    Chain read errors

    Transport failures (connection, timeout, rate limit) are recoverable and
    trigger endpoint rotation. A reverted call is permanent: every equivalent
    endpoint would revert the same way.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RPC_CONNECTION_FAILED,
        original_error: Optional[Exception] = None,
        endpoint: Optional[str] = None,
        recoverable: bool = True,
    ):
        super().__init__(
            message,
            code,
            recoverable=recoverable,
            original_error=original_error,
            details={"endpoint": endpoint} if endpoint else None,
        )
        self.endpoint = endpoint

    @classmethod
    def connection_failed(cls, endpoint: str, error: Exception = None) -> "RpcError":
        return cls(
            f"Failed to connect to RPC endpoint: {endpoint}",
            ErrorCode.RPC_CONNECTION_FAILED,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def timeout(cls, endpoint: str, timeout_seconds: float) -> "RpcError":
        return cls(
            f"RPC request timed out after {timeout_seconds}s",
            ErrorCode.RPC_TIMEOUT,
            endpoint=endpoint,
        )

    @classmethod
    def rate_limited(cls, endpoint: str) -> "RpcError":
        return cls(
            "RPC rate limit exceeded",
            ErrorCode.RPC_RATE_LIMITED,
            endpoint=endpoint,
        )

    @classmethod
    def invalid_response(cls, endpoint: str, reason: str) -> "RpcError":
        return cls(
            f"Invalid RPC response: {reason}",
            ErrorCode.RPC_INVALID_RESPONSE,
            endpoint=endpoint,
        )

    @classmethod
    def reverted(cls, endpoint: str, reason: str) -> "RpcError":
        return cls(
            f"Call reverted: {reason}",
            ErrorCode.RPC_EXECUTION_REVERTED,
            endpoint=endpoint,
            recoverable=False,
        )


class DecodeError(LpTrackerError):
    """
    Malformed or unexpected on-chain data - never retried

    Raised when:
    - ABI decoding of a call result fails
    - A call returns no data (contract missing at address)
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.DECODE_FAILED,
        original_error: Optional[Exception] = None,
        target: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            original_error=original_error,
            details={"target": target} if target else None,
        )
        self.target = target

    @classmethod
    def failed(cls, target: str, function: str, error: Exception) -> "DecodeError":
        return cls(
            f"Failed to decode {function} result from {target}: {error}",
            original_error=error,
            target=target,
        )

    @classmethod
    def empty(cls, target: str, function: str) -> "DecodeError":
        return cls(
            f"Empty result for {function} at {target}",
            ErrorCode.EMPTY_RESULT,
            target=target,
        )


class UpstreamUnavailable(LpTrackerError):
    """
    Off-chain collaborator unavailable - degrades results, never fails them

    Raised when:
    - NFT index requests fail
    - Pricing feed is down
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        original_error: Optional[Exception] = None,
        service: Optional[str] = None,
        recoverable: bool = True,
    ):
        super().__init__(
            message,
            code,
            recoverable=recoverable,
            original_error=original_error,
            details={"service": service} if service else None,
        )
        self.service = service

    @classmethod
    def indexer_failed(cls, error: Exception) -> "UpstreamUnavailable":
        return cls(
            f"NFT index request failed: {error}",
            ErrorCode.INDEXER_UNAVAILABLE,
            original_error=error,
            service="alchemy",
        )

    @classmethod
    def pricing_failed(cls, error: Exception) -> "UpstreamUnavailable":
        return cls(
            f"Price feed request failed: {error}",
            ErrorCode.PRICING_UNAVAILABLE,
            original_error=error,
            service="geckoterminal",
        )


class InvalidWalletAddress(LpTrackerError):
    """Malformed wallet input - client error, raised before any remote work"""

    def __init__(self, wallet: str):
        super().__init__(
            f"Invalid wallet address: {wallet!r}",
            ErrorCode.INVALID_WALLET,
            recoverable=False,
            details={"wallet": wallet},
        )
        self.wallet = wallet


class PositionNotFound(LpTrackerError):
    """
    Position not found - not recoverable

    Raised when the pool of a live position cannot be resolved or has no
    initialized price. Burned tokens are skipped, not raised.
    """

    def __init__(
        self,
        message: str,
        position_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.POSITION_NOT_FOUND,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            details={"position_id": position_id},
        )
        self.position_id = position_id

    @classmethod
    def pool_not_found(cls, position_id: str, pool: str) -> "PositionNotFound":
        return cls(
            f"Pool not found for position {position_id}: {pool}",
            position_id=position_id,
            code=ErrorCode.POOL_NOT_FOUND,
        )


class DiscoveryFailed(LpTrackerError):
    """A discovery pass had failing adapters and found no positions elsewhere"""

    def __init__(self, wallet: str, errors: Optional[dict] = None):
        super().__init__(
            f"Position discovery failed for {wallet}",
            ErrorCode.DISCOVERY_FAILED,
            recoverable=True,
            details={"wallet": wallet, "errors": errors or {}},
        )
        self.wallet = wallet
        self.errors = errors or {}


class ConfigurationError(LpTrackerError):
    """
    Configuration-related errors

    Raised when:
    - Required configuration is missing
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"Invalid configuration '{param}': {reason}", ErrorCode.CONFIG_INVALID)
