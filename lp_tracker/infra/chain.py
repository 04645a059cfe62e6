"""
Chain read client for Base

Provides a read-only JSON-RPC interface with:
- Multiple endpoint fallback (rotated on transient errors)
- Retry with exponential backoff (RetryPolicy)
- Request timeout management
- ABI encode/decode of eth_call requests via eth_abi
- JSON-RPC batching of independent reads (read_many)
"""

import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, List, Optional, Sequence, Tuple, Union

import httpx
from eth_abi import decode as abi_decode, encode as abi_encode
from web3 import Web3

from ..errors import RpcError, DecodeError, ConfigurationError
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

# Node error codes that mean "call reverted" rather than transport trouble
_REVERT_CODES = {3, -32015}
_RATE_LIMIT_CODES = {-32005, -32029, 429}


@lru_cache(maxsize=None)
def function_selector(signature: str) -> bytes:
    """4-byte selector for a canonical signature like 'balanceOf(address)'"""
    return bytes(Web3.keccak(text=signature)[:4])


@dataclass(frozen=True)
class AbiFunction:
    """
    A view function described by its canonical ABI types.

    Example:
        BALANCE_OF = AbiFunction("balanceOf", ("address",), ("uint256",))
        data = BALANCE_OF.encode(wallet)
        (balance,) = BALANCE_OF.decode(raw)
    """
    name: str
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_selector(self.signature)

    def encode(self, *args) -> bytes:
        if len(args) != len(self.inputs):
            raise ValueError(f"{self.signature} expects {len(self.inputs)} args, got {len(args)}")
        if not self.inputs:
            return self.selector
        return self.selector + abi_encode(list(self.inputs), list(args))

    def decode(self, data: bytes) -> tuple:
        return tuple(abi_decode(list(self.outputs), data))


class ChainReader:
    """
    Read-only EVM JSON-RPC client

    Usage:
        reader = ChainReader([
            "https://primary-rpc.example.com",
            "https://mainnet.base.org",
        ])

        (supply,) = reader.read(pool, TOTAL_SUPPLY)
        block = reader.call("eth_blockNumber", [])
    """

    def __init__(
        self,
        endpoint: Union[str, List[str]],
        timeout_seconds: float = 15.0,
        retry_policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize chain reader

        Args:
            endpoint: RPC endpoint URL or list of equivalent URLs
            timeout_seconds: Per-request timeout
            retry_policy: Backoff policy shared by all calls
            client: Pre-built httpx client (tests, connection sharing)
        """
        self._endpoints = [endpoint] if isinstance(endpoint, str) else list(endpoint)
        if not self._endpoints:
            raise ConfigurationError.missing("RPC endpoint")

        self._timeout = timeout_seconds
        self._retry = retry_policy or RetryPolicy()
        self._current_endpoint_idx = 0
        self._endpoint_lock = threading.Lock()
        self._client = client
        self._owns_client = client is None
        self._client_lock = threading.Lock()
        self._request_id = 0

    @property
    def endpoint(self) -> str:
        """Current active endpoint"""
        return self._endpoints[self._current_endpoint_idx]

    @property
    def endpoints(self) -> List[str]:
        return list(self._endpoints)

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client (thread-safe)"""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = httpx.Client(
                        timeout=self._timeout,
                        headers={"Content-Type": "application/json"},
                    )
        return self._client

    def _rotate_endpoint(self, failed_endpoint: Optional[str] = None):
        """Rotate to next endpoint on failure"""
        if len(self._endpoints) <= 1:
            return
        with self._endpoint_lock:
            # Another thread may already have moved off the failed endpoint
            if failed_endpoint is not None and self.endpoint != failed_endpoint:
                return
            self._current_endpoint_idx = (self._current_endpoint_idx + 1) % len(self._endpoints)
            logger.info(f"Rotating to RPC endpoint: {self.endpoint}")

    def _next_request_id(self) -> int:
        with self._endpoint_lock:
            self._request_id += 1
            return self._request_id

    # =========================================================================
    # JSON-RPC
    # =========================================================================

    def _request_body(self, method: str, params: List[Any]) -> dict:
        return {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": method,
            "params": params,
        }

    def _post(self, endpoint: str, body: Any) -> Any:
        """POST a request (or batch) and return the parsed JSON body"""
        try:
            response = self._get_client().post(endpoint, json=body, timeout=self._timeout)
        except httpx.TimeoutException as e:
            raise RpcError.timeout(endpoint, self._timeout) from e
        except httpx.RequestError as e:
            raise RpcError.connection_failed(endpoint, e) from e

        if response.status_code == 429:
            raise RpcError.rate_limited(endpoint)
        if response.status_code >= 400:
            raise RpcError(
                f"HTTP error {response.status_code}",
                endpoint=endpoint,
                recoverable=response.status_code >= 500,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RpcError.invalid_response(endpoint, f"non-JSON body: {e}") from e

    def _unwrap(self, endpoint: str, payload: Any) -> Any:
        """Result of one JSON-RPC response object, or the mapped RpcError"""
        if not isinstance(payload, dict):
            raise RpcError.invalid_response(endpoint, f"unexpected payload type {type(payload).__name__}")

        if "error" in payload and payload["error"]:
            error = payload["error"]
            error_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            error_code = error.get("code") if isinstance(error, dict) else None

            if error_code in _REVERT_CODES or "revert" in error_msg.lower():
                rpc_error = RpcError.reverted(endpoint, error_msg)
            elif error_code in _RATE_LIMIT_CODES or "rate limit" in error_msg.lower():
                rpc_error = RpcError.rate_limited(endpoint)
            else:
                rpc_error = RpcError(f"RPC error: {error_msg}", endpoint=endpoint)
            rpc_error.details["rpc_error_code"] = error_code
            raise rpc_error

        if "result" not in payload:
            raise RpcError.invalid_response(endpoint, "missing result")
        return payload["result"]

    def _call_once(self, method: str, params: List[Any]) -> Any:
        endpoint = self.endpoint
        return self._unwrap(endpoint, self._post(endpoint, self._request_body(method, params)))

    def _batch_once(self, requests: Sequence[Tuple[str, List[Any]]]) -> List[Any]:
        endpoint = self.endpoint
        bodies = [self._request_body(method, params) for method, params in requests]
        payload = self._post(endpoint, bodies)

        # Some nodes answer a rejected batch with a single error object
        if isinstance(payload, dict):
            self._unwrap(endpoint, payload)
        if not isinstance(payload, list):
            raise RpcError.invalid_response(endpoint, f"batch answered with {type(payload).__name__}")

        by_id = {entry.get("id"): entry for entry in payload if isinstance(entry, dict)}
        results: List[Any] = []
        for body in bodies:
            entry = by_id.get(body["id"])
            if entry is None:
                raise RpcError.invalid_response(endpoint, f"batch response missing id {body['id']}")
            try:
                results.append(self._unwrap(endpoint, entry))
            except RpcError as e:
                # Transient entry errors retry the whole batch
                if e.recoverable:
                    raise
                results.append(e)
        return results

    def _on_retry(self, error: Exception):
        self._rotate_endpoint(getattr(error, "endpoint", None))

    def call(self, method: str, params: List[Any]) -> Any:
        """
        Make a JSON-RPC call with retry and endpoint failover

        Raises:
            RpcError: On RPC failure after retries, or immediately on revert
        """
        return self._retry.run(
            lambda: self._call_once(method, params),
            f"rpc:{method}",
            on_retry=self._on_retry,
        )

    def call_batch(self, requests: Sequence[Tuple[str, List[Any]]]) -> List[Any]:
        """
        Send several JSON-RPC calls as one batch request

        Args:
            requests: (method, params) pairs

        Returns:
            Results in request order. A call that failed permanently on its
            own (a revert) holds its RpcError in place of a result.

        Raises:
            RpcError: Transport failure of the batch after retries
        """
        if not requests:
            return []
        return self._retry.run(
            lambda: self._batch_once(requests),
            f"rpc:batch[{len(requests)}]",
            on_retry=self._on_retry,
        )

    def _result_bytes(self, result: Any) -> bytes:
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError.invalid_response(self.endpoint, f"eth_call returned {result!r}")
        try:
            return bytes.fromhex(result[2:])
        except ValueError as e:
            raise RpcError.invalid_response(self.endpoint, f"bad hex result: {e}") from e

    def eth_call(self, to: str, data: bytes, block: str = "latest") -> bytes:
        """Execute eth_call and return the raw result bytes"""
        return self._result_bytes(self.call("eth_call", [{"to": to, "data": "0x" + data.hex()}, block]))

    @staticmethod
    def _decode(address: str, function: AbiFunction, raw: bytes) -> tuple:
        if not raw:
            raise DecodeError.empty(address, function.signature)
        try:
            return function.decode(raw)
        except Exception as e:
            raise DecodeError.failed(address, function.signature, e) from e

    def read(self, address: str, function: AbiFunction, *args) -> tuple:
        """
        Call a view function and decode its outputs

        Returns:
            Tuple of decoded output values (always a tuple, even for one output)

        Raises:
            RpcError: Transport failure or revert
            DecodeError: Empty or malformed return data
        """
        return self._decode(address, function, self.eth_call(address, function.encode(*args)))

    def read_many(self, calls: Sequence[Tuple[str, AbiFunction, tuple]]) -> List[tuple]:
        """
        Read independent view functions in a single batched round trip

        Returns:
            Decoded outputs in call order

        Raises:
            RpcError, DecodeError: The first failing call, in call order
        """
        if not calls:
            return []

        results = self.call_batch([
            ("eth_call", [{"to": address, "data": "0x" + function.encode(*args).hex()}, "latest"])
            for address, function, args in calls
        ])

        decoded = []
        for (address, function, _), result in zip(calls, results):
            if isinstance(result, Exception):
                raise result
            decoded.append(self._decode(address, function, self._result_bytes(result)))
        return decoded

    def close(self):
        """Close HTTP client"""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
