"""
Base protocol adapter interface

Each Uniswap generation implements discovery (which positions does a wallet
hold) and state fetching (what does one position currently look like).
Adapters only read chain state; they never sign or send anything.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from ..errors import LpTrackerError
from ..infra import ChainReader, AlchemyNftIndex, get_correlation_id, submit_in_context
from ..types import Protocol, RawPosition, PositionState

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ProtocolAdapter(ABC):
    """
    Abstract base class for protocol adapters

    Each adapter provides:
    - discover(wallet): raw positions held by the wallet
    - fetch_state(raw): live pool and position state for one raw position
    - collect(wallet): both of the above with per-position fan-out

    Remote reads are issued on a shared executor; a failing position is
    logged and reported without affecting its siblings.
    """

    protocol: Protocol
    name: str = "base"

    def __init__(
        self,
        chain: ChainReader,
        executor: Executor,
        nft_index: Optional[AlchemyNftIndex] = None,
        extra_pools: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            chain: Chain read client
            executor: Pool for leaf remote reads
            nft_index: Off-chain token id index (non-enumerable NFTs only)
            extra_pools: Additional pool addresses to scan (constant product only)
        """
        self._chain = chain
        self._executor = executor
        self._nft_index = nft_index
        self._extra_pools = list(extra_pools or [])

    @property
    def chain(self) -> ChainReader:
        return self._chain

    # ========== Protocol Operations ==========

    @abstractmethod
    def discover(self, wallet: str) -> List[RawPosition]:
        """
        Enumerate the wallet's positions for this protocol

        Args:
            wallet: Checksummed wallet address

        Returns:
            Raw positions (identifiers only, no pool state)

        Raises:
            LpTrackerError: Discovery could not run at all
        """
        ...

    @abstractmethod
    def fetch_state(self, raw: RawPosition) -> Optional[PositionState]:
        """
        Fetch live state for one raw position

        Returns:
            Position state, or None when the position is empty or gone
        """
        ...

    # ========== Fan-out ==========

    def _fan_out(
        self,
        fn: Callable[[T], R],
        items: Iterable[T],
        operation: str,
    ) -> Tuple[List[Tuple[T, R]], List[Exception]]:
        """
        Run fn over items concurrently, keeping successes and logging failures

        Returns:
            ([(item, result), ...] in input order, [errors])
        """
        futures = [(item, submit_in_context(self._executor, fn, item)) for item in items]

        results: List[Tuple[T, R]] = []
        errors: List[Exception] = []
        for item, future in futures:
            try:
                results.append((item, future.result()))
            except Exception as e:
                errors.append(e)
                cid = get_correlation_id()
                prefix = f"[{cid}] " if cid else ""
                level = logging.WARNING if isinstance(e, LpTrackerError) else logging.ERROR
                logger.log(level, f"{prefix}{self.name} {operation} failed for {item}: {e}")
        return results, errors

    def collect(self, wallet: str) -> Tuple[List[PositionState], List[Exception]]:
        """
        Discover and fetch every position of the wallet

        Returns:
            (states, fetch errors); positions that failed to fetch are
            absent from states and counted in the errors

        Raises:
            LpTrackerError: Only when discovery itself fails
        """
        raw_positions = self.discover(wallet)
        if not raw_positions:
            return [], []

        fetched, errors = self._fan_out(self.fetch_state, raw_positions, "fetch_state")
        states = [state for _, state in fetched if state is not None]

        logger.info(
            f"{self.name}: {len(states)} positions for {wallet} "
            f"({len(raw_positions)} discovered, {len(errors)} failed)"
        )
        return states, errors

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(protocol={self.protocol.value})"
