"""
Positions Module

The query path: validate the wallet, consult the valuation cache, and on a
miss run a discovery pass (all protocol adapters in parallel), assemble,
enrich and sort the positions before caching them.
"""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple

from web3 import Web3

from ..errors import DiscoveryFailed, InvalidWalletAddress, LpTrackerError
from ..infra import CorrelationContext, submit_in_context
from ..protocols import ProtocolAdapter
from ..types import CacheQuality, Position, PositionState, PositionsResult
from .assembler import PositionAssembler
from .cache import ValuationCache, classify_quality
from .enrichment import PositionEnricher

logger = logging.getLogger(__name__)


def normalize_wallet(wallet: str) -> str:
    """
    Validate and checksum a wallet address

    Raises:
        InvalidWalletAddress: Not a 20-byte hex address (or bad checksum)
    """
    if not isinstance(wallet, str) or not Web3.is_address(wallet.strip()):
        raise InvalidWalletAddress(wallet)
    return Web3.to_checksum_address(wallet.strip())


class PositionsModule:
    """
    Position valuation queries

    Usage:
        module = PositionsModule(adapters, enricher, cache)
        result = module.get_positions("0x...")
        for position in result.positions:
            print(position.id, position.value_usd)
    """

    def __init__(
        self,
        adapters: Sequence[ProtocolAdapter],
        enricher: PositionEnricher,
        cache: ValuationCache,
        assembler: Optional[PositionAssembler] = None,
        pass_executor: Optional[Executor] = None,
    ):
        """
        Args:
            adapters: One adapter per protocol
            enricher: Metadata/price enrichment
            cache: Shared valuation cache
            assembler: Position assembler (default instance if None)
            pass_executor: Runs the per-protocol passes; kept separate from
                the leaf-read executor so waiting passes never starve reads
        """
        self._adapters = list(adapters)
        self._enricher = enricher
        self._cache = cache
        self._assembler = assembler or PositionAssembler()
        self._owns_executor = pass_executor is None
        self._pass_executor = pass_executor or ThreadPoolExecutor(
            max_workers=max(1, len(self._adapters)),
            thread_name_prefix="lp-tracker-pass",
        )

    @property
    def cache(self) -> ValuationCache:
        return self._cache

    @property
    def adapters(self) -> List[ProtocolAdapter]:
        return list(self._adapters)

    # =========================================================================
    # Query
    # =========================================================================

    def get_positions(self, wallet: str, force_refresh: bool = False) -> PositionsResult:
        """
        Positions held by a wallet, served from cache when fresh

        Args:
            wallet: Wallet address (any case)
            force_refresh: Drop the cached entry and run a new pass

        Returns:
            PositionsResult; on total failure without a cached fallback the
            result is empty with last_updated=None

        Raises:
            InvalidWalletAddress: Malformed wallet (before any remote work)
        """
        wallet = normalize_wallet(wallet)

        try:
            entry, cached = self._cache.get_or_load(
                wallet,
                lambda: self.discover(wallet),
                force_refresh=force_refresh,
            )
        except LpTrackerError as e:
            logger.error(f"Position discovery failed for {wallet}, returning empty result: {e}")
            return PositionsResult.empty()

        return PositionsResult.from_entry(entry, cached=cached)

    def invalidate(self, wallet: str) -> bool:
        return self._cache.invalidate(normalize_wallet(wallet))

    # =========================================================================
    # Discovery pass
    # =========================================================================

    def _collect_all(self, wallet: str) -> Tuple[List[PositionState], Dict[str, Exception]]:
        futures = [
            (adapter, submit_in_context(self._pass_executor, adapter.collect, wallet))
            for adapter in self._adapters
        ]

        states: List[PositionState] = []
        failures: Dict[str, Exception] = {}
        for adapter, future in futures:
            try:
                adapter_states, fetch_errors = future.result()
            except LpTrackerError as e:
                logger.warning(f"{adapter.name} discovery failed for {wallet}: {e}")
                failures[adapter.name] = e
                continue
            except Exception as e:
                logger.exception(f"{adapter.name} discovery crashed for {wallet}: {e}")
                failures[adapter.name] = e
                continue

            states.extend(adapter_states)
            # A position that could not be fetched leaves the protocol's view incomplete
            if fetch_errors:
                logger.warning(
                    f"{adapter.name}: {len(fetch_errors)} positions failed to fetch for {wallet}"
                )
                failures[adapter.name] = fetch_errors[0]
        return states, failures

    def _assemble(self, states: Sequence[PositionState]) -> List[Position]:
        positions = []
        for state in states:
            try:
                positions.append(self._assembler.assemble(state))
            except ValueError as e:
                logger.warning(f"Dropping malformed {state.protocol.value} position state: {e}")
        return positions

    def discover(self, wallet: str) -> Tuple[List[Position], CacheQuality]:
        """
        Run one full discovery pass for a wallet (no cache involved)

        Returns:
            (positions sorted by descending USD value, quality)

        Raises:
            DiscoveryFailed: A protocol failed and no positions were found
        """
        with CorrelationContext("positions") as cid:
            logger.info(f"[{cid}] Discovering positions for {wallet}")

            states, failures = self._collect_all(wallet)
            # A failed protocol plus nothing found elsewhere says nothing about the wallet
            if failures and not states:
                raise DiscoveryFailed(wallet, {name: str(e) for name, e in failures.items()})

            positions = self._enricher.enrich(self._assemble(states))
            # Stable sort keeps discovery order for equal values
            positions.sort(key=lambda p: p.value_usd, reverse=True)

            quality = classify_quality(positions)
            if failures:
                quality = CacheQuality.PARTIAL

            logger.info(
                f"[{cid}] {len(positions)} positions for {wallet}, "
                f"quality={quality.value}, failed protocols={sorted(failures) or 'none'}"
            )
            return positions, quality

    def close(self):
        if self._owns_executor:
            self._pass_executor.shutdown(wait=False)
