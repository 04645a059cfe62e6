"""
Token price feed (GeckoTerminal simple token price API)

Returns USD unit prices keyed by lower-case token address. Unknown tokens
are simply absent from the result; they are never reported as zero.
"""

import logging
import threading
import time
from concurrent.futures import Executor
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from ..errors import UpstreamUnavailable
from .retry import RetryPolicy, submit_in_context

logger = logging.getLogger(__name__)


class GeckoTerminalPriceFeed:
    """
    Batched USD price lookup with a short in-process memo

    Usage:
        feed = GeckoTerminalPriceFeed()
        prices = feed.get_prices(["0x4200000000000000000000000000000000000006"])
        weth_usd = prices.get("0x4200000000000000000000000000000000000006")
    """

    def __init__(
        self,
        base_url: str = "https://api.geckoterminal.com/api/v2",
        network: str = "base",
        timeout: float = 10.0,
        batch_size: int = 30,
        cache_ttl: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        executor: Optional[Executor] = None,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._base_url = base_url.rstrip("/")
        self._network = network
        self._timeout = timeout
        self._batch_size = max(1, batch_size)
        self._cache_ttl = cache_ttl
        self._retry = retry_policy or RetryPolicy()
        self._executor = executor
        self._client = client
        self._owns_client = client is None
        self._client_lock = threading.Lock()
        self._clock = clock

        self._memo: Dict[str, Tuple[Decimal, float]] = {}
        self._memo_lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = httpx.Client(
                        timeout=self._timeout,
                        headers={"Accept": "application/json"},
                    )
        return self._client

    # =========================================================================
    # Memo
    # =========================================================================

    def _cached(self, addresses: List[str]) -> Tuple[Dict[str, Decimal], List[str]]:
        now = self._clock()
        hits: Dict[str, Decimal] = {}
        misses: List[str] = []
        with self._memo_lock:
            for address in addresses:
                entry = self._memo.get(address)
                if entry is not None and now - entry[1] < self._cache_ttl:
                    hits[address] = entry[0]
                else:
                    misses.append(address)
        return hits, misses

    def _remember(self, prices: Dict[str, Decimal]):
        now = self._clock()
        with self._memo_lock:
            for address, price in prices.items():
                self._memo[address] = (price, now)

    def clear(self):
        with self._memo_lock:
            self._memo.clear()

    # =========================================================================
    # Fetch
    # =========================================================================

    def _fetch_batch(self, batch: List[str]) -> Dict[str, Decimal]:
        url = (
            f"{self._base_url}/simple/networks/{self._network}"
            f"/token_price/{','.join(batch)}"
        )

        def request():
            response = self._get_client().get(url, timeout=self._timeout)
            response.raise_for_status()
            return response.json()

        data = self._retry.run(request, "price_feed:token_price")
        return self._parse(data)

    @staticmethod
    def _parse(data: dict) -> Dict[str, Decimal]:
        token_prices = (
            ((data or {}).get("data") or {}).get("attributes") or {}
        ).get("token_prices") or {}

        prices: Dict[str, Decimal] = {}
        for address, raw in token_prices.items():
            if raw is None:
                continue
            try:
                price = Decimal(str(raw))
            except InvalidOperation:
                logger.debug(f"Ignoring unparseable price for {address}: {raw!r}")
                continue
            if price.is_finite() and price >= 0:
                prices[address.lower()] = price
        return prices

    def get_prices(self, addresses: Iterable[str]) -> Dict[str, Decimal]:
        """
        Resolve USD prices for token addresses

        Returns:
            {lower_address: price}; tokens without a price are absent

        Raises:
            UpstreamUnavailable: Every request failed and nothing was memoised
        """
        wanted = list(dict.fromkeys(a.lower() for a in addresses))
        if not wanted:
            return {}

        prices, misses = self._cached(wanted)
        if not misses:
            return prices

        batches = [
            misses[i:i + self._batch_size]
            for i in range(0, len(misses), self._batch_size)
        ]

        results: List[Dict[str, Decimal]] = []
        errors: List[Exception] = []

        if self._executor is not None and len(batches) > 1:
            futures = [submit_in_context(self._executor, self._fetch_batch, b) for b in batches]
            for future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    errors.append(e)
        else:
            for batch in batches:
                try:
                    results.append(self._fetch_batch(batch))
                except Exception as e:
                    errors.append(e)

        for error in errors:
            logger.warning(f"Price batch failed: {error}")

        if errors and not results and not prices:
            raise UpstreamUnavailable.pricing_failed(errors[-1])

        fetched: Dict[str, Decimal] = {}
        for batch_prices in results:
            fetched.update(batch_prices)
        self._remember(fetched)
        prices.update(fetched)

        logger.debug(f"Prices resolved for {len(prices)}/{len(wanted)} tokens")
        return prices

    def close(self):
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
