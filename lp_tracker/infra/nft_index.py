"""
Off-chain NFT index client (Alchemy NFT API v3)

Used only for V4 discovery: the V4 PositionManager is not enumerable, so the
token ids a wallet owns come from an indexer. The index is best effort; when
no API key is configured it reports zero ids instead of failing.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

import httpx

from ..errors import UpstreamUnavailable
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class AlchemyNftIndex:
    """
    Owner -> token id lookup for one NFT contract

    Usage:
        index = AlchemyNftIndex(api_key="...")
        ids = index.owned_token_ids(wallet, V4_POSITION_MANAGER)
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://base-mainnet.g.alchemy.com/nft/v3",
        timeout: float = 10.0,
        max_pages: int = 10,
        retry_policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.Client] = None,
    ):
        self._api_key = api_key or None
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_pages = max_pages
        self._retry = retry_policy or RetryPolicy()
        self._client = client
        self._owns_client = client is None
        self._client_lock = threading.Lock()
        self._warned = False

    @property
    def configured(self) -> bool:
        return self._api_key is not None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def _fetch_page(self, owner: str, contract: str, page_key: Optional[str]) -> Dict[str, Any]:
        params = {
            "owner": owner,
            "contractAddresses[]": contract,
            "withMetadata": "false",
        }
        if page_key:
            params["pageKey"] = page_key

        response = self._get_client().get(
            f"{self._base_url}/{self._api_key}/getNFTsForOwner",
            params=params,
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json()

    def owned_token_ids(self, owner: str, contract: str) -> List[int]:
        """
        List token ids of `contract` held by `owner`.

        Returns:
            Token ids in index order (deduplicated); [] when not configured

        Raises:
            UpstreamUnavailable: The index could not be reached after retries
        """
        if not self.configured:
            if not self._warned:
                logger.warning("ALCHEMY_API_KEY not set, V4 positions will not be discovered")
                self._warned = True
            return []

        token_ids: List[int] = []
        seen = set()
        page_key: Optional[str] = None

        for page in range(self._max_pages):
            try:
                data = self._retry.run(
                    lambda: self._fetch_page(owner, contract, page_key),
                    "nft_index:getNFTsForOwner",
                )
            except Exception as e:
                raise UpstreamUnavailable.indexer_failed(e) from e

            for nft in data.get("ownedNfts") or []:
                raw_id = nft.get("tokenId")
                if raw_id is None:
                    continue
                try:
                    # Alchemy returns decimal strings; older payloads used hex
                    if isinstance(raw_id, str) and raw_id.lower().startswith("0x"):
                        token_id = int(raw_id, 16)
                    else:
                        token_id = int(raw_id)
                except ValueError:
                    logger.warning(f"Skipping malformed tokenId from index: {raw_id!r}")
                    continue
                if token_id not in seen:
                    seen.add(token_id)
                    token_ids.append(token_id)

            page_key = data.get("pageKey")
            if not page_key:
                break
        else:
            logger.warning(
                f"NFT index pagination stopped after {self._max_pages} pages for {owner}"
            )

        logger.debug(f"NFT index: {owner} holds {len(token_ids)} tokens of {contract}")
        return token_ids

    def close(self):
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
