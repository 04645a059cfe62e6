"""
Test Off-chain Collaborators

Tests for the NFT index (V4 discovery) and the price feed, with mocked HTTP.
"""

import sys
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock, MagicMock

import httpx
import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_tracker.infra import AlchemyNftIndex, GeckoTerminalPriceFeed, RetryPolicy
from lp_tracker.errors import UpstreamUnavailable, ErrorCode

WALLET = "0x1111111111111111111111111111111111111111"
V4_PM = "0x7c5f5a4bbd8fd63184577525326123b519429bdc"
WETH = "0x4200000000000000000000000000000000000006"
USDC = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"

NO_WAIT = RetryPolicy(max_attempts=2, jitter=0.0, sleep=lambda _: None)


def _json_response(payload):
    response = Mock()
    response.status_code = 200
    response.json.return_value = payload
    response.raise_for_status = Mock()
    return response


def _status_error(status):
    request = httpx.Request("GET", "https://api.example.com")
    return httpx.HTTPStatusError(
        str(status), request=request, response=httpx.Response(status, request=request)
    )


class TestNftIndex:

    def test_unconfigured_returns_empty(self):
        client = MagicMock()
        index = AlchemyNftIndex(api_key=None, client=client)

        assert not index.configured
        assert index.owned_token_ids(WALLET, V4_PM) == []
        client.get.assert_not_called()

    def test_paginates_and_parses_ids(self):
        """Decimal and hex ids, deduplicated across pages"""
        client = MagicMock()
        client.get.side_effect = [
            _json_response({"ownedNfts": [{"tokenId": "12"}, {"tokenId": "0x0d"}], "pageKey": "abc"}),
            _json_response({"ownedNfts": [{"tokenId": "13"}, {"tokenId": "14"}, {"tokenId": "bad"}]}),
        ]
        index = AlchemyNftIndex(api_key="key", client=client, retry_policy=NO_WAIT)

        assert index.owned_token_ids(WALLET, V4_PM) == [12, 13, 14]
        assert client.get.call_count == 2

        first_params = client.get.call_args_list[0].kwargs["params"]
        second_params = client.get.call_args_list[1].kwargs["params"]
        assert first_params["owner"] == WALLET
        assert first_params["contractAddresses[]"] == V4_PM
        assert "pageKey" not in first_params
        assert second_params["pageKey"] == "abc"
        assert client.get.call_args_list[0].args[0].endswith("/key/getNFTsForOwner")

    def test_page_limit(self):
        client = MagicMock()
        client.get.side_effect = lambda *a, **kw: _json_response(
            {"ownedNfts": [{"tokenId": str(client.get.call_count)}], "pageKey": "more"}
        )
        index = AlchemyNftIndex(api_key="key", client=client, max_pages=3, retry_policy=NO_WAIT)

        assert index.owned_token_ids(WALLET, V4_PM) == [1, 2, 3]
        assert client.get.call_count == 3

    def test_failure_raises_upstream_unavailable(self):
        client = MagicMock()
        client.get.side_effect = httpx.ConnectError("refused")
        index = AlchemyNftIndex(api_key="key", client=client, retry_policy=NO_WAIT)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            index.owned_token_ids(WALLET, V4_PM)
        assert exc_info.value.code == ErrorCode.INDEXER_UNAVAILABLE
        assert client.get.call_count == 2


def _price_payload(prices):
    return {"data": {"id": "x", "type": "simple_token_price", "attributes": {"token_prices": prices}}}


class TestPriceFeed:

    def test_parses_prices(self):
        print("Testing price parsing...")

        client = MagicMock()
        client.get.return_value = _json_response(_price_payload({
            WETH: "2500.12",
            USDC.upper().replace("0X", "0x"): "0.9998",
            "0x9999999999999999999999999999999999999999": None,
        }))
        feed = GeckoTerminalPriceFeed(client=client, retry_policy=NO_WAIT)

        prices = feed.get_prices([WETH, USDC, "0x9999999999999999999999999999999999999999"])

        assert prices == {WETH: Decimal("2500.12"), USDC: Decimal("0.9998")}
        url = client.get.call_args.args[0]
        assert "/simple/networks/base/token_price/" in url

        print("  price parsing: PASSED")

    def test_batches_requests(self):
        client = MagicMock()
        client.get.return_value = _json_response(_price_payload({}))
        feed = GeckoTerminalPriceFeed(client=client, batch_size=2, retry_policy=NO_WAIT)

        addresses = [f"0x{i:040x}" for i in range(1, 6)]
        feed.get_prices(addresses)

        assert client.get.call_count == 3

    def test_memo_avoids_refetch(self, clock):
        client = MagicMock()
        client.get.return_value = _json_response(_price_payload({WETH: "2500"}))
        feed = GeckoTerminalPriceFeed(client=client, cache_ttl=30, clock=clock, retry_policy=NO_WAIT)

        feed.get_prices([WETH])
        feed.get_prices([WETH])
        assert client.get.call_count == 1

        clock.advance(31)
        feed.get_prices([WETH])
        assert client.get.call_count == 2

    def test_total_failure_raises(self):
        client = MagicMock()
        client.get.side_effect = _status_error(503)
        feed = GeckoTerminalPriceFeed(client=client, retry_policy=NO_WAIT)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            feed.get_prices([WETH])
        assert exc_info.value.code == ErrorCode.PRICING_UNAVAILABLE

    def test_failure_with_memoised_prices_degrades(self, clock):
        """Memoised prices are still returned when the refresh fails"""
        client = MagicMock()
        client.get.side_effect = [
            _json_response(_price_payload({WETH: "2500"})),
            _status_error(404),
        ]
        feed = GeckoTerminalPriceFeed(client=client, clock=clock, retry_policy=NO_WAIT)

        feed.get_prices([WETH])
        prices = feed.get_prices([WETH, USDC])

        assert prices == {WETH: Decimal("2500")}

    def test_empty_input(self):
        client = MagicMock()
        feed = GeckoTerminalPriceFeed(client=client)

        assert feed.get_prices([]) == {}
        client.get.assert_not_called()
