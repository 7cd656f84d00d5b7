from __future__ import annotations

import json
import logging

import pytest

from callprice.adapters.static import StaticPriceProvider, parse_mock_prices
from callprice.core.logging import JsonFormatter, setup_logging
from callprice.core.models import PriceQuery


def test_parse_mock_prices_skips_bad_entries() -> None:
    assert parse_mock_prices("btc:65000, ETH:3000,broken,SOL:abc,DOGE:-1") == {"BTC": 65000.0, "ETH": 3000.0}
    assert parse_mock_prices("") == {}


@pytest.mark.asyncio
async def test_static_provider() -> None:
    provider = StaticPriceProvider({"BTC": 65000.0})
    provider.set_price("eth", 3000)

    assert (await provider.fetch_price(PriceQuery(symbol="ETH"))).price == 3000.0
    assert await provider.fetch_price(PriceQuery(symbol="SOL")) is None


def test_json_formatter_includes_structured_fields() -> None:
    record = logging.LogRecord("callprice", logging.INFO, __file__, 1, "price_chain_hit", None, None)
    record.event = "price_chain_hit"
    record.provider = "yahoo"
    record.tried = ["test_mode", "yahoo"]
    record.unrelated = "dropped"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["msg"] == "price_chain_hit"
    assert payload["provider"] == "yahoo"
    assert payload["tried"] == ["test_mode", "yahoo"]
    assert "unrelated" not in payload


def test_setup_logging_installs_json_handler() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("debug")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
