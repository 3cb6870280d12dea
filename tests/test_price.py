import pytest
from aresponses import Response, ResponsesMockServer

import coinfeedbot.api as api
import coinfeedbot.handlers as handlers
from coinfeedbot.formatting import (
    FETCH_ERROR_TEXT,
    NO_COINS_TEXT,
    TRY_LATER_TEXT,
    format_price,
    format_prices,
)
from coinfeedbot.state import StateStore


class DummyBot:
    def __init__(self):
        self.sent = []

    async def send_message(self, chat_id, text, **kwargs):
        self.sent.append((chat_id, text))


def test_format_price():
    assert format_price(50000.0) == "50000"
    assert format_price(1.5) == "1.50"
    assert format_price(0.00013000000000000002) == "0.00013"


def test_format_prices_skips_missing_coins():
    data = {"bitcoin": {"usd": 50000, "usd_24h_change": 2.3412}}
    text = format_prices(["bitcoin", "ethereum"], data)
    assert text == "\U0001f4b0 BITCOIN: 50000$ (2.34% in 24h)"


def test_format_prices_without_change():
    text = format_prices(["bitcoin"], {"bitcoin": {"usd": 1.0}})
    assert "n/a" in text


@pytest.mark.asyncio
async def test_build_price_message_without_coins(monkeypatch):
    async def fail(*args, **kwargs):
        raise AssertionError("should not query prices")

    monkeypatch.setattr(api, "get_prices", fail)
    assert await handlers.build_price_message([]) == NO_COINS_TEXT


@pytest.mark.asyncio
async def test_build_price_message_nothing_usable(monkeypatch):
    async def fake_prices(coins, user=None):
        return {}

    monkeypatch.setattr(api, "get_prices", fake_prices)
    assert await handlers.build_price_message(["bitcoin"]) == TRY_LATER_TEXT


@pytest.mark.asyncio
async def test_build_price_message_provider_error(monkeypatch):
    async def fake_prices(coins, user=None):
        return None

    monkeypatch.setattr(api, "get_prices", fake_prices)
    assert await handlers.build_price_message(["bitcoin"]) == FETCH_ERROR_TEXT


@pytest.mark.asyncio
async def test_deliver_now_sends_one_line_per_priced_coin(monkeypatch):
    async def fake_prices(coins, user=None):
        assert coins == ["bitcoin", "ethereum"]
        return {"bitcoin": {"usd": 50000, "usd_24h_change": 2.34}}

    monkeypatch.setattr(api, "get_prices", fake_prices)
    store = StateStore()
    store.get(1).confirmed = ["bitcoin", "ethereum"]
    bot = DummyBot()
    await handlers.deliver_now(bot, store, 1)
    assert len(bot.sent) == 1
    chat_id, text = bot.sent[0]
    assert chat_id == 1
    assert text.splitlines() == ["\U0001f4b0 BITCOIN: 50000$ (2.34% in 24h)"]


@pytest.mark.asyncio
async def test_get_prices_from_api():
    async with ResponsesMockServer() as ars:
        ars.add(
            "api.coingecko.com",
            "/api/v3/simple/price",
            "GET",
            Response(
                text='{"bitcoin": {"usd": 5.0, "usd_24h_change": -1.5}}',
                status=200,
                headers={"Content-Type": "application/json"},
            ),
        )
        prices = await api.get_prices(["bitcoin"])
    assert prices == {"bitcoin": {"usd": 5.0, "usd_24h_change": -1.5}}


@pytest.mark.asyncio
async def test_get_prices_error_returns_none():
    async with ResponsesMockServer() as ars:
        ars.add(
            "api.coingecko.com",
            "/api/v3/simple/price",
            "GET",
            Response(text="error", status=500),
        )
        assert await api.get_prices(["bitcoin"]) is None


@pytest.mark.asyncio
async def test_get_market_chart_converts_timestamps():
    async with ResponsesMockServer() as ars:
        ars.add(
            "api.coingecko.com",
            "/api/v3/coins/bitcoin/market_chart",
            "GET",
            Response(
                text='{"prices": [[1000, 1.0], [2000, 2.0]]}',
                status=200,
                headers={"Content-Type": "application/json"},
            ),
        )
        data = await api.get_market_chart("bitcoin", 7)
    assert data == [(1.0, 1.0), (2.0, 2.0)]
