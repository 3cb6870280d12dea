"""Asynchronous helpers for interacting with the CoinGecko API.

Coin lists used by the pickers are memoized in :class:`CoinListCache`
instances which keep serving the last good result when a refresh fails.
Price and chart queries are not cached and return ``None`` on failure.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from urllib.parse import quote

import aiohttp
from aiolimiter import AsyncLimiter

from . import config

COINGECKO_LIMITER = AsyncLimiter(30, 60)


@dataclass(frozen=True)
class CoinRef:
    """A tradable asset as listed by CoinGecko."""

    id: str
    symbol: str
    name: str


def encoded(coin: str) -> str:
    """URL-encode a coin ID for use in API requests."""

    return quote(coin, safe="-")


def retry_delay(retry_after: Optional[str], attempt: int) -> float:
    """Return the seconds to wait before retrying a rate limited request.

    Only the delay-seconds form of ``Retry-After`` is honoured, anything else
    falls back to exponential back-off.
    """
    if retry_after:
        try:
            return max(float(retry_after), 0.0)
        except ValueError:
            config.logger.warning("unusable Retry-After header %r", retry_after)
    return float(2**attempt)


async def api_get(
    url: str,
    session: Optional[aiohttp.ClientSession] = None,
    headers: Optional[dict] = None,
    user: Optional[int] = None,
) -> Optional[aiohttp.ClientResponse]:
    """Perform an HTTP GET request with optional rate limiting.

    Parameters
    ----------
    url:
        Endpoint to request.
    session:
        Existing ``ClientSession`` to use. If omitted a new one is created.
    headers:
        Optional headers to include in the request.
    user:
        Chat ID used for logging purposes.

    Returns
    -------
    Optional[aiohttp.ClientResponse]
        The response object or ``None`` when the request fails. The body is
        already read so it stays available after the session closes.
    """
    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession()
    try:
        limiter = COINGECKO_LIMITER if "coingecko.com" in url else None
        for attempt in range(5):
            if limiter:
                async with limiter:
                    resp = await session.get(url, headers=headers)
            else:
                resp = await session.get(url, headers=headers)
            await resp.read()
            config.logger.info(
                "api_request user=%s url=%s status=%s", user, url, resp.status
            )
            if resp.status != 429:
                return resp
            await asyncio.sleep(retry_delay(resp.headers.get("Retry-After"), attempt))
        return resp
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        config.logger.error("api request failed: %s", exc)
        return None
    finally:
        if owns_session and session:
            await session.close()


async def get_json(url: str, *, user: Optional[int] = None) -> Optional[object]:
    """Return the decoded JSON body for ``url`` or ``None`` on failure."""
    resp = await api_get(url, headers=config.COINGECKO_HEADERS, user=user)
    if not resp:
        return None
    if resp.status != 200:
        config.logger.warning("coingecko status %s for %s", resp.status, url)
        return None
    try:
        return await resp.json()
    except (aiohttp.ContentTypeError, ValueError) as exc:
        config.logger.warning("invalid JSON from %s: %s", url, exc)
        return None


def parse_coins(data: object) -> Optional[list[CoinRef]]:
    """Convert a CoinGecko coin list into :class:`CoinRef` items.

    Returns ``None`` when ``data`` is not a list, which is how CoinGecko
    reports errors such as rate limiting.
    """
    if not isinstance(data, list):
        return None
    coins: list[CoinRef] = []
    for item in data:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        coins.append(
            CoinRef(
                id=item["id"],
                symbol=item.get("symbol") or "",
                name=item.get("name") or "",
            )
        )
    return coins


class CoinListCache:
    """Memoize a coin list query for ``ttl`` seconds.

    ``fetch`` is awaited on a miss and should return the raw JSON payload.
    Failures leave the previous value in place.
    """

    def __init__(
        self,
        name: str,
        ttl: int,
        fetch: Callable[[], Awaitable[object]],
    ) -> None:
        self.name = name
        self.ttl = ttl
        self.fetch = fetch
        self.coins: list[CoinRef] = []
        self.fetched_at = 0.0

    def is_fresh(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return bool(self.coins) and now - self.fetched_at < self.ttl

    async def get(self) -> list[CoinRef]:
        if self.is_fresh():
            return self.coins
        try:
            data = await self.fetch()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            config.logger.error("error fetching %s: %s", self.name, exc)
            return self.coins
        coins = parse_coins(data)
        if coins is None:
            config.logger.warning("unexpected %s response: %r", self.name, data)
            return self.coins
        self.coins = coins
        self.fetched_at = time.time()
        return self.coins

    def clear(self) -> None:
        self.coins = []
        self.fetched_at = 0.0


async def fetch_top_coins_raw() -> Optional[object]:
    url = (
        f"{config.COINGECKO_BASE_URL}/coins/markets"
        f"?vs_currency={config.VS_CURRENCY}&order=market_cap_desc"
        f"&per_page={config.TOP_COINS_LIMIT}&page=1"
    )
    return await get_json(url)


async def fetch_all_coins_raw() -> Optional[object]:
    return await get_json(f"{config.COINGECKO_BASE_URL}/coins/list")


TOP_COINS = CoinListCache("top coins", config.TOP_COINS_TTL, fetch_top_coins_raw)
ALL_COINS = CoinListCache("coin list", config.ALL_COINS_TTL, fetch_all_coins_raw)


async def get_top_coins() -> list[CoinRef]:
    """Return the top coins by market capitalization."""
    return await TOP_COINS.get()


async def get_all_coins() -> list[CoinRef]:
    """Return every coin known to CoinGecko, used for searching."""
    return await ALL_COINS.get()


async def get_prices(
    coins: list[str], *, user: Optional[int] = None
) -> Optional[dict[str, dict]]:
    """Return current prices and 24h change for ``coins``.

    Parameters
    ----------
    coins:
        List of coin IDs to query.
    user:
        Chat ID for logging.

    Returns
    -------
    Optional[dict[str, dict]]
        Mapping of coin ID to ``{"usd": ..., "usd_24h_change": ...}`` (keys
        follow the configured currency) or ``None`` if the request failed.
    """
    ids = ",".join(encoded(c) for c in coins)
    url = (
        f"{config.COINGECKO_BASE_URL}/simple/price?ids={ids}"
        f"&vs_currencies={config.VS_CURRENCY}&include_24hr_change=true"
    )
    data = await get_json(url, user=user)
    if not isinstance(data, dict):
        return None
    return data


async def get_market_chart(
    coin: str, days: int, *, user: Optional[int] = None
) -> Optional[list[tuple[float, float]]]:
    """Return historical price data for ``coin``.

    Parameters
    ----------
    coin:
        Coin ID to fetch prices for.
    days:
        Number of days in the past to include.
    user:
        Chat ID for logging.

    Returns
    -------
    list[tuple[float, float]] | None
        List of ``(timestamp, price)`` tuples with timestamps in seconds.
    """
    url = (
        f"{config.COINGECKO_BASE_URL}/coins/{encoded(coin)}/market_chart"
        f"?vs_currency={config.VS_CURRENCY}&days={days}"
    )
    data = await get_json(url, user=user)
    if not isinstance(data, dict) or not isinstance(data.get("prices"), list):
        config.logger.warning("chart request failed for %s: %r", coin, data)
        return None
    return [(p[0] / 1000, p[1]) for p in data["prices"]]
