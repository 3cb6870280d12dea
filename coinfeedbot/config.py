"""Configuration and helper utilities for CoinFeedBot.

This module loads environment variables, configures logging and exposes
constants used across the bot.
"""

import logging
import os
import re
from logging.handlers import WatchedFileHandler

from dotenv import load_dotenv

load_dotenv()

TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}:\d{2}$")


def parse_duration(value: str) -> int:
    """Return seconds for a duration string like '15m' or '1h'."""
    if value.isdigit():
        return int(value)
    match = re.fullmatch(r"(\d+)([dhms])", value.lower())
    if not match:
        raise ValueError("invalid interval format")
    num, unit = match.groups()
    factor = {"d": 86400, "h": 3600, "m": 60, "s": 1}[unit]
    return int(num) * factor


def parse_time(value: str) -> tuple[int, int, int]:
    """Return ``(hour, minute, second)`` for a ``HH:MM:SS`` string.

    Hours are limited to 0-23 and minutes/seconds to 0-59. The same bound is
    used for interval lengths and for times of day.
    """
    value = value.strip()
    if not TIME_PATTERN.match(value):
        raise ValueError("invalid time format")
    hour, minute, second = (int(part) for part in value.split(":"))
    if hour > 23 or minute > 59 or second > 59:
        raise ValueError("time out of range")
    return hour, minute, second


def parse_interval(value: str) -> int:
    """Return the number of seconds in a ``HH:MM:SS`` interval.

    A zero length interval is rejected.
    """
    hour, minute, second = parse_time(value)
    seconds = hour * 3600 + minute * 60 + second
    if seconds <= 0:
        raise ValueError("interval must be at least one second")
    return seconds


BOT_NAME = "CoinFeedBot"
TELEGRAM_TOKEN = os.getenv("TELEGRAM_TOKEN") or os.getenv("TOKEN")
WEBHOOK_URL = os.getenv("WEBHOOK_URL") or os.getenv("RENDER_EXTERNAL_URL")
PORT = int(os.getenv("PORT", "3000"))
TIMEZONE = os.getenv("TIMEZONE", "UTC")
VS_CURRENCY = os.getenv("VS_CURRENCY", "usd").lower()

COINGECKO_API_KEY = os.getenv("COINGECKO_API_KEY")
COINGECKO_BASE_URL = (
    os.getenv("COINGECKO_BASE_URL") or "https://api.coingecko.com/api/v3"
)
COINGECKO_HEADERS = (
    {"x-cg-pro-api-key": COINGECKO_API_KEY} if COINGECKO_API_KEY else None
)

TOP_COINS_LIMIT = 50
TOP_COINS_TTL = parse_duration(os.getenv("TOP_COINS_TTL", "30m"))
ALL_COINS_TTL = parse_duration(os.getenv("ALL_COINS_TTL", "6h"))

PAGE_SIZE = 10
SEARCH_LIMIT = 20
KEPT_SEARCHES = 5
CHART_PERIODS = (7, 30, 365)
CHART_SIZE = (800, 400)
CHART_MAX_TICKS = 10

LOG_FILE = os.getenv("LOG_FILE")
_handlers = [logging.StreamHandler()]
if LOG_FILE:
    _handlers.append(WatchedFileHandler(LOG_FILE))

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    handlers=_handlers,
    force=True,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)
