"""Text formatting for price messages and pickers."""

from decimal import Decimal
from typing import Optional

from . import config

PRICE_EMOJI = "\U0001f4b0"
SUCCESS_EMOJI = "✅"
ERROR_EMOJI = "⚠️"
FAIL_EMOJI = "❌"

NO_COINS_TEXT = f'{ERROR_EMOJI} No currencies selected yet. Use "Choose currencies".'
TRY_LATER_TEXT = f"{FAIL_EMOJI} Could not get rates. Try again later."
FETCH_ERROR_TEXT = f"{FAIL_EMOJI} Error while fetching rates."


def format_price(value: float) -> str:
    """Format ``value`` as a price string."""
    # limit precision to avoid floating point artifacts like
    # ``0.00013000000000000002``
    d = Decimal(value).quantize(Decimal("1e-8"))
    text = format(d.normalize(), "f")
    if "." in text:
        frac = text.split(".")[1]
        if len(frac) == 1:
            text += "0"
    return text


def format_change(change: Optional[float]) -> str:
    if change is None:
        return "n/a"
    return f"{change:.2f}%"


def format_price_line(coin: str, price: float, change: Optional[float]) -> str:
    """Return ``💰 BITCOIN: 50000$ (2.34% in 24h)``."""
    return (
        f"{PRICE_EMOJI} {coin.upper()}: {format_price(price)}$ "
        f"({format_change(change)} in 24h)"
    )


def format_prices(coins: list[str], data: dict[str, dict]) -> str:
    """Return one line per coin in ``coins`` that has a price in ``data``.

    Coins without a price are skipped. The result is empty if none had one.
    """
    currency = config.VS_CURRENCY
    lines = []
    for coin in coins:
        entry = data.get(coin)
        if not isinstance(entry, dict) or entry.get(currency) is None:
            continue
        lines.append(
            format_price_line(
                coin, float(entry[currency]), entry.get(f"{currency}_24h_change")
            )
        )
    return "\n".join(lines)


def coin_label(symbol: str, name: str, selected: bool) -> str:
    label = f"{symbol.upper()} ({name})"
    return f"{SUCCESS_EMOJI} {label}" if selected else label
