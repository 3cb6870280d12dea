"""Render price history charts with matplotlib."""

from datetime import datetime
from io import BytesIO

import matplotlib

matplotlib.use("Agg")

from matplotlib import pyplot as plt  # noqa: E402
from matplotlib.ticker import MaxNLocator  # noqa: E402

from . import config  # noqa: E402


def render_chart(labels: list[str], values: list[float], title: str) -> BytesIO:
    """Return a PNG line chart of ``values`` with one labelled series."""
    width, height = config.CHART_SIZE
    dpi = 100
    fig, ax = plt.subplots(figsize=(width / dpi, height / dpi), dpi=dpi)
    try:
        ax.plot(range(len(values)), values, color="blue", label=title)
        # nbins counts intervals, so one less than the tick cap
        locator = MaxNLocator(config.CHART_MAX_TICKS - 1, integer=True)
        ax.xaxis.set_major_locator(locator)
        ticks = [int(t) for t in ax.get_xticks() if 0 <= t < len(labels)]
        ax.set_xticks(ticks)
        ax.set_xticklabels([labels[t] for t in ticks], rotation=30, ha="right")
        ax.legend()
        fig.tight_layout()
        buf = BytesIO()
        fig.savefig(buf, format="png")
    finally:
        plt.close(fig)
    buf.seek(0)
    return buf


def render_price_chart(coin: str, prices: list[tuple[float, float]]) -> BytesIO:
    """Return a chart for ``(timestamp, price)`` pairs of ``coin``."""
    labels = [datetime.fromtimestamp(ts).strftime("%d.%m.%Y") for ts, _ in prices]
    values = [price for _, price in prices]
    title = f"{coin.upper()} ({config.VS_CURRENCY.upper()})"
    return render_chart(labels, values, title)
