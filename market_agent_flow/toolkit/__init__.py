"""Market, news and crypto tools exposed to agents."""

from __future__ import annotations

import random

from ..providers.coingecko import CoinGeckoClient
from ..providers.newsapi import NewsApiClient
from ..tools import ToolSpec
from .crypto import build_crypto_data_tool
from .crypto_analysis import build_crypto_analysis_tool
from .market_analysis import build_market_analysis_tool
from .news import build_news_tools
from .stock import build_stock_price_tool


def build_toolset(
    market_client: CoinGeckoClient,
    news_client: NewsApiClient,
    rng: random.Random | None = None,
) -> dict[str, ToolSpec]:
    """Every tool keyed by name, sharing one set of provider clients."""
    rng = rng or random.Random()
    tools = [
        build_crypto_data_tool(market_client),
        *build_news_tools(news_client),
        build_stock_price_tool(rng),
        build_market_analysis_tool(news_client, rng),
        build_crypto_analysis_tool(market_client, news_client),
    ]
    return {t.name: t for t in tools}


__all__ = ["build_toolset"]
