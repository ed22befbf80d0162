"""Simulated stock quotes.

Prices are a random walk of up to ±5% around a fixed base price; the random
source is injected.
"""

from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Callable

from ..instance import utcnow
from ..tools import ToolSpec

STOCK_MASTER: dict[str, dict[str, Any]] = {
    "AAPL": {"name": "Apple Inc.", "sector": "Technology", "base_price": 180},
    "GOOGL": {"name": "Alphabet Inc.", "sector": "Technology", "base_price": 140},
    "TSLA": {"name": "Tesla Inc.", "sector": "Automotive", "base_price": 200},
    "MSFT": {"name": "Microsoft Corporation", "sector": "Technology", "base_price": 380},
    "AMZN": {"name": "Amazon.com Inc.", "sector": "E-commerce", "base_price": 150},
    "META": {"name": "Meta Platforms Inc.", "sector": "Technology", "base_price": 350},
    "NVDA": {"name": "NVIDIA Corporation", "sector": "Semiconductors", "base_price": 500},
    "NFLX": {"name": "Netflix Inc.", "sector": "Entertainment", "base_price": 450},
    "7203": {"name": "Toyota Motor Corporation", "sector": "Automotive", "base_price": 2500},
    "6758": {"name": "Sony Group Corporation", "sector": "Technology", "base_price": 12000},
}


def _signed(value: float) -> str:
    return f"{'+' if value >= 0 else ''}{value:.2f}"


def get_stock_quote(
    symbol: str,
    *,
    include_news: bool = False,
    rng: random.Random,
    clock: Callable[[], datetime] = utcnow,
) -> dict[str, Any]:
    """Simulated quote for `symbol`, or an error object for unknown symbols."""
    symbol = symbol.upper()
    master = STOCK_MASTER.get(symbol)
    if master is None:
        available = list(STOCK_MASTER)
        return {
            "symbol": symbol,
            "error": "symbol not found",
            "available_symbols": available,
            "message": f"Symbol '{symbol}' not found. Available: {', '.join(available)}",
        }

    base = master["base_price"]
    current = base * (1 + (rng.random() - 0.5) * 0.1)
    change = current - base
    volume = rng.randrange(50_000_000) + 1_000_000
    shares_outstanding = rng.randrange(5_000_000_000) + 1_000_000_000

    quote = {
        "symbol": symbol,
        "name": master["name"],
        "sector": master["sector"],
        "current": round(current, 2),
        "change": round(change, 2),
        "change_percent": round(change / base * 100, 2),
        "volume": volume,
        "market_cap": round(current * shares_outstanding),
        "last_updated": clock().isoformat(),
    }
    quote["message"] = (
        f"{quote['name']} ({symbol}): ${quote['current']:.2f} "
        f"{_signed(quote['change'])} ({_signed(quote['change_percent'])}%)"
    )

    if include_news:
        related = [
            f"Investors focus on {master['name']} earnings",
            f"How {master['name']}'s new strategy could move the market",
            f"{master['sector']} sector trends and where {master['name']} stands",
        ]
        quote["related_news"] = related
        quote["message"] += f" Includes {len(related)} related headlines."
    return quote


def build_stock_price_tool(rng: random.Random | None = None) -> ToolSpec:
    rng = rng or random.Random()

    def get_stock_price(symbol: str, include_news: bool = False) -> dict:
        """Get the current (simulated) price, change, volume and market cap for a stock symbol.

        Known symbols: AAPL, GOOGL, TSLA, MSFT, AMZN, META, NVDA, NFLX, 7203, 6758.
        """
        return get_stock_quote(symbol, include_news=include_news, rng=rng)

    return ToolSpec.from_callable(get_stock_price)
