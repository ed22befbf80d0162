"""Crypto market data tool (CoinGecko)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from ..instance import utcnow
from ..providers.coingecko import CoinGeckoClient, CryptoData
from ..tools import ToolSpec


def analyze_volume(volume_usd: float) -> str:
    if volume_usd > 10_000_000_000:
        return "very high"
    if volume_usd > 1_000_000_000:
        return "high"
    if volume_usd > 100_000_000:
        return "moderate"
    if volume_usd > 10_000_000:
        return "low"
    return "very low"


def analyze_volatility(price_change_percent: float) -> str:
    change = abs(price_change_percent)
    if change > 20:
        return "very high"
    if change > 10:
        return "high"
    if change > 5:
        return "moderate"
    if change > 2:
        return "low"
    return "very low"


def analyze_market_cap(market_cap_usd: float) -> str:
    if market_cap_usd > 100_000_000_000:
        return "large cap (100B+ USD)"
    if market_cap_usd > 10_000_000_000:
        return "mid cap (10B-100B USD)"
    if market_cap_usd > 1_000_000_000:
        return "small cap (1B-10B USD)"
    if market_cap_usd > 100_000_000:
        return "micro cap (100M-1B USD)"
    return "nano cap (<100M USD)"


def crypto_summary(data: CryptoData, volume: str, volatility: str, market_cap: str) -> str:
    pct = data.price_change_percentage_24h
    direction = "up" if pct >= 0 else "down"
    return (
        f"{data.name} ({data.symbol}) market data\n\n"
        f"Price:\n"
        f"  - USD: ${data.current_price_usd:,}\n"
        f"  - JPY: ¥{data.current_price_jpy:,}\n\n"
        f"24h change:\n"
        f"  - {pct:.2f}% ({direction})\n"
        f"  - USD: ${data.price_change_24h:.4f}\n\n"
        f"Market:\n"
        f"  - Market cap (USD): ${data.market_cap_usd / 1e9:.2f}B ({market_cap})\n"
        f"  - Market cap (JPY): ¥{data.market_cap_jpy / 1e12:.2f}T\n"
        f"  - 24h volume (USD): ${data.total_volume_usd / 1e6:.2f}M\n\n"
        f"Analysis:\n"
        f"  - Volume: {volume}\n"
        f"  - Volatility: {volatility}\n\n"
        f"Last updated: {data.last_updated}"
    )


def fetch_crypto_data(
    client: CoinGeckoClient,
    crypto_id: str,
    clock: Callable[[], datetime] = utcnow,
) -> dict[str, Any]:
    data = client.get_coin(crypto_id)
    volume = analyze_volume(data.total_volume_usd)
    volatility = analyze_volatility(data.price_change_percentage_24h)
    market_cap = analyze_market_cap(data.market_cap_usd)
    return {
        "crypto_id": data.id,
        "data": data.to_dict(),
        "analysis": {"volume": volume, "volatility": volatility, "market_cap": market_cap},
        "message": crypto_summary(data, volume, volatility, market_cap),
        "timestamp": clock().isoformat(),
    }


def build_crypto_data_tool(client: CoinGeckoClient) -> ToolSpec:
    def get_crypto_data(crypto_id: str) -> dict:
        """Get current market data (price, 24h change, volume, market cap) for a cryptocurrency.

        crypto_id is a CoinGecko id such as bitcoin, ethereum, cardano, solana or dogecoin.
        """
        return fetch_crypto_data(client, crypto_id)

    return ToolSpec.from_callable(get_crypto_data)
