"""CoinGecko market data client."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

import httpx

from ..errors import NotFoundError
from .http import get_json

logger = logging.getLogger(__name__)

PROVIDER = "CoinGecko"

SUGGESTED_IDS = ["bitcoin", "ethereum", "cardano", "solana", "dogecoin", "chainlink", "polkadot"]


@dataclass
class CryptoData:
    """Market snapshot for one coin, in USD and JPY."""

    id: str
    symbol: str
    name: str
    current_price_usd: float
    current_price_jpy: float
    market_cap_usd: float
    market_cap_jpy: float
    total_volume_usd: float
    total_volume_jpy: float
    price_change_24h: float
    price_change_percentage_24h: float
    market_cap_change_24h: float
    market_cap_change_percentage_24h: float
    last_updated: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def parse_coin(body: dict[str, Any]) -> CryptoData | None:
    """Build CryptoData from a /coins/{id} response; None if market data is missing."""
    market = body.get("market_data") if isinstance(body, dict) else None
    if not market:
        return None

    def pick(key: str, currency: str) -> float:
        return (market.get(key) or {}).get(currency) or 0

    return CryptoData(
        id=body.get("id", ""),
        symbol=(body.get("symbol") or "N/A").upper(),
        name=body.get("name") or "N/A",
        current_price_usd=pick("current_price", "usd"),
        current_price_jpy=pick("current_price", "jpy"),
        market_cap_usd=pick("market_cap", "usd"),
        market_cap_jpy=pick("market_cap", "jpy"),
        total_volume_usd=pick("total_volume", "usd"),
        total_volume_jpy=pick("total_volume", "jpy"),
        price_change_24h=market.get("price_change_24h") or 0,
        price_change_percentage_24h=market.get("price_change_percentage_24h") or 0,
        market_cap_change_24h=market.get("market_cap_change_24h") or 0,
        market_cap_change_percentage_24h=market.get("market_cap_change_percentage_24h") or 0,
        last_updated=market.get("last_updated") or body.get("last_updated") or "",
    )


class CoinGeckoClient:
    """Thin wrapper over the CoinGecko v3 REST API."""

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        api_key: str = "",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client or httpx.Client()

    @classmethod
    def from_settings(cls, settings, client: httpx.Client | None = None) -> CoinGeckoClient:
        return cls(
            base_url=settings.coingecko_base_url,
            api_key=settings.coingecko_api_key,
            timeout=settings.coingecko_timeout,
            client=client,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-cg-demo-api-key"] = self.api_key
        return headers

    def get_coin(self, crypto_id: str) -> CryptoData:
        """Fetch current market data for `crypto_id` (e.g. "bitcoin")."""
        logger.info("Fetching market data for %s", crypto_id)
        body = get_json(
            self._client,
            PROVIDER,
            f"{self.base_url}/coins/{crypto_id}",
            params={
                "localization": "false",
                "tickers": "false",
                "market_data": "true",
                "community_data": "false",
                "developer_data": "false",
                "sparkline": "false",
            },
            headers=self._headers(),
            timeout=self.timeout,
            entity=f"cryptocurrency '{crypto_id}'",
        )
        data = parse_coin(body)
        if data is None:
            raise NotFoundError(
                f"{PROVIDER}: no market data for '{crypto_id}'. "
                f"Try one of: {', '.join(SUGGESTED_IDS)}"
            )
        return data

    def close(self) -> None:
        self._client.close()
