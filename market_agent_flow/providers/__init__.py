"""External data providers."""

from .coingecko import CoinGeckoClient, CryptoData
from .newsapi import NewsApiClient, NewsArticle, NewsSearchResult

__all__ = ["CoinGeckoClient", "CryptoData", "NewsApiClient", "NewsArticle", "NewsSearchResult"]
