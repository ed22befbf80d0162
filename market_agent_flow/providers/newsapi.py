"""NewsAPI client (everything endpoint)."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

import httpx

from ..errors import ConfigurationError, UnknownError
from ..instance import utcnow
from .http import get_json

logger = logging.getLogger(__name__)

PROVIDER = "NewsAPI"
SORT_ORDERS = ("relevancy", "popularity", "publishedAt")


@dataclass
class NewsArticle:
    title: str
    description: str
    url: str
    published_at: str
    source: str
    url_to_image: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NewsSearchResult:
    query: str
    total_results: int
    articles: list[NewsArticle] = field(default_factory=list)


def parse_articles(raw: list[dict[str, Any]]) -> list[NewsArticle]:
    """Keep only articles that carry both a title and a description."""
    articles = []
    for a in raw or []:
        if not a.get("title") or not a.get("description"):
            continue
        articles.append(
            NewsArticle(
                title=a["title"],
                description=a["description"],
                url=a.get("url") or "",
                published_at=a.get("publishedAt") or "",
                source=(a.get("source") or {}).get("name") or "",
                url_to_image=a.get("urlToImage"),
            )
        )
    return articles


class NewsApiClient:
    """Searches recent articles within a fixed lookback window."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://newsapi.org/v2",
        timeout: float = 15.0,
        max_page_size: int = 100,
        lookback_days: int = 7,
        client: httpx.Client | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_page_size = max_page_size
        self.lookback_days = lookback_days
        self._client = client or httpx.Client()
        self._clock = clock

    @classmethod
    def from_settings(cls, settings, client: httpx.Client | None = None) -> NewsApiClient:
        return cls(
            api_key=settings.news_api_key,
            base_url=settings.news_api_base_url,
            timeout=settings.news_api_timeout,
            max_page_size=settings.news_max_page_size,
            lookback_days=settings.news_lookback_days,
            client=client,
        )

    def search(
        self,
        query: str,
        *,
        language: str = "en",
        sort_by: str = "publishedAt",
        page_size: int = 10,
    ) -> NewsSearchResult:
        if not self.api_key:
            raise ConfigurationError("NEWS_API_KEY is not set")
        if sort_by not in SORT_ORDERS:
            sort_by = "publishedAt"

        since = self._clock() - timedelta(days=self.lookback_days)
        params = {
            "q": query,
            "language": language,
            "sortBy": sort_by,
            "pageSize": max(1, min(page_size, self.max_page_size)),
            "from": since.isoformat(),
        }
        logger.info("Searching news for %r", query)
        body = get_json(
            self._client,
            PROVIDER,
            f"{self.base_url}/everything",
            params=params,
            headers={"X-API-Key": self.api_key, "Accept": "application/json"},
            timeout=self.timeout,
            entity="news",
        )
        if body.get("status") != "ok":
            raise UnknownError(PROVIDER, f"status {body.get('status')}: {body.get('message', '')}")

        return NewsSearchResult(
            query=query,
            total_results=body.get("totalResults", 0),
            articles=parse_articles(body.get("articles", [])),
        )

    def close(self) -> None:
        self._client.close()
