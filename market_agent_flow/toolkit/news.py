"""News search tools (NewsAPI)."""

from __future__ import annotations

import re
from typing import Any

from ..providers.newsapi import NewsApiClient, NewsArticle
from ..tools import ToolSpec

CRYPTO_QUERY_CLAUSE = "(crypto OR cryptocurrency OR bitcoin OR blockchain OR digital OR currency)"

CRYPTO_KEYWORDS = (
    "bitcoin", "ethereum", "cryptocurrency", "crypto", "blockchain",
    "defi", "nft", "trading", "mining", "wallet", "exchange",
)
POSITIVE_WORDS = ("bull", "rise", "growth", "adoption", "innovation", "surge", "rally", "gain")
NEGATIVE_WORDS = ("bear", "crash", "regulation", "ban", "concern", "drop", "hack", "lawsuit")


def calculate_crypto_relevance(text: str, query: str) -> int:
    text = text.lower()
    score = len(re.findall(re.escape(query.lower()), text)) * 3 if query else 0
    score += sum(1 for keyword in CRYPTO_KEYWORDS if keyword in text)
    return score


def analyze_news_sentiment(articles: list[NewsArticle]) -> str:
    """Keyword sentiment over titles and descriptions."""
    if not articles:
        return "neutral"
    positive = negative = 0
    for article in articles:
        text = f"{article.title} {article.description}".lower()
        positive += sum(1 for w in POSITIVE_WORDS if w in text)
        negative += sum(1 for w in NEGATIVE_WORDS if w in text)

    if positive > negative * 1.5:
        return "positive"
    if negative > positive * 1.5:
        return "negative"
    return "neutral"


def news_search_summary(query: str, count: int, sentiment: str) -> str:
    outlook = {
        "positive": "Coverage leans optimistic.",
        "negative": "Coverage is increasingly cautious.",
    }.get(sentiment, "Positive and negative coverage is mixed.")
    return f"Retrieved {count} articles about '{query}'.\nSentiment: {sentiment}\n{outlook}"


def search_news(
    client: NewsApiClient,
    query: str,
    *,
    language: str = "en",
    sort_by: str = "publishedAt",
    page_size: int = 10,
    crypto: bool = False,
) -> dict[str, Any]:
    """Search news; `crypto=True` narrows the query and ranks by crypto relevance."""
    effective_query = f"{query} AND {CRYPTO_QUERY_CLAUSE}" if crypto else query
    result = client.search(effective_query, language=language, sort_by=sort_by, page_size=page_size)

    articles = result.articles
    if crypto:
        articles = sorted(
            articles,
            key=lambda a: calculate_crypto_relevance(f"{a.title} {a.description}", query),
            reverse=True,
        )
    articles = articles[:page_size]

    sentiment = analyze_news_sentiment(articles)
    return {
        "query": query,
        "language": language,
        "articles": [a.to_dict() for a in articles],
        "total_found": result.total_results,
        "actual_returned": len(articles),
        "sentiment": sentiment,
        "message": news_search_summary(query, len(articles), sentiment),
    }


def build_news_tools(client: NewsApiClient) -> list[ToolSpec]:
    def search_news_tool(
        query: str, language: str = "en", sort_by: str = "publishedAt", page_size: int = 10
    ) -> dict:
        """Search recent news articles (last 7 days) for a keyword.

        sort_by is one of relevancy, popularity, publishedAt. page_size is capped at 100.
        """
        return search_news(client, query, language=language, sort_by=sort_by, page_size=page_size)

    def search_crypto_news(
        query: str, language: str = "en", sort_by: str = "publishedAt", page_size: int = 10
    ) -> dict:
        """Search recent cryptocurrency news for a keyword, ranked by crypto relevance."""
        return search_news(
            client, query, language=language, sort_by=sort_by, page_size=page_size, crypto=True
        )

    return [
        ToolSpec.from_callable(search_news_tool, name="search_news"),
        ToolSpec.from_callable(search_crypto_news),
    ]
