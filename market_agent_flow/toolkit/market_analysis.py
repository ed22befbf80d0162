"""Combined stock + news market analysis.

For demonstration and education only; not investment advice.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Callable, Literal

from ..errors import ConfigurationError, ProviderError
from ..instance import utcnow
from ..providers.newsapi import NewsApiClient
from ..tools import ToolSpec
from .news import search_news
from .stock import get_stock_quote

logger = logging.getLogger(__name__)

SECTOR_STOCKS = {
    "Technology": ["AAPL", "GOOGL", "MSFT", "META"],
    "Automotive": ["TSLA", "7203"],
    "E-commerce": ["AMZN"],
    "Semiconductors": ["NVDA"],
    "Entertainment": ["NFLX"],
}

NEWS_TOPICS = {
    "earnings": ("earnings", "revenue", "quarter"),
    "new product": ("launch", "unveil", "new product"),
    "partnership": ("partnership", "partner", "collaboration"),
    "acquisition": ("acquisition", "acquire", "merger"),
    "regulation": ("regulation", "regulator", "antitrust"),
    "innovation": ("innovation", "breakthrough", "artificial intelligence"),
}


def price_trend(change: float) -> str:
    if change > 0:
        return "up"
    if change < 0:
        return "down"
    return "flat"


def price_volatility(change_percent: float) -> str:
    change = abs(change_percent)
    if change > 5:
        return "high"
    if change > 2:
        return "medium"
    return "low"


def market_sentiment(change_percent: float) -> str:
    if change_percent > 3:
        return "very positive"
    if change_percent > 1:
        return "positive"
    if change_percent > -1:
        return "neutral"
    if change_percent > -3:
        return "negative"
    return "very negative"


def recommendation(change_percent: float, news_count: int) -> str:
    score = change_percent + news_count * 0.1
    if score > 2:
        return "strong buy"
    if score > 0.5:
        return "buy"
    if score > -0.5:
        return "hold"
    if score > -2:
        return "sell"
    return "strong sell"


def risk_level(abs_change_percent: float, news_count: int) -> str:
    score = abs_change_percent + (2 if news_count > 8 else 1 if news_count > 4 else 0)
    if score > 5:
        return "high"
    if score > 2:
        return "medium"
    return "low"


def confidence_score(change_percent: float, news_count: int) -> int:
    score = 50 + min(news_count * 5, 25)
    if abs(change_percent) < 1:
        score += 10
    if abs(change_percent) > 10:
        score -= 15
    return max(0, min(100, score))


def extract_news_topics(articles: list[dict[str, Any]]) -> list[str]:
    found = []
    for topic, keywords in NEWS_TOPICS.items():
        for article in articles:
            text = f"{article.get('title', '')} {article.get('description', '')}".lower()
            if any(k in text for k in keywords):
                found.append(topic)
                break
    return found


def sector_comparison(sector: str, symbol: str) -> dict[str, Any]:
    peers = [s for s in SECTOR_STOCKS.get(sector, []) if s != symbol]
    position = "one of the major players" if peers else "in a niche position"
    return {"sector": sector, "peers": peers, "analysis": f"{symbol} is {position} in the {sector} sector"}


def count_recent(articles: list[dict[str, Any]], now: datetime, hours: int = 24) -> int:
    cutoff = now - timedelta(hours=hours)
    count = 0
    for article in articles:
        try:
            published = datetime.fromisoformat(article.get("published_at", "").replace("Z", "+00:00"))
        except ValueError:
            continue
        if published.tzinfo is None:
            published = published.replace(tzinfo=now.tzinfo)
        if published > cutoff:
            count += 1
    return count


def summary_message(analysis: dict[str, Any]) -> str:
    price = analysis["price_analysis"]
    news = analysis["news_analysis"]
    overall = analysis["overall_assessment"]
    lines = [
        f"{analysis['company_name']} ({analysis['symbol']}) market analysis:",
        f"Price: ${price['current_price']} ({price['price_change_percent']:+}%) - {price['trend']} trend",
        f"News: {news['total_news']} articles ({news['recent_news_count']} in the last 24h)",
        f"Sentiment: {news['sentiment']}",
        f"Recommendation: {overall['recommendation']}",
        f"Risk level: {overall['risk_level']}",
        f"Confidence: {overall['confidence_score']}%",
    ]
    if analysis["analysis_status"] == "partial":
        lines.append("News data unavailable: partial analysis.")
    if price["volatility"] == "high":
        lines.append("Watch out for high volatility.")
    return "\n".join(lines)


def analyze_market(
    news_client: NewsApiClient | None,
    symbol: str,
    *,
    analysis_type: str = "quick",
    include_comparison: bool = False,
    rng: random.Random,
    clock: Callable[[], datetime] = utcnow,
) -> dict[str, Any]:
    logger.info("Analysing %s (%s)", symbol, analysis_type)
    quote = get_stock_quote(symbol, rng=rng, clock=clock)
    if "error" in quote:
        return {
            "symbol": symbol.upper(),
            "error": quote["error"],
            "message": f"Analysis of {symbol} failed: {quote['message']}",
        }

    articles: list[dict[str, Any]] = []
    status = "completed"
    news_error = None
    if news_client is None:
        status, news_error = "partial", "news provider not configured"
    else:
        try:
            news = search_news(
                news_client, quote["symbol"], page_size=10 if analysis_type == "detailed" else 5
            )
            articles = news["articles"]
        except (ProviderError, ConfigurationError) as e:
            logger.warning("News lookup for %s failed, continuing with partial analysis: %s", symbol, e)
            status, news_error = "partial", str(e)
    if status == "completed" and not articles:
        status = "partial"

    change_percent = quote["change_percent"]
    now = clock()
    analysis: dict[str, Any] = {
        "symbol": quote["symbol"],
        "company_name": quote["name"],
        "sector": quote["sector"],
        "analysis_date": now.isoformat(),
        "analysis_status": status,
        "price_analysis": {
            "current_price": quote["current"],
            "price_change": quote["change"],
            "price_change_percent": change_percent,
            "trend": price_trend(quote["change"]),
            "volatility": price_volatility(change_percent),
        },
        "news_analysis": {
            "total_news": len(articles),
            "recent_news_count": count_recent(articles, now),
            "sentiment": market_sentiment(change_percent),
        },
        "overall_assessment": {
            "recommendation": recommendation(change_percent, len(articles)),
            "risk_level": risk_level(abs(change_percent), len(articles)),
            "confidence_score": confidence_score(change_percent, len(articles)),
        },
    }
    if news_error:
        analysis["news_error"] = news_error

    if analysis_type == "detailed":
        volume = quote["volume"]
        analysis["detailed_metrics"] = {
            "market_cap": quote["market_cap"],
            "volume": volume,
            "volume_analysis": "high" if volume > 10_000_000 else "medium" if volume > 5_000_000 else "low",
            "news_topics": extract_news_topics(articles),
        }

    if include_comparison:
        analysis["sector_comparison"] = sector_comparison(quote["sector"], quote["symbol"])

    return {
        "symbol": quote["symbol"],
        "analysis": analysis,
        "price_data": quote,
        "news_data": articles,
        "message": summary_message(analysis),
    }


def build_market_analysis_tool(
    news_client: NewsApiClient | None, rng: random.Random | None = None
) -> ToolSpec:
    rng = rng or random.Random()

    def analyze_market_tool(
        symbol: str,
        analysis_type: Literal["quick", "detailed"] = "quick",
        include_comparison: bool = False,
    ) -> dict:
        """Combine a stock quote with related news into trend, sentiment, risk and a recommendation.

        For demonstration only; not investment advice.
        """
        return analyze_market(
            news_client,
            symbol,
            analysis_type=analysis_type,
            include_comparison=include_comparison,
            rng=rng,
        )

    return ToolSpec.from_callable(analyze_market_tool, name="analyze_market")
