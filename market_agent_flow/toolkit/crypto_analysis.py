"""Cryptocurrency analysis report combining CoinGecko market data and NewsAPI news.

If exactly one of the two upstream calls fails (or returns no articles),
the report is still produced with status "partial". If both fail, the
market data error is raised.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from ..errors import ConfigurationError, ProviderError, WorkflowError
from ..instance import utcnow
from ..providers.coingecko import CoinGeckoClient, CryptoData
from ..providers.newsapi import NewsApiClient, NewsArticle
from ..tools import ToolSpec
from .crypto import fetch_crypto_data
from .news import search_news

logger = logging.getLogger(__name__)

MIN_NEWS_COUNT = 1
MAX_NEWS_COUNT = 20
DEFAULT_NEWS_COUNT = 15

SENTIMENT_SCORES = {
    "very positive": 90,
    "positive": 70,
    "neutral": 50,
    "negative": 30,
    "very negative": 10,
}

TOPIC_KEYWORDS = {
    "price action": ("price", "surge", "drop", "rally", "crash", "pump"),
    "technology": ("development", "upgrade", "technology", "innovation"),
    "regulation": ("regulation", "regulatory", "compliance", "legal"),
    "adoption": ("adoption", "mainstream", "institutional", "integration"),
    "partnerships": ("partnership", "collaboration", "alliance"),
    "DeFi": ("defi", "decentralized", "yield", "liquidity"),
    "NFT": ("nft", "collectible", "digital art"),
    "institutional investment": ("institutional", "fund", "investment", "corporate"),
    "updates": ("update", "upgrade", "release", "launch"),
    "security": ("security", "hack", "vulnerability", "breach"),
}


@dataclass
class MarketSummary:
    current_price_usd: float
    current_price_jpy: float
    price_change_24h: float
    price_change_percentage_24h: float
    market_cap_usd: float
    volume_usd: float
    volatility_level: str


@dataclass
class NewsSentiment:
    total_articles: int
    sentiment: str
    key_topics: list[str]
    recent_news_count: int
    sentiment_score: int


@dataclass
class Conclusion:
    overall_assessment: str
    risk_level: str
    recommendation_summary: str
    key_factors: list[str]
    confidence_level: int


@dataclass
class DetailedAnalysis:
    technical_indicators: list[str]
    market_comparison: str
    future_outlook: str


@dataclass
class CryptoAnalysisReport:
    crypto_id: str
    crypto_name: str
    symbol: str
    analysis_date: str
    status: str  # "completed" or "partial"
    market_summary: MarketSummary | None
    news_sentiment: NewsSentiment | None
    conclusion: Conclusion
    detailed_analysis: DetailedAnalysis | None = None
    missing: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def clamp_news_count(count: int) -> int:
    return min(max(int(count), MIN_NEWS_COUNT), MAX_NEWS_COUNT)


def volatility_level(price_change_percent: float) -> str:
    change = abs(price_change_percent)
    if change > 15:
        return "very high"
    if change > 10:
        return "high"
    if change > 5:
        return "moderate"
    if change > 2:
        return "low"
    return "very low"


def extract_key_topics(articles: list[NewsArticle]) -> list[str]:
    topics = []
    for topic, keywords in TOPIC_KEYWORDS.items():
        if any(
            k in a.title.lower() or k in a.description.lower() for a in articles for k in keywords
        ):
            topics.append(topic)
    return topics


def count_recent_news(articles: list[NewsArticle], now: datetime, hours: int = 24) -> int:
    cutoff = now - timedelta(hours=hours)
    count = 0
    for a in articles:
        try:
            published = datetime.fromisoformat(a.published_at.replace("Z", "+00:00"))
        except ValueError:
            continue
        if published.tzinfo is None:
            published = published.replace(tzinfo=now.tzinfo)
        if published > cutoff:
            count += 1
    return count


def sentiment_score(sentiment: str) -> int:
    return SENTIMENT_SCORES.get(sentiment, 50)


def overall_assessment(data: CryptoData, sentiment: str) -> str:
    change = data.price_change_percentage_24h
    if change > 10 and sentiment == "positive":
        return "Strong uptrend backed by positive sentiment"
    if change < -10 and sentiment == "negative":
        return "Downtrend with deteriorating sentiment"
    if abs(change) < 2:
        return "Price is stable and range-bound"
    if data.total_volume_usd > 1_000_000_000:
        return "Trading volume and attention remain high"
    return "Mixed signals; careful monitoring required"


def assess_risk_level(volatility: float, volume: float, sentiment: str) -> str:
    score = 0
    if volatility > 15:
        score += 3
    elif volatility > 10:
        score += 2
    elif volatility > 5:
        score += 1

    if volume < 100_000_000:
        score += 1

    if sentiment in ("negative", "very negative"):
        score += 1

    if score >= 4:
        return "high"
    if score >= 2:
        return "medium"
    return "low"


def recommendation_summary(price_change: float, sentiment: str, news_count: int) -> str:
    if price_change > 5 and sentiment == "positive" and news_count >= 5:
        return "Uptrend and favourable news flow: short-term optimism"
    if price_change < -5 and sentiment == "negative":
        return "Downward pressure and negative sentiment: stay cautious"
    if abs(price_change) < 2:
        return "Stable price action; may suit long-term holding"
    return "Mixed signals; gather more information"


def identify_key_factors(data: CryptoData, articles: list[NewsArticle]) -> list[str]:
    factors = []
    if abs(data.price_change_percentage_24h) > 5:
        factors.append("large price move")
    if data.total_volume_usd > 1_000_000_000:
        factors.append("high trading volume")
    if len(articles) >= 10:
        factors.append("extensive news coverage")
    if data.market_cap_usd > 10_000_000_000:
        factors.append("large market cap")
    return factors


def confidence_level(data: CryptoData | None, news_count: int) -> int:
    confidence = 50 + min(news_count * 3, 30)
    if data is not None:
        if data.total_volume_usd > 1_000_000_000:
            confidence += 10
        elif data.total_volume_usd > 100_000_000:
            confidence += 5
        if data.market_cap_usd > 10_000_000_000:
            confidence += 10
    else:
        confidence -= 30
    return max(0, min(95, confidence))


def technical_indicators(data: CryptoData) -> list[str]:
    indicators = []
    change = data.price_change_percentage_24h
    if change > 5:
        indicators.append("short-term upward momentum")
    if change < -5:
        indicators.append("short-term downward momentum")
    if abs(change) < 2:
        indicators.append("trading within range")

    if data.total_volume_usd > 1_000_000_000:
        indicators.append("high liquidity")
    elif data.total_volume_usd < 100_000_000:
        indicators.append("low liquidity risk")
    return indicators


def market_comparison(data: CryptoData) -> str:
    cap = data.market_cap_usd
    if cap > 100_000_000_000:
        return "Large-cap asset on the level of Bitcoin and Ethereum"
    if cap > 10_000_000_000:
        return "Mid-cap, comparable to major altcoins"
    if cap > 1_000_000_000:
        return "Small-cap emerging altcoin"
    return "Micro-cap asset"


def future_outlook(data: CryptoData, sentiment: str) -> str:
    change = data.price_change_percentage_24h
    if change > 10 and sentiment == "positive":
        return "Short-term uptrend likely to continue"
    if change < -10 and sentiment == "negative":
        return "Risk of continued downward pressure"
    if abs(change) < 2:
        return "Stable price action expected to continue"
    return "High uncertainty; monitor closely"


def build_report(
    crypto_id: str,
    market: CryptoData | None,
    articles: list[NewsArticle] | None,
    sentiment: str,
    *,
    include_detailed_analysis: bool = False,
    now: datetime,
) -> CryptoAnalysisReport:
    """Assemble a report from whatever upstream data is available."""
    missing = []
    if market is None:
        missing.append("market data")
    if not articles:
        missing.append("news")
    news = articles or []

    market_summary = None
    if market is not None:
        market_summary = MarketSummary(
            current_price_usd=market.current_price_usd,
            current_price_jpy=market.current_price_jpy,
            price_change_24h=market.price_change_24h,
            price_change_percentage_24h=market.price_change_percentage_24h,
            market_cap_usd=market.market_cap_usd,
            volume_usd=market.total_volume_usd,
            volatility_level=volatility_level(market.price_change_percentage_24h),
        )

    news_sentiment = None
    if articles is not None:
        news_sentiment = NewsSentiment(
            total_articles=len(news),
            sentiment=sentiment,
            key_topics=extract_key_topics(news),
            recent_news_count=count_recent_news(news, now),
            sentiment_score=sentiment_score(sentiment),
        )

    if market is not None:
        conclusion = Conclusion(
            overall_assessment=overall_assessment(market, sentiment),
            risk_level=assess_risk_level(
                abs(market.price_change_percentage_24h), market.total_volume_usd, sentiment
            ),
            recommendation_summary=recommendation_summary(
                market.price_change_percentage_24h, sentiment, len(news)
            ),
            key_factors=identify_key_factors(market, news),
            confidence_level=confidence_level(market, len(news)),
        )
    else:
        conclusion = Conclusion(
            overall_assessment="Market data unavailable; assessment based on news only",
            risk_level="unknown",
            recommendation_summary="Insufficient data; gather more information",
            key_factors=[],
            confidence_level=confidence_level(None, len(news)),
        )

    detailed = None
    if include_detailed_analysis and market is not None:
        detailed = DetailedAnalysis(
            technical_indicators=technical_indicators(market),
            market_comparison=market_comparison(market),
            future_outlook=future_outlook(market, sentiment),
        )

    return CryptoAnalysisReport(
        crypto_id=market.id if market else crypto_id,
        crypto_name=market.name if market else crypto_id.capitalize(),
        symbol=market.symbol if market else "N/A",
        analysis_date=now.isoformat(),
        status="partial" if missing else "completed",
        market_summary=market_summary,
        news_sentiment=news_sentiment,
        conclusion=conclusion,
        detailed_analysis=detailed,
        missing=missing,
    )


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {i}" for i in items) if items else "- none"


def render_report(report: CryptoAnalysisReport) -> str:
    """Render the report as Markdown."""
    parts = [f"# {report.crypto_name} ({report.symbol}) cryptocurrency analysis"]
    if report.status == "partial":
        parts.append(f"> Partial report: {', '.join(report.missing)} unavailable.")

    m = report.market_summary
    if m is not None:
        parts.append(
            "## Market data summary\n\n"
            f"**Current price:**\n- USD: ${m.current_price_usd:,}\n- JPY: ¥{m.current_price_jpy:,}\n\n"
            f"**24h change:**\n- Price change: {m.price_change_percentage_24h:+.2f}%\n"
            f"- Amount: {'+' if m.price_change_24h >= 0 else '-'}${abs(m.price_change_24h):.4f}\n\n"
            f"**Market metrics:**\n- Market cap: ${m.market_cap_usd / 1e9:.2f}B\n"
            f"- 24h volume: ${m.volume_usd / 1e6:.2f}M\n"
            f"- Volatility: {m.volatility_level}"
        )

    n = report.news_sentiment
    if n is not None:
        parts.append(
            "## Latest news sentiment\n\n"
            f"- Articles: {n.total_articles}\n"
            f"- Last 24 hours: {n.recent_news_count}\n"
            f"- Sentiment: {n.sentiment}\n"
            f"- Sentiment score: {n.sentiment_score}/100\n\n"
            f"**Key topics:**\n{_bullets(n.key_topics)}"
        )

    c = report.conclusion
    parts.append(
        "## Conclusion\n\n"
        f"**Overall assessment:** {c.overall_assessment}\n\n"
        f"**Risk level:** {c.risk_level}\n\n"
        f"**Recommendation:** {c.recommendation_summary}\n\n"
        f"**Key factors:**\n{_bullets(c.key_factors)}\n\n"
        f"**Confidence:** {c.confidence_level}%"
    )

    d = report.detailed_analysis
    if d is not None:
        parts.append(
            "## Detailed analysis\n\n"
            f"**Technical indicators:**\n{_bullets(d.technical_indicators)}\n\n"
            f"**Market comparison:** {d.market_comparison}\n\n"
            f"**Outlook:** {d.future_outlook}"
        )

    parts.append(
        "---\n\n"
        f"*Analysis date: {report.analysis_date}*\n\n"
        "**Disclaimer:** this report is for information only and is not investment advice. "
        "Crypto assets carry high risk; invest at your own responsibility."
    )
    return "\n\n".join(parts)


def analyze_cryptocurrency(
    market_client: CoinGeckoClient,
    news_client: NewsApiClient,
    crypto_id: str,
    *,
    include_detailed_analysis: bool = False,
    news_count: int = DEFAULT_NEWS_COUNT,
    clock: Callable[[], datetime] = utcnow,
) -> dict[str, Any]:
    news_count = clamp_news_count(news_count)
    logger.info("Starting analysis of %s", crypto_id)

    market_result = None
    market_error: WorkflowError | None = None
    try:
        market_result = fetch_crypto_data(market_client, crypto_id, clock=clock)
    except WorkflowError as e:
        logger.warning("Market data for %s unavailable: %s", crypto_id, e)
        market_error = e

    news_result = None
    try:
        news_result = search_news(news_client, crypto_id, page_size=news_count, crypto=True)
    except (ProviderError, ConfigurationError) as e:
        logger.warning("News for %s unavailable: %s", crypto_id, e)
        if market_error is not None:
            raise market_error from e

    if market_error is not None and not (news_result and news_result["articles"]):
        raise market_error

    market = CryptoData(**market_result["data"]) if market_result else None
    articles = None
    sentiment = "neutral"
    if news_result is not None:
        articles = [NewsArticle(**a) for a in news_result["articles"]]
        sentiment = news_result["sentiment"]

    report = build_report(
        crypto_id,
        market,
        articles,
        sentiment,
        include_detailed_analysis=include_detailed_analysis,
        now=clock(),
    )
    logger.info("Analysis of %s finished (%s)", crypto_id, report.status)
    return {
        "crypto_id": report.crypto_id,
        "status": report.status,
        "report": report.to_dict(),
        "markdown_report": render_report(report),
        "market_data": market_result,
        "news_data": news_result,
        "message": f"Generated {report.status} analysis report for {report.crypto_name} ({report.symbol}).",
    }


def build_crypto_analysis_tool(market_client: CoinGeckoClient, news_client: NewsApiClient) -> ToolSpec:
    def analyze_cryptocurrency_tool(
        crypto_id: str, include_detailed_analysis: bool = False, news_count: int = DEFAULT_NEWS_COUNT
    ) -> dict:
        """Combine market data and recent news for a cryptocurrency into an analysis report.

        news_count is clamped to 1-20. Set include_detailed_analysis for technical
        indicators, market comparison and outlook.
        """
        return analyze_cryptocurrency(
            market_client,
            news_client,
            crypto_id,
            include_detailed_analysis=include_detailed_analysis,
            news_count=news_count,
        )

    return ToolSpec.from_callable(analyze_cryptocurrency_tool, name="analyze_cryptocurrency")
