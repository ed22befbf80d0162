"""Cryptocurrency analysis workflow over simulated collection results.

Market data and news collection are simulated; the source of randomness is
injected so runs can be made deterministic.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from ..instance import utcnow
from ..stage import Continue, PipelineDefinition, StageContext, StageSpec

logger = logging.getLogger(__name__)

KNOWN_CRYPTOS = ("bitcoin", "ethereum", "cardano", "solana", "dogecoin", "chainlink", "polkadot")
POPULAR_CRYPTOS = ("bitcoin", "ethereum", "dogecoin")
SENTIMENTS = ("positive", "neutral", "negative")
SENTIMENT_BASE_SCORES = {"positive": 75, "neutral": 50, "negative": 25}


class CryptoAnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    crypto_id: str = Field(min_length=1, alias="cryptoId")
    include_detailed_analysis: bool = Field(default=False, alias="includeDetailedAnalysis")
    news_count: int = Field(default=10, ge=1, le=20, alias="newsCount")
    user_id: str | None = Field(default=None, alias="userId")


def simulate_market_data(crypto_id: str, rng: random.Random) -> dict[str, Any]:
    if crypto_id.lower() in KNOWN_CRYPTOS:
        return {
            "status": "success",
            "quality": "high",
            "price_available": True,
            "volume_available": True,
        }
    return {
        "status": "success" if rng.random() > 0.3 else "partial",
        "quality": "medium" if rng.random() > 0.5 else "low",
        "price_available": rng.random() > 0.2,
        "volume_available": rng.random() > 0.4,
    }


def simulate_news(crypto_id: str, requested: int, rng: random.Random) -> dict[str, Any]:
    popular = crypto_id.lower() in POPULAR_CRYPTOS
    max_articles = requested if popular else int(requested * 0.7)
    found = rng.randrange(max(max_articles, 1)) + 1
    sentiment = rng.choice(SENTIMENTS)
    score = SENTIMENT_BASE_SCORES[sentiment] + (rng.random() - 0.5) * 20
    return {
        "status": "success" if found >= int(requested * 0.5) else "partial",
        "articles_found": found,
        "sentiment": sentiment,
        "sentiment_score": round(score, 1),
    }


def assess_overall_risk(market_quality: str, sentiment: str, article_count: int) -> str:
    score = 0
    if market_quality == "low":
        score += 2
    elif market_quality == "medium":
        score += 1

    if sentiment == "negative":
        score += 2
    elif sentiment == "neutral":
        score += 1

    if article_count < 5:
        score += 1

    if score >= 4:
        return "high"
    if score >= 2:
        return "medium"
    return "low"


def calculate_confidence(market_status: str, news_status: str, article_count: int) -> int:
    confidence = 30
    if market_status == "success":
        confidence += 35
    elif market_status == "partial":
        confidence += 20

    if news_status == "success":
        confidence += 25
    elif news_status == "partial":
        confidence += 15

    confidence += min(article_count * 2, 20)
    return min(95, confidence)


def integrated_assessment(state: dict[str, Any], has_required_data: bool) -> dict[str, Any]:
    if not has_required_data:
        return {
            "assessment": "Limited analysis due to insufficient data",
            "sections": [
                "Market data summary (partial)",
                "News analysis (limited)",
                "Conclusion (provisional)",
            ],
        }
    price_action = "clear" if state["market_data_quality"] == "high" else "unclear"
    news_impact = "high" if state["articles_found"] >= 8 else "low"
    return {
        "assessment": f"Combined view: {price_action} price action with {news_impact} news impact",
        "sections": [
            "Market data summary (complete)",
            "Latest news sentiment",
            "Integrated conclusion and recommendations",
        ],
    }


def summary_message(state: dict[str, Any]) -> str:
    name = state["crypto_id"][:1].upper() + state["crypto_id"][1:]
    status = "completed" if state.get("analysis_completed") else "partially completed"
    return (
        f"{name} analysis {status}. "
        f"Market data: {state.get('market_data_status') or 'unknown'}, "
        f"news analysis: {state.get('news_analysis_status') or 'unknown'} "
        f"({state.get('articles_found') or 0} articles analysed)"
    )


def build_crypto_analysis_workflow(
    rng: random.Random | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> PipelineDefinition:
    rng = rng or random.Random()

    def collect_market_data(ctx: StageContext) -> Continue:
        crypto_id = ctx.state["crypto_id"]
        logger.info("Collecting market data for %s", crypto_id)
        market = simulate_market_data(crypto_id, rng)
        logger.info("Market data collection: %s", market["status"])
        return Continue({
            "market_data_status": market["status"],
            "market_data_quality": market["quality"],
            "price_available": market["price_available"],
            "volume_available": market["volume_available"],
        })

    def collect_news(ctx: StageContext) -> Continue:
        crypto_id = ctx.state["crypto_id"]
        logger.info("Collecting news for %s", crypto_id)
        news = simulate_news(crypto_id, ctx.state["news_count"], rng)
        logger.info("News analysis: %s (%d articles)", news["sentiment"], news["articles_found"])
        return Continue({
            "news_analysis_status": news["status"],
            "articles_found": news["articles_found"],
            "news_sentiment": news["sentiment"],
            "sentiment_score": news["sentiment_score"],
        })

    def analyze(ctx: StageContext) -> Continue:
        state = ctx.state
        has_required = (
            state["market_data_status"] == "success" and state["news_analysis_status"] == "success"
        )
        if not has_required:
            logger.warning("Insufficient data for %s, running partial analysis", state["crypto_id"])

        analysis = integrated_assessment(state, has_required)
        risk = assess_overall_risk(
            state["market_data_quality"], state["news_sentiment"], state["articles_found"]
        )
        confidence = calculate_confidence(
            state["market_data_status"], state["news_analysis_status"], state["articles_found"]
        )
        logger.info("Report generated: risk %s, confidence %d%%", risk, confidence)
        return Continue({
            "analysis_completed": has_required,
            "overall_assessment": analysis["assessment"],
            "report_sections": analysis["sections"],
            "risk_level": risk,
            "confidence_level": confidence,
            "analysis_date": clock().isoformat(),
        })

    def deliver_report(ctx: StageContext) -> Continue:
        state = ctx.state
        if state.get("analysis_completed"):
            status = "completed"
        elif state.get("market_data_status") == "success" or state.get("news_analysis_status") == "success":
            status = "partial"
        else:
            status = "failed"
        logger.info("Analysis report for %s: %s", state["crypto_id"], status)

        if state.get("user_id"):
            logger.info("Notifying user %s that the report is ready", state["user_id"])

        return Continue({
            "crypto_id": state["crypto_id"],
            "analysis_status": status,
            "report_generated": bool(state.get("analysis_completed")),
            "analysis_date": state.get("analysis_date") or clock().isoformat(),
            "summary": summary_message(state),
            "risk_level": state.get("risk_level") or "unknown",
            "confidence": state.get("confidence_level") or 0,
        })

    return PipelineDefinition(
        id="crypto-analysis",
        name="Cryptocurrency Analysis Workflow",
        purpose="Market data and news analysis report for a cryptocurrency",
        input_model=CryptoAnalysisRequest,
        stages=[
            StageSpec(
                name="market-data-collection",
                execute=collect_market_data,
                reads=("crypto_id",),
                writes=("market_data_status", "market_data_quality", "price_available", "volume_available"),
            ),
            StageSpec(
                name="news-collection-analysis",
                execute=collect_news,
                reads=("crypto_id", "news_count"),
                writes=("news_analysis_status", "articles_found", "news_sentiment", "sentiment_score"),
            ),
            StageSpec(
                name="integrated-analysis",
                execute=analyze,
                reads=("market_data_status", "market_data_quality", "news_analysis_status",
                       "news_sentiment", "articles_found"),
                writes=("analysis_completed", "overall_assessment", "report_sections",
                        "risk_level", "confidence_level", "analysis_date"),
            ),
            StageSpec(
                name="report-delivery",
                execute=deliver_report,
                reads=("crypto_id",),
                writes=("crypto_id", "analysis_status", "report_generated", "analysis_date",
                        "summary", "risk_level", "confidence"),
            ),
        ],
    )
