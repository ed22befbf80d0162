"""Application wiring: settings in, a ready-to-use runtime out."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

import httpx

from .agent import Agent
from .config import Settings
from .executor import PipelineExecutor
from .llm.adapter import LLMAdapter
from .llm.openai import OpenAIAdapter
from .memory import ConversationMemory
from .providers.coingecko import CoinGeckoClient
from .providers.newsapi import NewsApiClient
from .registry import Registry
from .store import JsonFileSuspensionStore
from .toolkit import build_toolset
from .workflows import build_crypto_analysis_workflow, build_investment_workflow

logger = logging.getLogger(__name__)

ASSISTANT_INSTRUCTIONS = (
    "You are a helpful assistant for news search, stock quotes and market analysis. "
    "You specialise in financial research, investment insight and business information."
)
MARKET_ANALYST_INSTRUCTIONS = (
    "You are a market analysis agent. Focus on stock price analysis, news sentiment and "
    "investment insight, and ground your assessment in the data your tools return."
)
NEWS_RESEARCHER_INSTRUCTIONS = (
    "You are a news research agent. Find relevant articles, analyse information trends and "
    "summarise insights about companies and market events."
)
CRYPTO_ANALYST_INSTRUCTIONS = (
    "You are a cryptocurrency analysis agent. Combine live market data and recent crypto news "
    "into clear reports. Always remind the user that this is not investment advice."
)

# agent name -> (instructions, tool names)
AGENTS = {
    "assistant": (
        ASSISTANT_INSTRUCTIONS,
        ("search_news", "get_stock_price", "analyze_market"),
    ),
    "market-analyst": (
        MARKET_ANALYST_INSTRUCTIONS,
        ("get_stock_price", "search_news", "analyze_market"),
    ),
    "news-researcher": (
        NEWS_RESEARCHER_INSTRUCTIONS,
        ("search_news",),
    ),
    "crypto-analyst": (
        CRYPTO_ANALYST_INSTRUCTIONS,
        ("get_crypto_data", "search_crypto_news", "analyze_cryptocurrency"),
    ),
}


@dataclass
class Runtime:
    settings: Settings
    registry: Registry
    executor: PipelineExecutor
    memory: ConversationMemory
    market_client: CoinGeckoClient
    news_client: NewsApiClient
    llm: LLMAdapter | None = None

    def close(self) -> None:
        self.market_client.close()
        self.news_client.close()


def build_runtime(
    settings: Settings,
    *,
    llm: LLMAdapter | None = None,
    http_client: httpx.Client | None = None,
    rng: random.Random | None = None,
) -> Runtime:
    """Construct stores, executor, provider clients, agents and workflows.

    Agents are only registered when an LLM is given or an OpenAI key is
    configured; workflows never need one.
    """
    data_dir = Path(settings.data_dir)
    store = JsonFileSuspensionStore(data_dir / "pipelines")
    memory = ConversationMemory(data_dir / "memory")

    max_suspension = None
    if settings.max_suspension_hours > 0:
        max_suspension = timedelta(hours=settings.max_suspension_hours)

    registry = Registry()
    registry.register_workflow(build_investment_workflow())
    registry.register_workflow(build_crypto_analysis_workflow(rng=rng))
    executor = PipelineExecutor(store, registry.workflows, max_suspension=max_suspension)

    market_client = CoinGeckoClient.from_settings(settings, client=http_client)
    news_client = NewsApiClient.from_settings(settings, client=http_client)

    if llm is None and settings.openai_api_key:
        llm = OpenAIAdapter.from_settings(settings)

    if llm is not None:
        toolset = build_toolset(market_client, news_client, rng=rng)
        for name, (instructions, tool_names) in AGENTS.items():
            registry.register_agent(
                Agent(
                    name=name,
                    instructions=instructions,
                    llm=llm,
                    tools=[toolset[t] for t in tool_names],
                    memory=memory,
                )
            )
    else:
        logger.info("No LLM configured; agents are unavailable")

    return Runtime(
        settings=settings,
        registry=registry,
        executor=executor,
        memory=memory,
        market_client=market_client,
        news_client=news_client,
        llm=llm,
    )
