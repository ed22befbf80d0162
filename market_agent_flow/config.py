"""Runtime settings read from the environment and an optional `.env` file.

Field names map to upper-case environment variables, e.g. `NEWS_API_KEY`,
`COINGECKO_API_KEY`, `OPENAI_API_KEY`, `MAX_SUSPENSION_HOURS`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Everything `build_runtime` and the CLI need.

    Provider keys may be empty: the CoinGecko public API works without one,
    news tools report a configuration error when called without a key, and
    agents are only registered when an OpenAI key (or an adapter) is given.
    """

    log_level: str = "info"
    # Suspension store + agent memory live under this directory
    data_dir: str = ".market_agent_flow"
    # Suspended approvals older than this are failed with "approval timeout". 0 disables.
    max_suspension_hours: float = 0.0

    # CoinGecko market data
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coingecko_api_key: str = ""
    coingecko_timeout: float = 10.0

    # NewsAPI
    news_api_base_url: str = "https://newsapi.org/v2"
    news_api_key: str = ""
    news_api_timeout: float = 15.0
    news_max_page_size: int = 100
    news_lookback_days: int = 7

    # LLM backing the agents (any OpenAI-compatible endpoint)
    openai_api_key: str = ""
    openai_base_url: str | None = None
    openai_model: str = "gpt-4o"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


def load_settings(**overrides) -> Settings:
    return Settings(**overrides)
