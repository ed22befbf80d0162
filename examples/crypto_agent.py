"""Example: ask the crypto analyst agent for a report.

Demonstrates:
- Building the runtime from settings (.env / environment)
- Agents calling CoinGecko and NewsAPI tools
- Conversation memory across turns of one session

To run (requires OpenAI and NewsAPI keys):
    export OPENAI_API_KEY=sk-...
    export NEWS_API_KEY=...
    python examples/crypto_agent.py ethereum
"""

import logging
import sys

from market_agent_flow import build_runtime, load_settings


def main() -> None:
    crypto_id = sys.argv[1] if len(sys.argv) > 1 else "bitcoin"
    settings = load_settings()
    logging.basicConfig(level=settings.log_level.upper())

    runtime = build_runtime(settings)
    try:
        agent = runtime.registry.agent("crypto-analyst")
        print(agent.run(f"Write a detailed analysis report for {crypto_id}.", session_id="example"))
        print(agent.run("What is the single biggest risk you see?", session_id="example"))
    finally:
        runtime.close()


if __name__ == "__main__":
    main()
