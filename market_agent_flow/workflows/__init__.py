"""Built-in workflows."""

from .crypto_analysis import build_crypto_analysis_workflow
from .investment import build_investment_workflow

__all__ = ["build_crypto_analysis_workflow", "build_investment_workflow"]
