"""Investment decision workflow.

Three stages: risk classification, approval (may suspend for a human
approver), final decision. Scenarios:

    {"symbol": "AAPL", "amount": 5000}    -> auto-approved by "system"
    {"symbol": "TSLA", "amount": 50000}   -> waits for an analyst
    {"symbol": "NVDA", "amount": 500000}  -> waits for a director
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..stage import Continue, PipelineDefinition, StageContext, StageSpec, Suspend

logger = logging.getLogger(__name__)

VOLATILITY_MAP = {
    "AAPL": "low",
    "GOOGL": "low",
    "MSFT": "low",
    "TSLA": "high",
    "NVDA": "high",
    "META": "medium",
}

DEFAULT_RISK = "medium"
APPROVAL_AMOUNT_THRESHOLD = 10000
DIRECTOR_AMOUNT_THRESHOLD = 100000


class InvestmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol: str = Field(min_length=1, description="Ticker symbol to invest in")
    amount: float = Field(ge=0, description="Planned investment amount (USD)")
    investor_id: str | None = Field(default=None, alias="investorId")
    portfolio_id: str | None = Field(default=None, alias="portfolioId")

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        symbol = v.strip().upper()
        if not symbol:
            raise ValueError("symbol must not be blank")
        return symbol


class ApprovalDecision(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    approved: bool
    approver_id: str = Field(min_length=1, alias="approverId")
    adjusted_amount: float | None = Field(default=None, ge=0, alias="adjustedAmount")
    comments: str | None = None


def classify_risk(symbol: str) -> str:
    """Exact, case-sensitive lookup; symbols are upper-cased when the request is validated."""
    return VOLATILITY_MAP.get(symbol, DEFAULT_RISK)


def generate_recommendation(amount: float, risk_level: str) -> str:
    if risk_level == "high" and amount > 50000:
        return "High-risk, large investment: careful review required"
    if risk_level == "low" and amount < 10000:
        return "Low-risk, small investment: recommended"
    return "Standard investment: acceptable for consideration"


def needs_approval(amount: float, risk_level: str) -> bool:
    return amount >= APPROVAL_AMOUNT_THRESHOLD or risk_level == "high"


def approver_tier(amount: float) -> str:
    return "director" if amount > DIRECTOR_AMOUNT_THRESHOLD else "analyst"


# -- Stage execute functions --

def assess_risk(ctx: StageContext) -> Continue:
    symbol = ctx.state["symbol"]
    amount = ctx.state["amount"]
    logger.info("Assessing %s (amount $%s)", symbol, amount)

    risk_level = classify_risk(symbol)
    return Continue({
        "risk_level": risk_level,
        "recommendation": generate_recommendation(amount, risk_level),
        "needs_approval": needs_approval(amount, risk_level),
    })


def request_approval(ctx: StageContext) -> Continue | Suspend:
    state = ctx.state
    decision = ctx.resume_data

    if decision is not None:
        logger.info("Approver %s decided on %s", decision["approver_id"], state["symbol"])
        adjusted = decision.get("adjusted_amount")
        return Continue({
            "approved": decision["approved"],
            "approved_by": decision["approver_id"],
            "final_amount": adjusted if adjusted is not None else state["amount"],
            "comments": decision.get("comments"),
        })

    if state["needs_approval"]:
        tier = approver_tier(state["amount"])
        logger.info(
            "Amount $%s (risk: %s) requires %s approval", state["amount"], state["risk_level"], tier
        )
        return Suspend(
            reason=f"Awaiting {tier} approval",
            payload={
                "approver_tier": tier,
                "symbol": state["symbol"],
                "amount": state["amount"],
                "risk_level": state["risk_level"],
                "recommendation": state["recommendation"],
            },
        )

    logger.info("Auto-approving %s - $%s", state["symbol"], state["amount"])
    return Continue({
        "approved": True,
        "approved_by": "system",
        "final_amount": state["amount"],
    })


def finalize_decision(ctx: StageContext) -> Continue:
    state = ctx.state
    if state["approved"]:
        logger.info("Investment approved: %s - $%s", state["symbol"], state["final_amount"])
    else:
        logger.info("Investment rejected: %s", state["symbol"])

    return Continue({
        "status": "approved" if state["approved"] else "rejected",
        "approved_by": state["approved_by"],
        "final_amount": state["final_amount"],
        "risk_level": state["risk_level"],
        "recommendation": state["recommendation"],
    })


# -- Pipeline definition --

def build_investment_workflow() -> PipelineDefinition:
    return PipelineDefinition(
        id="investment-decision",
        name="Investment Decision Workflow",
        purpose="Risk assessment and tiered approval of an investment request",
        input_model=InvestmentRequest,
        stages=[
            StageSpec(
                name="market-analysis",
                execute=assess_risk,
                reads=("symbol", "amount"),
                writes=("risk_level", "recommendation", "needs_approval"),
            ),
            StageSpec(
                name="approval-process",
                execute=request_approval,
                reads=("symbol", "amount", "risk_level", "recommendation", "needs_approval"),
                writes=("approved", "approved_by", "final_amount", "comments"),
                resume_model=ApprovalDecision,
            ),
            StageSpec(
                name="final-decision",
                execute=finalize_decision,
                reads=("approved", "approved_by", "final_amount", "risk_level", "recommendation"),
                writes=("status", "approved_by", "final_amount", "risk_level", "recommendation"),
            ),
        ],
    )
