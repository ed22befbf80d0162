"""Example: investment approvals that pause for a human decision.

Demonstrates:
- Starting the investment-decision workflow for three scenarios
- Auto-approval for small, low-risk requests
- Suspension awaiting an analyst or director, persisted to disk
- Resuming from a fresh executor, as a separate process would

No API keys required:
    python examples/investment_approval.py
"""

import logging
import sys
import tempfile

from market_agent_flow import JsonFileSuspensionStore, PipelineExecutor
from market_agent_flow.workflows import build_investment_workflow

REQUESTS = [
    {"symbol": "AAPL", "amount": 5000, "investorId": "inv-1"},
    {"symbol": "TSLA", "amount": 50000, "investorId": "inv-2"},
    {"symbol": "NVDA", "amount": 500000, "investorId": "inv-3"},
]


def main(data_dir: str) -> dict[str, dict]:
    workflow = build_investment_workflow()
    executor = PipelineExecutor(JsonFileSuspensionStore(data_dir))

    for request in REQUESTS:
        instance = executor.start(workflow, request)
        if instance.is_suspended:
            print(f"{request['symbol']}: {instance.suspension.reason} ({instance.id})")
        else:
            print(f"{request['symbol']}: {instance.result['status']} by {instance.result['approved_by']}")

    # Later, possibly in another process: approvers work through the queue.
    approvals = PipelineExecutor(JsonFileSuspensionStore(data_dir), [workflow])
    results = {}
    for pending in approvals.list_suspended():
        tier = pending.suspension.payload["approver_tier"]
        decision = {"approved": True, "approverId": f"{tier}-1"}
        if tier == "director":
            decision["adjustedAmount"] = pending.suspension.payload["amount"] * 0.8
        done = approvals.resume(pending.id, decision)
        results[done.state["symbol"]] = done.result
        print(f"{done.state['symbol']}: {done.result['status']} by {done.result['approved_by']} "
              f"for ${done.result['final_amount']:,.0f}")
    return results


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    with tempfile.TemporaryDirectory() as tmp:
        main(sys.argv[1] if len(sys.argv) > 1 else tmp)
