"""Command-line interface.

Usage:
    market-agent-flow workflows
    market-agent-flow start investment-decision --input '{"symbol": "NVDA", "amount": 500000}'
    market-agent-flow resume <instance-id> --data '{"approved": true, "approver_id": "D1"}'
    market-agent-flow show <instance-id>
    market-agent-flow pending
    market-agent-flow expire
    market-agent-flow ask market-analyst "How is NVDA doing?"
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .app import Runtime, build_runtime
from .config import load_settings
from .errors import ConfigurationError, ValidationError, WorkflowError

logger = logging.getLogger(__name__)


def _load_json(raw: str | None) -> Any:
    """Parse a JSON argument; ``@path`` reads the JSON from a file."""
    if raw is None:
        return {}
    if raw.startswith("@"):
        try:
            raw = Path(raw[1:]).read_text(encoding="utf-8")
        except OSError as e:
            raise ValidationError(f"Cannot read {raw[1:]}: {e}") from e
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}") from e


def _emit(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _cmd_workflows(runtime: Runtime, args: argparse.Namespace) -> None:
    _emit([
        {
            "id": d.id,
            "name": d.name,
            "purpose": d.purpose,
            "version": d.version,
            "stages": [s.name for s in d.stages],
        }
        for d in runtime.registry.workflows
    ])


def _cmd_start(runtime: Runtime, args: argparse.Namespace) -> None:
    definition = runtime.registry.workflow(args.workflow)
    instance = runtime.executor.start(definition, _load_json(args.input))
    _emit(instance.to_dict())


def _cmd_resume(runtime: Runtime, args: argparse.Namespace) -> None:
    instance = runtime.executor.resume(args.instance_id, _load_json(args.data))
    _emit(instance.to_dict())


def _cmd_show(runtime: Runtime, args: argparse.Namespace) -> None:
    _emit(runtime.executor.get(args.instance_id).to_dict())


def _cmd_pending(runtime: Runtime, args: argparse.Namespace) -> None:
    _emit([
        {
            "id": i.id,
            "pipeline_id": i.pipeline_id,
            "stage": i.suspension.stage_name,
            "reason": i.suspension.reason,
            "payload": i.suspension.payload,
            "suspended_at": i.suspension.suspended_at.isoformat(),
        }
        for i in runtime.executor.list_suspended()
    ])


def _cmd_expire(runtime: Runtime, args: argparse.Namespace) -> None:
    _emit([i.id for i in runtime.executor.expire_stale()])


def _cmd_ask(runtime: Runtime, args: argparse.Namespace) -> None:
    if runtime.llm is None:
        raise ConfigurationError("No LLM configured: set OPENAI_API_KEY")
    agent = runtime.registry.agent(args.agent)
    print(agent.run(args.prompt, session_id=args.session))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="market-agent-flow",
        description="Market research agents and suspendable approval workflows",
    )
    parser.add_argument("--data-dir", default=None, help="Directory for pipeline state and agent memory")
    parser.add_argument("--log-level", default=None, help="Logging level (default from settings)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("workflows", help="List registered workflows")
    p.set_defaults(func=_cmd_workflows)

    p = sub.add_parser("start", help="Start a workflow instance")
    p.add_argument("workflow", help="Workflow id, e.g. investment-decision")
    p.add_argument("--input", default=None, help="Input as JSON, or @file.json")
    p.set_defaults(func=_cmd_start)

    p = sub.add_parser("resume", help="Resume a suspended instance")
    p.add_argument("instance_id")
    p.add_argument("--data", default=None, help="Resume data as JSON, or @file.json")
    p.set_defaults(func=_cmd_resume)

    p = sub.add_parser("show", help="Show an instance")
    p.add_argument("instance_id")
    p.set_defaults(func=_cmd_show)

    p = sub.add_parser("pending", help="List instances awaiting approval")
    p.set_defaults(func=_cmd_pending)

    p = sub.add_parser("expire", help="Fail suspensions older than MAX_SUSPENSION_HOURS")
    p.set_defaults(func=_cmd_expire)

    p = sub.add_parser("ask", help="Send a prompt to an agent")
    p.add_argument("agent", help="assistant, market-analyst, news-researcher or crypto-analyst")
    p.add_argument("prompt")
    p.add_argument("--session", default="default", help="Conversation session id")
    p.set_defaults(func=_cmd_ask)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.log_level:
        overrides["log_level"] = args.log_level
    settings = load_settings(**overrides)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    runtime = build_runtime(settings)
    try:
        args.func(runtime, args)
    except WorkflowError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        runtime.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
