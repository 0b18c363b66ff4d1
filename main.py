# ============================================================================
# CIFLOW - COMMAND LINE ENTRY POINT
# ============================================================================
# STATUS: Core - CLI application entry point
# PURPOSE: validate / plan / run a workflow file
# CREATED: 19 OCT 2026
# ============================================================================
"""
ciflow command line

    ciflow validate workflows/ci.yaml
    ciflow plan workflows/ci.yaml --event pull_request
    ciflow run workflows/ci.yaml --event push --ref refs/heads/main \\
        --max-parallel 4 --report-json report.json

Exit codes:
    0  overall success
    1  overall failure (a required instance failed)
    2  configuration or graph error (nothing was run)

Logs go to stderr; the summary table (or plan) goes to stdout.
"""

import argparse
import dataclasses
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from __version__ import __version__, CODENAME
from core.config import Defaults
from core.errors import ConfigurationError, CyclicDependency
from core.logging import ComponentType, configure_logging, get_logger
from handlers import list_actions
from orchestrator.engine.planner import ExecutionPlan
from services import RunService

logger = get_logger(__name__, ComponentType.CLI)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


# ============================================================================
# ARGUMENTS
# ============================================================================

def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: '{value}'") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ciflow",
        description="Run CI workflows: matrix expansion, dependency gating, local execution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s validate workflows/ci.yaml
  %(prog)s plan workflows/ci.yaml --event pull_request
  %(prog)s run workflows/ci.yaml --event push --ref refs/heads/main --max-parallel 4
  %(prog)s actions
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__} ({CODENAME})")

    log_opts = argparse.ArgumentParser(add_help=False)
    log_opts.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        help="DEBUG shows command output as it streams (default: INFO)",
    )
    log_opts.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")

    common = argparse.ArgumentParser(add_help=False, parents=[log_opts])
    common.add_argument("workflow", help="Path to the workflow YAML file")
    common.add_argument("--event", help="Trigger event (e.g. push, pull_request)")
    common.add_argument("--ref", help="Trigger ref (e.g. refs/heads/main)")
    common.add_argument(
        "--source-dir",
        default=None,
        help="Repository cloned by the checkout action (default: current directory)",
    )
    common.add_argument("--max-matrix-cells", type=_positive_int, help="Upper bound on cells per job")
    common.add_argument(
        "--fail-on-empty-matrix",
        action="store_true",
        help="Treat an empty matrix axis as a configuration error",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("validate", parents=[common], help="Load, expand and check the workflow")

    plan = sub.add_parser("plan", parents=[common], help="Print the instances a run would execute")
    plan.add_argument("--json", action="store_true", help="Print the plan as JSON")

    run = sub.add_parser("run", parents=[common], help="Execute the workflow")
    run.add_argument("--max-parallel", type=_positive_int, help="Instances executing at once")
    run.add_argument("--timeout", type=_positive_int, help="Default per-instance timeout (seconds)")
    run.add_argument("--workspace", help="Root directory for instance workspaces")
    run.add_argument("--logs-dir", help="Write one log file per instance here")
    run.add_argument("--report-json", help="Write the run report as JSON to this path")

    actions = sub.add_parser("actions", parents=[log_opts], help="List the actions available to `uses:` steps")
    actions.add_argument("--json", action="store_true", help="Print the actions as JSON")

    return parser


def defaults_from_args(args: argparse.Namespace) -> Defaults:
    """Environment-derived defaults with CLI flags applied on top."""
    defaults = Defaults.from_env()

    matrix = defaults.matrix
    if getattr(args, "max_matrix_cells", None) is not None:
        matrix = dataclasses.replace(matrix, max_cells=args.max_matrix_cells)
    if getattr(args, "fail_on_empty_matrix", False):
        matrix = dataclasses.replace(matrix, fail_on_empty_matrix=True)

    scheduler = defaults.scheduler
    if getattr(args, "max_parallel", None) is not None:
        scheduler = dataclasses.replace(scheduler, max_parallel=args.max_parallel)

    executor = defaults.executor
    overrides = {}
    if getattr(args, "timeout", None) is not None:
        overrides["default_timeout_seconds"] = args.timeout
    if getattr(args, "workspace", None):
        overrides["workspace_dir"] = os.path.abspath(args.workspace)
    if getattr(args, "logs_dir", None):
        overrides["logs_dir"] = os.path.abspath(args.logs_dir)
    if overrides:
        executor = dataclasses.replace(executor, **overrides)

    return Defaults(scheduler=scheduler, executor=executor, matrix=matrix)


# ============================================================================
# COMMANDS
# ============================================================================

def _print_warnings(plan: ExecutionPlan) -> None:
    for warning in plan.warnings:
        print(f"warning: {warning}")


def cmd_validate(service: RunService, args: argparse.Namespace) -> int:
    workflow = service.load(args.workflow)
    plan = service.plan(workflow, trigger_event=args.event, trigger_ref=args.ref)
    _print_warnings(plan)
    print(
        f"OK: workflow '{workflow.name}' is valid "
        f"({len(workflow.jobs)} jobs, {len(plan.instances)} instances)"
    )
    return EXIT_SUCCESS


def cmd_plan(service: RunService, args: argparse.Namespace) -> int:
    workflow = service.load(args.workflow)
    plan = service.plan(workflow, trigger_event=args.event, trigger_ref=args.ref)

    if args.json:
        data = {
            "workflow": workflow.name,
            "trigger": plan.trigger,
            "warnings": plan.warnings,
            "instances": [i.model_dump(mode="json") for i in plan.instances],
        }
        print(json.dumps(data, indent=2))
        return EXIT_SUCCESS

    print(f"Workflow '{workflow.name}': {len(plan.instances)} instance(s)")
    for position, instance in enumerate(plan.instances, start=1):
        flags = " [allow failure]" if instance.allow_failure else ""
        print(f"{position:3d}. {instance.instance_id}{flags}")
        print(f"       name: {instance.display_name}  runs-on: {instance.runs_on}")
        if instance.needs:
            print(f"       needs: {', '.join(instance.needs)}")
        for step in instance.steps:
            for command in step.commands:
                print(f"       {step.name}: {command.describe()}")
    _print_warnings(plan)
    return EXIT_SUCCESS


def cmd_run(service: RunService, args: argparse.Namespace) -> int:
    workflow = service.load(args.workflow)
    report = service.run(workflow, trigger_event=args.event, trigger_ref=args.ref)

    print(report.render_summary())
    if args.report_json:
        path = Path(args.report_json)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Report written to {path}")
    return report.exit_code


def cmd_actions(service: RunService, args: argparse.Namespace) -> int:
    actions = sorted(list_actions(), key=lambda a: a["name"])

    if args.json:
        data = [
            {"name": a["name"], "description": a["description"], "options": a["options"]}
            for a in actions
        ]
        print(json.dumps(data, indent=2))
        return EXIT_SUCCESS

    width = max((len(a["name"]) for a in actions), default=10)
    for action in actions:
        name, description = action["name"], action["description"]
        print(f"{name:<{width}}  {description}".rstrip())
        if action["options"]:
            options = ", ".join(action["options"])
            print(f"{'':<{width}}  with: {options}")
    return EXIT_SUCCESS


COMMANDS = {
    "validate": cmd_validate,
    "plan": cmd_plan,
    "run": cmd_run,
    "actions": cmd_actions,
}


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, json_output=args.json_logs)

    try:
        service = RunService(
            defaults=defaults_from_args(args),
            source_dir=os.path.abspath(getattr(args, "source_dir", None) or os.getcwd()),
        )
        return COMMANDS[args.command](service, args)
    except (ConfigurationError, CyclicDependency) as e:
        logger.error(f"Configuration error: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
