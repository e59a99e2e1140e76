"""Command line entry point for oicmig.

Usage:
    oicmig test-auth --env dev
    oicmig discover --env dev --output inventory-dev.json
    oicmig promote --plan plan.yaml --source dev --target test --store ./archives
    oicmig smoke-test --plan plan.yaml --env test --output smoke-test.json
"""

import argparse
import logging
import sys
from pathlib import Path

from pydantic import BaseModel

from oicmig.core.errors import ConfigurationError, OICMigrationError
from oicmig.core.plan import load_plan
from oicmig.core.settings import (
    load_environment,
    load_http_settings,
    load_retry_settings,
)
from oicmig.workflow.artifacts import ArtifactStore
from oicmig.workflow.discovery import discover
from oicmig.workflow.promote import promote
from oicmig.workflow.session import open_session
from oicmig.workflow.smoke import run_smoke_tests

logger = logging.getLogger("oicmig")

EXIT_OK = 0
EXIT_FAILED = 1


def _write_json(model: BaseModel, output: str | None) -> None:
    """Dump a report as JSON when ``--output`` was given."""
    if not output:
        return
    try:
        Path(output).write_text(model.model_dump_json(indent=2), encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot write report to {output}: {exc}") from exc
    print(f"Report: {output}")


def cmd_test_auth(args: argparse.Namespace) -> int:
    """Sign an assertion, fetch a token and make one API call."""
    settings = load_environment(args.env)
    with open_session(args.env, settings, load_http_settings()) as session:
        print(f"Access token obtained (expires in {session.token.expires_in}s)")
        session.client.list_integrations(session.token, limit=1)
    print(f"API access to {settings.instance_url} verified")
    return EXIT_OK


def cmd_discover(args: argparse.Namespace) -> int:
    """Print and optionally save the inventory of one environment."""
    settings = load_environment(args.env)
    with open_session(args.env, settings, load_http_settings()) as session:
        inventory = discover(session)
    print(f"Environment: {inventory.environment}")
    print(
        f"Integrations: {len(inventory.integrations)} "
        f"({inventory.active_count} active)"
    )
    print(f"Connections: {len(inventory.connections)}")
    for item in inventory.integrations:
        conns = ", ".join(item.connections) or "-"
        print(f"  {item.code:<40} {item.version:<12} {item.status:<20} {conns}")
    _write_json(inventory, args.output)
    return EXIT_OK


def cmd_promote(args: argparse.Namespace) -> int:
    """Promote the plan from source to target and print every step."""
    plan = load_plan(args.plan)
    source_settings = load_environment(args.source)
    target_settings = load_environment(args.target)
    http = load_http_settings()
    retry = load_retry_settings()
    store = ArtifactStore(args.store) if args.store else None
    with (
        open_session(args.source, source_settings, http) as source,
        open_session(args.target, target_settings, http) as target,
    ):
        report = promote(
            plan,
            source,
            target,
            retry=retry,
            store=store,
            halt_on_patch_failure=args.halt_on_patch_failure,
        )
    for outcome in report.outcomes:
        mark = "ok" if outcome.ok else "FAILED"
        subject = f" [{outcome.subject}]" if outcome.subject else ""
        step = f"{outcome.integration} {outcome.step.value}{subject}"
        print(f"  {step}: {mark} {outcome.detail}")
    _write_json(report, args.output)
    if not report.succeeded:
        print(f"Failed integrations: {', '.join(report.failed_integrations)}")
        return EXIT_FAILED
    print("All integrations promoted")
    return EXIT_OK


def cmd_smoke_test(args: argparse.Namespace) -> int:
    """Smoke test the plan codes in one environment."""
    plan = load_plan(args.plan)
    settings = load_environment(args.env)
    with open_session(args.env, settings, load_http_settings()) as session:
        report = run_smoke_tests(session, plan.codes)
    for result in report.results:
        print(f"  {result.code:<40} {result.result.value:<10} {result.notes}")
    print(
        f"Total: {report.total}  Passed: {report.passed}  "
        f"Warnings: {report.warnings}  Failed: {report.failed}"
    )
    _write_json(report, args.output)
    return EXIT_OK if report.succeeded else EXIT_FAILED


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one sub-command per workflow."""
    parser = argparse.ArgumentParser(
        prog="oicmig",
        description="Move OIC integrations between environments",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    auth = sub.add_parser("test-auth", help="Verify JWT authentication")
    auth.add_argument("--env", required=True)
    auth.set_defaults(func=cmd_test_auth)

    disc = sub.add_parser("discover", help="List integrations and connections")
    disc.add_argument("--env", required=True)
    disc.add_argument("--output", help="Write the inventory as JSON")
    disc.set_defaults(func=cmd_discover)

    prom = sub.add_parser("promote", help="Export, import, configure and activate")
    prom.add_argument("--plan", required=True, help="Migration plan YAML")
    prom.add_argument("--source", required=True)
    prom.add_argument("--target", required=True)
    prom.add_argument("--store", help="Directory keeping exported archives")
    prom.add_argument("--output", help="Write the promotion report as JSON")
    prom.add_argument(
        "--halt-on-patch-failure",
        action="store_true",
        help="Skip test and activation when a property patch fails",
    )
    prom.set_defaults(func=cmd_promote)

    smoke = sub.add_parser("smoke-test", help="Check deployed integrations")
    smoke.add_argument("--plan", required=True)
    smoke.add_argument("--env", required=True)
    smoke.add_argument("--output", help="Write the smoke test report as JSON")
    smoke.set_defaults(func=cmd_smoke_test)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point; exits 1 on any oicmig error."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        code = args.func(args)
    except OICMigrationError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        sys.exit(EXIT_FAILED)
    sys.exit(code)


if __name__ == "__main__":
    main()
