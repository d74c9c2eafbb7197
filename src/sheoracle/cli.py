"""
sheoracle CLI
List the case registry or run it against an encryption backend.
"""

import argparse
import json
import sys
from typing import List, Optional

from .backends import get_backend
from .core.cases import TEST_CASES, parse_kinds, select_cases
from .core.outcome import CaseOutcome, CaseStatus
from .core.runner import CaseRunner
from .utils.config import settings
from .utils.exceptions import BackendNotAvailableError
from .utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sheoracle", description="SHE evaluation correctness oracle")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # helper: shared filters
    def add_filters(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--kind", action="append", default=None,
                         help="Operation kind to select (repeatable, default: $SHEORACLE_KINDS or all)")
        sub.add_argument("--match", type=str, default=None,
                         help="Substring a case name must contain (default: $SHEORACLE_MATCH)")

    list_parser = subparsers.add_parser("list", help="List registry cases")
    add_filters(list_parser)

    run_parser = subparsers.add_parser("run", help="Run registry cases against a backend")
    add_filters(run_parser)
    run_parser.add_argument("--backend", type=str, default=None, help="Backend name (default: $SHEORACLE_BACKEND)")
    run_parser.add_argument("--json", action="store_true", help="Print the run report as JSON")
    run_parser.add_argument("--log-level", type=str, default=None, help="Log level (default: $SHEORACLE_LOG_LEVEL)")
    return parser


def _selected(args: argparse.Namespace):
    kinds = parse_kinds(args.kind if args.kind else settings.KINDS)
    pattern = args.match if args.match is not None else settings.MATCH
    return select_cases(TEST_CASES, kinds=kinds, pattern=pattern)


def _print_outcome(outcome: CaseOutcome) -> None:
    marker = {CaseStatus.PASSED: "PASS", CaseStatus.FAILED: "FAIL", CaseStatus.NOT_RUN: "SKIP"}[outcome.status]
    print(f"[{marker}] {outcome.name}")
    for message in outcome.failure_messages():
        print(f"       {message}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        cases = _selected(args)
    except ValueError as e:
        parser.error(str(e))

    if args.command == "list":
        for case in cases:
            print(f"{case.name}\t{case.describe()}")
        return 0

    configure_logging(args.log_level or settings.LOG_LEVEL)
    try:
        backend = get_backend(args.backend or settings.BACKEND)
    except BackendNotAvailableError as e:
        logger.error(str(e))
        return 2

    runner = CaseRunner(backend)
    report = runner.run(cases, reporter=None if args.json else _print_outcome)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(f"\n{report.passed} passed, {report.failed} failed, {report.not_run} not run")
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
