"""Command-line entry for eventseries.

A small CLI for expanding and describing recurrence rules without any storage:

  python -m eventseries expand --rule "FREQ=WEEKLY;BYDAY=MO" --start 2025-10-06T19:00:00-07:00 \
      --tz America/Vancouver --count 5
  python -m eventseries describe --rule "FREQ=MONTHLY;BYMONTHDAY=29;COUNT=6"
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import NoReturn, Optional

from .config_loader import load_config
from .core.timezone_utils import format_local, parse_instant
from .exceptions import EventSeriesError
from .logging_setup import configure_logging
from .recurrence.evaluator import RecurrenceEvaluator
from .recurrence.models import EvaluationOptions
from .recurrence.rrule_text import describe_rule, parse_rrule_string

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for eventseries CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="eventseries",
        description="eventseries - recurrence rule expansion with wall-clock DST semantics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m eventseries expand --rule "FREQ=DAILY" --start 2023-01-01T10:00:00Z --count 2
  python -m eventseries describe --rule "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=5"
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="Path to eventseries.yaml (default: ./eventseries.yaml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    expand = subparsers.add_parser("expand", help="Print the occurrences of a rule")
    expand.add_argument("--rule", required=True, help="RRULE value, e.g. FREQ=WEEKLY;BYDAY=MO,WE")
    expand.add_argument("--start", required=True, help="Anchor start as ISO 8601 (offset optional, UTC if absent)")
    expand.add_argument("--tz", help="IANA time zone (default: configured default_time_zone)")
    expand.add_argument("--count", type=int, metavar="N", help="Maximum number of occurrences to print")
    expand.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="DATE",
        help="Local day (YYYY-MM-DD) to exclude; may be repeated",
    )

    describe = subparsers.add_parser("describe", help="Print a human readable rule description")
    describe.add_argument("--rule", required=True, help="RRULE value")
    describe.add_argument("--tz", help="IANA time zone used to render UNTIL")

    return parser


def _run_expand(args: argparse.Namespace, default_tz: str, max_occurrences: int) -> int:
    rule = parse_rrule_string(args.rule)
    tz_name = args.tz or default_tz
    options = EvaluationOptions(
        time_zone=tz_name,
        max_occurrences=args.count,
        excluded_dates=list(args.exclude),
    )
    evaluator = RecurrenceEvaluator(default_max_occurrences=max_occurrences)
    for occurrence in evaluator.generate(parse_instant(args.start), rule, options):
        print(f"{occurrence.iso_utc}  {format_local(occurrence.instant_utc, tz_name, '%Y-%m-%d %H:%M %Z')}")
    return 0


def _run_describe(args: argparse.Namespace, default_tz: str) -> int:
    print(describe_rule(parse_rrule_string(args.rule), args.tz or default_tz))
    return 0


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the eventseries CLI and exit with its status code."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(debug_mode=args.debug, log_level=config.log_level)

    try:
        if args.command == "expand":
            code = _run_expand(args, config.default_time_zone, config.max_occurrences)
        else:
            code = _run_describe(args, config.default_time_zone)
    except (EventSeriesError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(2)

    sys.exit(code)


if __name__ == "__main__":
    main()
