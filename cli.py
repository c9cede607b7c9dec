"""Command line report for one or more statement files."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from categorization import categorize_transactions
from category_rules import load_category_rules
from errors import StatementError
from logging_setup import setup_logging
from parsing import merge_statements
from pipeline import build_report, parse_statement
from settings import settings


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Parse bank statements and print analytics with a forecast.")
    parser.add_argument("statements", nargs="+", help="CSV, PDF or text statement files.")
    parser.add_argument(
        "--granularity",
        choices=["month", "quarter", "year"],
        default=settings.default_granularity,
        help="Period size for analytics buckets.",
    )
    parser.add_argument(
        "--horizon-months",
        type=int,
        default=settings.forecast_horizon_months,
        help="Number of months to project.",
    )
    parser.add_argument(
        "--rules",
        default=settings.category_rules_path,
        help="JSON category rule file (defaults to the built-in table).",
    )
    parser.add_argument(
        "--keep-duplicates",
        action="store_true",
        help="Keep rows repeated across overlapping exports.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    # stdout carries the report itself.
    setup_logging(stream=sys.stderr)

    try:
        rules = load_category_rules(args.rules) if args.rules else None
        batches = [parse_statement(Path(path).expanduser().read_bytes(), str(path)) for path in args.statements]
        records = merge_statements(batches, drop_duplicates=not args.keep_duplicates)
        report = build_report(
            categorize_transactions(records, rules),
            granularity=args.granularity,
            horizon_months=args.horizon_months,
        )
    except StatementError as exc:
        print(f"error: {exc} {exc.context}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(report, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
