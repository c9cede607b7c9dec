"""Statement processing: parse, categorize, aggregate and project."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Iterable

from ai_assistant import generate_insights
from analytics import aggregate, baseline_from_periods, summarize_transactions
from categorization import CategoryRule, categorize_transactions
from category_rules import get_category_rules
from document_parsing import SUPPORTED_EXTENSIONS as DOCUMENT_EXTENSIONS
from document_parsing import parse_document_statement
from errors import UnsupportedFileTypeError
from forecasting import DEFAULT_SCENARIOS, compare_scenarios, project
from parsing import SUPPORTED_EXTENSIONS as TABULAR_EXTENSIONS
from parsing import parse_tabular_statement
from records import CategorizedTransaction, Granularity, RawTransactionRecord, Scenario
from settings import settings

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = TABULAR_EXTENSIONS + DOCUMENT_EXTENSIONS


@dataclass(frozen=True)
class ProcessingResult:
    source: str
    transactions: list[CategorizedTransaction]
    summary: dict[str, Any] = field(default_factory=dict)


def parse_statement(payload: bytes, filename: str) -> list[RawTransactionRecord]:
    """Pick the parser from the file extension."""
    suffix = Path(filename).suffix.lower()
    if suffix in TABULAR_EXTENSIONS:
        return parse_tabular_statement(payload, source_name=filename)
    if suffix in DOCUMENT_EXTENSIONS:
        return parse_document_statement(payload, source_name=filename)
    raise UnsupportedFileTypeError(
        f"Unsupported file type: {suffix or '<none>'}. Supported: {', '.join(SUPPORTED_EXTENSIONS)}.",
        source=filename,
    )


def _is_monthly(granularity: Granularity | str | None) -> bool:
    value = granularity or settings.default_granularity
    return str(getattr(value, "value", value)).lower() == Granularity.MONTH.value


def process_statement(
    payload: bytes,
    filename: str,
    rules: tuple[CategoryRule, ...] | None = None,
) -> ProcessingResult:
    """Parse and categorize one uploaded statement."""
    records = parse_statement(payload, filename)
    transactions = categorize_transactions(records, rules or get_category_rules())
    summary = summarize_transactions(transactions)
    logger.info(
        "Processed statement",
        extra={"source": filename, "transactions": summary["transaction_count"]},
    )
    return ProcessingResult(source=filename, transactions=transactions, summary=summary)


def build_report(
    transactions: Iterable[CategorizedTransaction],
    granularity: Granularity | str | None = None,
    scenarios: Iterable[Scenario] | None = None,
    horizon_months: int | None = None,
    api_key: str | None = None,
) -> dict[str, Any]:
    """Analytics, insights and scenario forecast for a set of transactions."""
    transactions = list(transactions)
    result = aggregate(transactions, granularity or settings.default_granularity)
    mode, insights = generate_insights(
        result,
        api_key=settings.openai_api_key if api_key is None else api_key,
        model=settings.openai_model,
    )

    # The forecast baseline is always monthly, whatever the reporting granularity.
    monthly = result if _is_monthly(granularity) else aggregate(transactions, Granularity.MONTH)
    baseline_income, baseline_expenses = baseline_from_periods(
        monthly.periods, lookback=settings.baseline_lookback_periods
    )
    horizon = settings.forecast_horizon_months if horizon_months is None else horizon_months
    points = project(
        baseline_income,
        baseline_expenses,
        DEFAULT_SCENARIOS if scenarios is None else scenarios,
        horizon,
    )
    comparison = compare_scenarios(points, baseline_expenses)

    return {
        "summary": summarize_transactions(transactions),
        "analytics": asdict(result),
        "insights": {"mode": mode, **asdict(insights)},
        "forecast": {
            "baseline_income": baseline_income,
            "baseline_expenses": baseline_expenses,
            "horizon_months": horizon,
            "points": [asdict(point) for point in points],
            "comparison": comparison.to_dict(orient="records"),
        },
    }
