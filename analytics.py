"""Period analytics, spending trend and financial health over categorized transactions."""

from __future__ import annotations

import datetime
import logging
import math
from decimal import Decimal
from typing import Iterable

import pandas as pd

from categorization import UNCATEGORIZED
from records import (
    ZERO,
    AggregationResult,
    CategorizedTransaction,
    CategoryShare,
    FinancialHealth,
    Granularity,
    PeriodAnalytics,
    TrendAnalysis,
    TrendDirection,
    to_cents,
)

logger = logging.getLogger(__name__)

TOP_CATEGORY_COUNT = 5
TREND_LOOKBACK = 3
HEALTH_LOOKBACK = 6
STABLE_CHANGE_RATE = 0.05
FACTOR_ALERT_THRESHOLD = 50.0
CATEGORY_SHARE_ALERT_PCT = 30.0
MAX_RECOMMENDATIONS = 3
NEUTRAL_SCORE = 50
NO_DATA_RECOMMENDATION = "Not enough data for comprehensive analysis"

FACTOR_RECOMMENDATIONS = {
    "savings_rate": "Increase savings rate by reducing discretionary spending",
    "spending_control": "Stabilize monthly expenses to improve budget predictability",
    "income_stability": "Consider diversifying income sources for stability",
    "debt_management": "Focus on reducing expenses to avoid negative cash flow",
}

FRAME_COLUMNS = ["Date", "Description", "Amount", "Category", "Confidence", "Account"]


def resolve_granularity(value: Granularity | str) -> Granularity:
    try:
        return Granularity(str(getattr(value, "value", value)).lower())
    except ValueError:
        logger.warning("Unknown period granularity, using month", extra={"granularity": str(value)})
        return Granularity.MONTH


def period_key(date: datetime.date, granularity: Granularity | str = Granularity.MONTH) -> str:
    """Calendar bucket key: YYYY-MM, YYYY-Qn or YYYY."""
    granularity = resolve_granularity(granularity)
    if granularity is Granularity.QUARTER:
        return f"{date.year:04d}-Q{(date.month - 1) // 3 + 1}"
    if granularity is Granularity.YEAR:
        return f"{date.year:04d}"
    return f"{date.year:04d}-{date.month:02d}"


def transactions_frame(transactions: Iterable[CategorizedTransaction]) -> pd.DataFrame:
    """Tabular view of categorized transactions; amounts stay Decimal."""
    rows = [
        {
            "Date": tx.date,
            "Description": tx.description,
            "Amount": tx.amount,
            "Category": (tx.category or "").strip() or UNCATEGORIZED,
            "Confidence": tx.confidence,
            "Account": tx.account,
        }
        for tx in transactions
    ]
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def _decimal_sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def _percent(part: Decimal, whole: Decimal) -> float:
    return float(part / whole * 100) if whole > 0 else 0.0


def _category_totals(rows: pd.DataFrame) -> dict[str, Decimal]:
    if rows.empty:
        return {}
    grouped = rows.groupby("Category", sort=True)["Amount"].agg(lambda s: _decimal_sum(abs(v) for v in s))
    return {str(category): total for category, total in grouped.items()}


def period_analytics(key: str, rows: pd.DataFrame) -> PeriodAnalytics:
    """Income, expenses, savings rate and top expense categories for one bucket."""
    income_rows = rows[rows["Amount"].map(lambda v: v > 0)]
    expense_rows = rows[rows["Amount"].map(lambda v: v < 0)]

    income = _decimal_sum(income_rows["Amount"])
    expenses = _decimal_sum(abs(v) for v in expense_rows["Amount"])
    net_flow = income - expenses

    category_totals = _category_totals(expense_rows)
    ranked = sorted(category_totals.items(), key=lambda item: (-item[1], item[0]))
    top_categories = [
        CategoryShare(category=category, amount=amount, percent_of_expenses=_percent(amount, expenses))
        for category, amount in ranked[:TOP_CATEGORY_COUNT]
    ]

    return PeriodAnalytics(
        period_key=key,
        income=income,
        expenses=expenses,
        net_flow=net_flow,
        category_totals=category_totals,
        top_categories=top_categories,
        savings_rate=_percent(net_flow, income),
        income_totals=_category_totals(income_rows),
        transaction_count=int(len(rows)),
    )


def analyze_trend(periods: list[PeriodAnalytics]) -> TrendAnalysis:
    """Expense direction over the last three periods plus a linear next-period projection."""
    recent = [period.expenses for period in periods[-TREND_LOOKBACK:]]
    if not recent:
        return TrendAnalysis(direction=TrendDirection.STABLE, percent_change=0.0, projected_next_value=ZERO)

    first, last = recent[0], recent[-1]
    change_rate = float((last - first) / first) if first > 0 else 0.0
    if abs(change_rate) < STABLE_CHANGE_RATE:
        direction = TrendDirection.STABLE
    elif change_rate > 0:
        direction = TrendDirection.INCREASING
    else:
        direction = TrendDirection.DECREASING

    avg_step = (last - first) / (len(recent) - 1) if len(recent) > 1 else ZERO
    projection = max(last + avg_step, ZERO)
    return TrendAnalysis(
        direction=direction,
        percent_change=change_rate * 100.0,
        projected_next_value=to_cents(projection),
    )


def coefficient_of_variation(values: list[float]) -> float:
    """Population stddev over mean; zero for fewer than two points or a zero mean."""
    if len(values) < 2:
        return 0.0
    series = pd.Series(values, dtype=float)
    mean = float(series.mean())
    if mean == 0:
        return 0.0
    return float(series.std(ddof=0)) / abs(mean)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_score(value: float) -> float:
    return min(max(value, 0.0), 100.0)


def _recommendations(factors: dict[str, float], latest: PeriodAnalytics) -> list[str]:
    # (severity, declaration order, message); severity is the relative depth of the breach.
    candidates: list[tuple[float, int, str]] = []
    for order, (name, value) in enumerate(factors.items()):
        if value < FACTOR_ALERT_THRESHOLD:
            severity = (FACTOR_ALERT_THRESHOLD - value) / FACTOR_ALERT_THRESHOLD
            candidates.append((severity, order, FACTOR_RECOMMENDATIONS[name]))

    for offset, share in enumerate(latest.top_categories):
        if share.percent_of_expenses > CATEGORY_SHARE_ALERT_PCT:
            severity = (share.percent_of_expenses - CATEGORY_SHARE_ALERT_PCT) / (100.0 - CATEGORY_SHARE_ALERT_PCT)
            candidates.append(
                (
                    severity,
                    len(factors) + offset,
                    f"Consider reducing {share.category} spending "
                    f"(currently {share.percent_of_expenses:.1f}% of expenses)",
                )
            )

    candidates.sort(key=lambda item: (-item[0], item[1]))
    return [message for _, _, message in candidates[:MAX_RECOMMENDATIONS]]


def financial_health(periods: list[PeriodAnalytics]) -> FinancialHealth:
    """Blend savings, spending control, income stability and debt factors into a 0-100 score."""
    if not periods:
        return FinancialHealth(
            score=NEUTRAL_SCORE,
            factors={name: NEUTRAL_SCORE for name in FACTOR_RECOMMENDATIONS},
            recommendations=[NO_DATA_RECOMMENDATION],
        )

    recent = periods[-HEALTH_LOOKBACK:]
    avg_savings_rate = sum(period.savings_rate for period in recent) / len(recent)
    expense_cv = coefficient_of_variation([float(period.expenses) for period in recent])
    income_cv = coefficient_of_variation([float(period.income) for period in recent])
    negative_share = sum(1 for period in recent if period.net_flow < 0) / len(recent)

    factors = {
        "savings_rate": _clamp_score(min(avg_savings_rate * 2, 100.0)),
        "spending_control": _clamp_score(100.0 - expense_cv * 10),
        "income_stability": _clamp_score(100.0 - income_cv * 5),
        "debt_management": _clamp_score(100.0 - negative_share * 100),
    }
    overall = sum(factors.values()) / len(factors)

    return FinancialHealth(
        score=int(_clamp_score(_round_half_up(overall))),
        factors={name: _round_half_up(value) for name, value in factors.items()},
        recommendations=_recommendations(factors, recent[-1]),
    )


def aggregate(
    transactions: Iterable[CategorizedTransaction],
    granularity: Granularity | str = Granularity.MONTH,
) -> AggregationResult:
    """Bucket transactions by calendar period and derive trend and health."""
    granularity = resolve_granularity(granularity)
    frame = transactions_frame(transactions)

    periods: list[PeriodAnalytics] = []
    if not frame.empty:
        frame["Period"] = frame["Date"].map(lambda d: period_key(d, granularity))
        for key, rows in frame.groupby("Period", sort=True):
            periods.append(period_analytics(str(key), rows))

    logger.debug(
        "Aggregated transactions",
        extra={"transactions": int(len(frame)), "periods": len(periods), "granularity": granularity.value},
    )
    return AggregationResult(periods=periods, trend=analyze_trend(periods), health=financial_health(periods))


def baseline_from_periods(
    periods: list[PeriodAnalytics],
    lookback: int = TREND_LOOKBACK,
) -> tuple[Decimal, Decimal]:
    """Average income and expenses over the most recent periods, for forecasting."""
    recent = periods[-max(int(lookback), 1):]
    if not recent:
        return ZERO, ZERO
    count = Decimal(len(recent))
    income = _decimal_sum(period.income for period in recent) / count
    expenses = _decimal_sum(period.expenses for period in recent) / count
    return to_cents(income), to_cents(expenses)


def summarize_transactions(transactions: Iterable[CategorizedTransaction]) -> dict[str, object]:
    """Totals, count and date range of a processed statement."""
    items = list(transactions)
    dates = sorted(tx.date for tx in items)
    return {
        "total_income": _decimal_sum(tx.amount for tx in items if tx.amount > 0),
        "total_expenses": _decimal_sum(abs(tx.amount) for tx in items if tx.amount < 0),
        "transaction_count": len(items),
        "start_date": dates[0] if dates else None,
        "end_date": dates[-1] if dates else None,
    }
