"""Typed transaction, analytics and forecast records."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convert a numeric value to a finite Decimal, falling back to zero."""
    if isinstance(value, Decimal):
        out = value
    else:
        try:
            out = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return ZERO
    return out if out.is_finite() else ZERO


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT)


class Granularity(str, Enum):
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class RawTransactionRecord:
    """One parsed statement line. Positive amount is an inflow."""

    date: datetime.date
    description: str
    amount: Decimal
    account: str | None = None


@dataclass(frozen=True)
class CategoryResult:
    category: str
    confidence: float
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class CategorizedTransaction:
    date: datetime.date
    description: str
    amount: Decimal
    category: str
    confidence: float
    tags: tuple[str, ...] = ()
    account: str | None = None

    @classmethod
    def from_record(cls, record: RawTransactionRecord, result: CategoryResult) -> "CategorizedTransaction":
        return cls(
            date=record.date,
            description=record.description,
            amount=record.amount,
            category=result.category,
            confidence=result.confidence,
            tags=tuple(result.tags),
            account=record.account,
        )


@dataclass(frozen=True)
class CategoryShare:
    category: str
    amount: Decimal
    percent_of_expenses: float


@dataclass(frozen=True)
class PeriodAnalytics:
    """Income, spending and category split for one calendar bucket."""

    period_key: str
    income: Decimal
    expenses: Decimal
    net_flow: Decimal
    category_totals: dict[str, Decimal]
    top_categories: list[CategoryShare]
    savings_rate: float
    income_totals: dict[str, Decimal] = field(default_factory=dict)
    transaction_count: int = 0


@dataclass(frozen=True)
class TrendAnalysis:
    direction: TrendDirection
    percent_change: float
    projected_next_value: Decimal


@dataclass(frozen=True)
class FinancialHealth:
    score: int
    factors: dict[str, int]
    recommendations: list[str]


@dataclass(frozen=True)
class AggregationResult:
    periods: list[PeriodAnalytics]
    trend: TrendAnalysis
    health: FinancialHealth


@dataclass(frozen=True)
class BudgetSuggestion:
    """Monthly category spend against a standard budget share of expenses."""

    category: str
    current_spending: Decimal
    recommended_budget: Decimal
    savings_potential: Decimal


@dataclass(frozen=True)
class ScenarioChange:
    """Adjustment to one category: a percentage, a flat monthly amount, or both."""

    category: str
    change_percent: float | None = None
    change_amount: Decimal | None = None


@dataclass(frozen=True)
class Scenario:
    id: str
    name: str
    changes: tuple[ScenarioChange, ...] = ()
    description: str = ""
    active: bool = True


@dataclass(frozen=True)
class ForecastPoint:
    period_index: int
    scenario_id: str
    net_flow: Decimal
    cumulative_balance: Decimal
