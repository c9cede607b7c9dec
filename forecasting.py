"""Month-by-month cashflow projection under hypothetical scenarios."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable

import pandas as pd

from errors import InvalidHorizonError
from records import ZERO, ForecastPoint, Scenario, ScenarioChange, to_cents, to_decimal

logger = logging.getLogger(__name__)

# Each named category is assumed to be this share of total expenses.
CATEGORY_EXPENSE_SHARE = Decimal("0.15")
INCOME_CATEGORIES = frozenset({"income", "salary", "other income"})
BASELINE_SCENARIO_ID = "baseline"

DEFAULT_SCENARIOS = (
    Scenario(
        id=BASELINE_SCENARIO_ID,
        name="Current Trajectory",
        description="Continue with current spending patterns",
    ),
    Scenario(
        id="optimized",
        name="Optimized Spending",
        description="Moderate cuts in discretionary categories",
        changes=(
            ScenarioChange(category="Food & Dining", change_percent=-40),
            ScenarioChange(category="Entertainment", change_percent=-25),
            ScenarioChange(category="Shopping", change_percent=-20),
            ScenarioChange(category="Subscriptions", change_percent=-30),
        ),
    ),
    Scenario(
        id="aggressive-saving",
        name="Aggressive Saving",
        description="Maximum savings through disciplined spending",
        changes=(
            ScenarioChange(category="Food & Dining", change_percent=-50),
            ScenarioChange(category="Entertainment", change_percent=-60),
            ScenarioChange(category="Shopping", change_percent=-40),
            ScenarioChange(category="Travel", change_percent=-70),
        ),
        active=False,
    ),
    Scenario(
        id="income-boost",
        name="Income Boost",
        description="Increase earnings through additional income streams",
        changes=(ScenarioChange(category="Income", change_amount=Decimal("1500")),),
        active=False,
    ),
)


def is_income_category(category: str) -> bool:
    return str(category).strip().lower() in INCOME_CATEGORIES


def adjusted_monthly_flows(
    income: Decimal,
    expenses: Decimal,
    changes: Iterable[ScenarioChange],
) -> tuple[Decimal, Decimal]:
    """Apply scenario changes to one month of baseline income and expenses."""
    adjusted_income = income
    adjusted_expenses = expenses
    category_spend = expenses * CATEGORY_EXPENSE_SHARE
    for change in changes:
        percent = to_decimal(change.change_percent) if change.change_percent is not None else None
        amount = to_decimal(change.change_amount) if change.change_amount is not None else None
        if is_income_category(change.category):
            if amount is not None:
                adjusted_income += amount
            elif percent is not None:
                adjusted_income += income * percent / 100
            continue
        if percent is not None:
            adjusted_expenses += category_spend * percent / 100
        if amount is not None:
            adjusted_expenses += amount
    return adjusted_income, adjusted_expenses


def project(
    baseline_income: Any,
    baseline_expenses: Any,
    scenarios: Iterable[Scenario],
    horizon_months: int,
) -> list[ForecastPoint]:
    """Project net flow and cumulative balance for each active scenario.

    Month 0 is a snapshot of the baseline and carries no cumulative balance;
    months 1..horizon apply the scenario changes.
    """
    scenarios = [scenario for scenario in scenarios if scenario.active]
    if int(horizon_months) <= 0:
        raise InvalidHorizonError(
            f"Forecast horizon must be positive, got {horizon_months}.",
            horizon_months=horizon_months,
            scenario_ids=[scenario.id for scenario in scenarios],
        )

    income = to_decimal(baseline_income)
    expenses = to_decimal(baseline_expenses)
    baseline_net = income - expenses

    points: list[ForecastPoint] = []
    for scenario in scenarios:
        adjusted_income, adjusted_expenses = adjusted_monthly_flows(income, expenses, scenario.changes)
        monthly_net = adjusted_income - adjusted_expenses
        points.append(ForecastPoint(0, scenario.id, baseline_net, ZERO))
        cumulative = ZERO
        for month in range(1, int(horizon_months) + 1):
            cumulative += monthly_net
            points.append(ForecastPoint(month, scenario.id, monthly_net, cumulative))

    logger.debug(
        "Projected scenarios",
        extra={"scenarios": len(scenarios), "horizon_months": int(horizon_months)},
    )
    return points


def forecast_frame(points: Iterable[ForecastPoint]) -> pd.DataFrame:
    """Pivot forecast points to one row per month and a balance column per scenario."""
    rows = [
        {
            "Month": point.period_index,
            "Scenario": point.scenario_id,
            "NetFlow": float(point.net_flow),
            "CumulativeBalance": float(point.cumulative_balance),
        }
        for point in points
    ]
    if not rows:
        return pd.DataFrame()
    frame = pd.DataFrame(rows)
    return frame.pivot(index="Month", columns="Scenario", values="CumulativeBalance").sort_index()


def compare_scenarios(
    points: Iterable[ForecastPoint],
    baseline_expenses: Any,
    anchor_id: str = BASELINE_SCENARIO_ID,
) -> pd.DataFrame:
    """Final balance per scenario with impact versus the anchor scenario."""
    final: dict[str, ForecastPoint] = {}
    for point in points:
        current = final.get(point.scenario_id)
        if current is None or point.period_index > current.period_index:
            final[point.scenario_id] = point
    if not final:
        return pd.DataFrame()

    expenses = to_decimal(baseline_expenses)
    anchor = final.get(anchor_id)
    rows = []
    for scenario_id, point in final.items():
        months = max(point.period_index, 1)
        total_saved = point.cumulative_balance
        if anchor is not None and anchor.cumulative_balance != 0:
            impact_pct = float((total_saved - anchor.cumulative_balance) / abs(anchor.cumulative_balance) * 100)
        else:
            impact_pct = 0.0
        rows.append(
            {
                "ScenarioId": scenario_id,
                "Months": point.period_index,
                "TotalSaved": float(to_cents(total_saved)),
                "MonthlyAvg": float(to_cents(total_saved / months)),
                "ImpactPct": round(impact_pct, 2),
                "EmergencyFundMonths": round(float(total_saved / expenses), 2) if expenses > 0 else 0.0,
            }
        )
    return pd.DataFrame(rows).sort_values("TotalSaved", ascending=False).reset_index(drop=True)
