"""Rule-based financial insights with optional LLM rewording."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Tuple

import openai
import pandas as pd

from records import ZERO, AggregationResult, BudgetSuggestion, TrendDirection, to_cents

logger = logging.getLogger(__name__)

LOW_SAVINGS_RATE_PCT = 10.0
LOW_HEALTH_SCORE = 50
MAX_AI_RECOMMENDATIONS = 3

# Share of average monthly expenses each category should take.
STANDARD_BUDGET_SHARES = {
    "Housing": Decimal("0.30"),
    "Food & Dining": Decimal("0.12"),
    "Transportation": Decimal("0.15"),
    "Utilities": Decimal("0.05"),
    "Entertainment": Decimal("0.05"),
    "Shopping": Decimal("0.05"),
    "Healthcare": Decimal("0.05"),
    "Insurance": Decimal("0.10"),
    "Other": Decimal("0.13"),
}
DEFAULT_BUDGET_SHARE = Decimal("0.05")
BUDGET_OVERRUN_FACTOR = Decimal("1.2")
MAX_BUDGET_SUGGESTIONS = 5


@dataclass(frozen=True)
class Insights:
    summary: str
    recommendations: list[str] = field(default_factory=list)
    alerts: list[str] = field(default_factory=list)
    budget_suggestions: list[BudgetSuggestion] = field(default_factory=list)


def budget_suggestions(result: AggregationResult) -> list[BudgetSuggestion]:
    """Categories whose average monthly spend runs over 1.2x their standard budget.

    Ranked by savings potential, largest first; at most five.
    """
    periods = result.periods
    if not periods:
        return []
    count = Decimal(len(periods))
    avg_expenses = sum((period.expenses for period in periods), ZERO) / count
    if avg_expenses <= 0:
        return []

    category_spend: dict[str, Decimal] = {}
    for period in periods:
        for category, amount in period.category_totals.items():
            category_spend[category] = category_spend.get(category, ZERO) + amount

    suggestions = []
    for category, total in category_spend.items():
        current = total / count
        recommended = avg_expenses * STANDARD_BUDGET_SHARES.get(category, DEFAULT_BUDGET_SHARE)
        if current > recommended * BUDGET_OVERRUN_FACTOR:
            suggestions.append(
                BudgetSuggestion(
                    category=category,
                    current_spending=to_cents(current),
                    recommended_budget=to_cents(recommended),
                    savings_potential=to_cents(current - recommended),
                )
            )
    suggestions.sort(key=lambda item: (-item.savings_potential, item.category))
    return suggestions[:MAX_BUDGET_SUGGESTIONS]


def budget_frame(suggestions: list[BudgetSuggestion]) -> pd.DataFrame:
    rows = [
        {
            "Category": item.category,
            "MonthlyActual": float(item.current_spending),
            "MonthlyTarget": float(item.recommended_budget),
            "SavingsPotential": float(item.savings_potential),
        }
        for item in suggestions
    ]
    return pd.DataFrame(rows)


def periods_frame(result: AggregationResult) -> pd.DataFrame:
    rows = [
        {
            "Period": period.period_key,
            "Income": float(period.income),
            "Expenses": float(period.expenses),
            "NetFlow": float(period.net_flow),
            "SavingsRatePct": round(period.savings_rate, 1),
            "TopCategory": period.top_categories[0].category if period.top_categories else "",
        }
        for period in result.periods
    ]
    return pd.DataFrame(rows)


def _safe_table(df: pd.DataFrame, limit: int = 12) -> str:
    if df is None or df.empty:
        return "(none)"
    return df.tail(limit).to_string(index=False)


def _trend_text(result: AggregationResult) -> str:
    trend = result.trend
    if trend.direction is TrendDirection.INCREASING:
        return f"increasing by {abs(trend.percent_change):.1f}%"
    if trend.direction is TrendDirection.DECREASING:
        return f"decreasing by {abs(trend.percent_change):.1f}%"
    return "remaining stable"


def build_rule_based_insights(result: AggregationResult) -> Insights:
    """Deterministic summary, recommendations and alerts from aggregated analytics."""
    health = result.health
    if not result.periods:
        return Insights(
            summary="No transaction data available for analysis.",
            recommendations=list(health.recommendations),
        )

    last = result.periods[-1]
    summary = (
        f"Your financial health score is {health.score}/100. "
        f"Last period you had ${last.income:,.2f} in income and "
        f"${last.expenses:,.2f} in expenses. "
        f"Your spending is {_trend_text(result)}."
    )

    alerts = []
    if last.savings_rate < LOW_SAVINGS_RATE_PCT:
        alerts.append("Low savings rate detected")
    if last.net_flow < 0:
        alerts.append("Negative cash flow this period")
    if health.score < LOW_HEALTH_SCORE:
        alerts.append("Financial health needs attention")

    return Insights(
        summary=summary,
        recommendations=list(health.recommendations),
        alerts=alerts,
        budget_suggestions=budget_suggestions(result),
    )


def build_ai_prompt(result: AggregationResult, insights: Insights, user_goal: str = "") -> str:
    """Build a concise prompt for AI analysis."""
    factors = ", ".join(f"{name}={score}" for name, score in result.health.factors.items())
    lines = [
        "Rewrite this personal finance analysis into concise, practical advice.",
        "Return a one-paragraph summary, then up to three recommendations as '- ' bullets.",
        "",
        f"User goal: {user_goal.strip() or '(not specified)'}",
        "",
        f"Health score: {result.health.score}/100 ({factors})",
        f"Spending trend: {_trend_text(result)}",
        "",
        "Periods:",
        _safe_table(periods_frame(result)),
        "",
        "Categories over standard budget (monthly):",
        _safe_table(budget_frame(insights.budget_suggestions)),
        "",
        "Rule-based summary:",
        insights.summary,
        "",
        "Rule-based recommendations:",
        *(f"- {item}" for item in insights.recommendations),
    ]
    return "\n".join(lines)


def parse_ai_response(content: str, fallback: Insights) -> Insights:
    """Split a model reply into summary and bullet recommendations."""
    summary_lines: list[str] = []
    bullets: list[str] = []
    for line in content.splitlines():
        text = line.strip()
        if text.startswith(("- ", "* ")):
            bullets.append(text[2:].strip())
        elif text and not bullets:
            summary_lines.append(text)
    summary = " ".join(summary_lines).strip() or fallback.summary
    recommendations = [item for item in bullets if item][:MAX_AI_RECOMMENDATIONS] or fallback.recommendations
    return replace(fallback, summary=summary, recommendations=recommendations)


def generate_insights(
    result: AggregationResult,
    api_key: str = "",
    model: str = "gpt-4.1-mini",
    user_goal: str = "",
) -> Tuple[str, Insights]:
    """Return (mode, insights). Falls back to the rule-based insights when needed."""
    offline = build_rule_based_insights(result)
    if not api_key.strip() or not result.periods:
        return "offline", offline

    prompt = build_ai_prompt(result, offline, user_goal=user_goal)
    try:
        client = openai.OpenAI(api_key=api_key.strip())
        response = client.chat.completions.create(
            model=model,
            temperature=0.25,
            messages=[
                {
                    "role": "system",
                    "content": (
                        "You are a strict financial analyst. Give precise actions with numbers, "
                        "clear assumptions, and no generic advice."
                    ),
                },
                {"role": "user", "content": prompt},
            ],
        )
    except openai.OpenAIError as exc:
        logger.warning("AI insight request failed, using rule-based insights", extra={"error": str(exc)})
        return "offline", offline

    content = response.choices[0].message.content if response.choices else ""
    content = (content or "").strip()
    if not content:
        return "offline", offline
    return "online", parse_ai_response(content, offline)
