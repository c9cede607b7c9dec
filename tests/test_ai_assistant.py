import datetime
from decimal import Decimal
from types import SimpleNamespace

import openai
import pytest

import ai_assistant
from ai_assistant import (
    Insights,
    build_ai_prompt,
    budget_suggestions,
    build_rule_based_insights,
    generate_insights,
    parse_ai_response,
)
from analytics import aggregate
from records import CategorizedTransaction


def _tx(day: int, description: str, amount: str, category: str) -> CategorizedTransaction:
    return CategorizedTransaction(
        date=datetime.date(2024, 1, day),
        description=description,
        amount=Decimal(amount),
        category=category,
        confidence=0.6,
    )


def _overspent_month():
    return aggregate(
        [
            _tx(1, "Payroll", "1000.00", "Salary"),
            _tx(3, "Rent", "-1200.00", "Housing"),
            _tx(9, "Dinner", "-300.00", "Food & Dining"),
        ]
    )


def _fake_client(content: str):
    def create(**kwargs):
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def test_rule_based_insights_alerts() -> None:
    insights = build_rule_based_insights(_overspent_month())

    assert "50/100" in insights.summary
    assert "$1,000.00 in income" in insights.summary
    assert "$1,500.00 in expenses" in insights.summary
    assert insights.alerts == ["Low savings rate detected", "Negative cash flow this period"]
    assert insights.recommendations


def test_rule_based_insights_without_data() -> None:
    insights = build_rule_based_insights(aggregate([]))

    assert insights.summary == "No transaction data available for analysis."
    assert insights.recommendations == ["Not enough data for comprehensive analysis"]
    assert insights.alerts == []


def test_generate_insights_offline_without_key() -> None:
    result = _overspent_month()

    mode, insights = generate_insights(result, api_key="  ")

    assert mode == "offline"
    assert insights == build_rule_based_insights(result)


def test_build_ai_prompt_includes_goal_and_periods() -> None:
    result = _overspent_month()

    prompt = build_ai_prompt(result, build_rule_based_insights(result), user_goal="Save for a car")

    assert "User goal: Save for a car" in prompt
    assert "2024-01" in prompt
    assert "Health score: 50/100" in prompt


def test_parse_ai_response_splits_summary_and_bullets() -> None:
    fallback = Insights(summary="fallback", recommendations=["keep"], alerts=["alert"])

    parsed = parse_ai_response("Spend less on rent.\nIt is most of your budget.\n- Move\n* Cook at home\n- A\n- B", fallback)

    assert parsed.summary == "Spend less on rent. It is most of your budget."
    assert parsed.recommendations == ["Move", "Cook at home", "A"]
    assert parsed.alerts == ["alert"]
    assert parse_ai_response("", fallback) == fallback


def test_generate_insights_online(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        ai_assistant.openai,
        "OpenAI",
        lambda **kwargs: _fake_client("Cut dining out.\n- Cook four nights a week"),
    )

    mode, insights = generate_insights(_overspent_month(), api_key="sk-test")

    assert mode == "online"
    assert insights.summary == "Cut dining out."
    assert insights.recommendations == ["Cook four nights a week"]
    assert "Negative cash flow this period" in insights.alerts


def test_generate_insights_falls_back_on_api_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_client(**kwargs):
        raise openai.OpenAIError("service unavailable")

    monkeypatch.setattr(ai_assistant.openai, "OpenAI", failing_client)

    mode, insights = generate_insights(_overspent_month(), api_key="sk-test")

    assert mode == "offline"
    assert insights.alerts == ["Low savings rate detected", "Negative cash flow this period"]


def test_generate_insights_empty_reply_is_offline(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(ai_assistant.openai, "OpenAI", lambda **kwargs: _fake_client("   "))

    mode, _ = generate_insights(_overspent_month(), api_key="sk-test")

    assert mode == "offline"


def _spend(*pairs: tuple[str, str]):
    transactions = [_tx(1, "Payroll", "5000.00", "Salary")]
    transactions.extend(_tx(2, category, f"-{amount}", category) for category, amount in pairs)
    return aggregate(transactions)


def test_budget_suggestions_flag_overspent_categories_by_savings_potential() -> None:
    result = _spend(
        ("Housing", "1000.00"),
        ("Food & Dining", "500.00"),
        ("Entertainment", "100.00"),
        ("Pets", "50.00"),
    )

    suggestions = budget_suggestions(result)

    assert [item.category for item in suggestions] == ["Housing", "Food & Dining", "Entertainment"]
    assert suggestions[0].current_spending == Decimal("1000.00")
    assert suggestions[0].recommended_budget == Decimal("495.00")
    assert suggestions[0].savings_potential == Decimal("505.00")
    assert suggestions[2].savings_potential == Decimal("17.50")


def test_budget_suggestions_require_more_than_twenty_percent_overrun() -> None:
    suggestions = budget_suggestions(_spend(("Housing", "940.00"), ("Shopping", "60.00")))

    assert [item.category for item in suggestions] == ["Housing"]


def test_budget_suggestions_keep_top_five() -> None:
    names = ["Pets", "Gifts", "Charity", "Travel", "Education", "Personal Care", "Investment"]

    suggestions = budget_suggestions(_spend(*((name, "100.00") for name in names)))

    assert [item.category for item in suggestions] == sorted(names)[:5]
    assert budget_suggestions(aggregate([])) == []


def test_rule_based_insights_carry_budget_suggestions() -> None:
    result = _overspent_month()

    insights = build_rule_based_insights(result)
    prompt = build_ai_prompt(result, insights)

    assert [item.category for item in insights.budget_suggestions] == ["Housing", "Food & Dining"]
    assert "Categories over standard budget" in prompt
    assert "SavingsPotential" in prompt
