from pathlib import Path

import pytest

import category_rules
from categorization import DEFAULT_CATEGORY_RULES, build_category_rules, categorize
from category_rules import get_category_rules, load_category_rules, rules_from_payload, save_category_rules
from errors import RuleConfigError


def _summary(rules) -> list[tuple[str, tuple[str, ...], list[str]]]:
    return [(rule.name, rule.keywords, [p.pattern for p in rule.patterns]) for rule in rules]


def test_save_and_load_category_rules(tmp_path: Path) -> None:
    rules = build_category_rules({"Coffee": ["espresso", "latte"]}, {"Coffee": [r"\bbrew\b"]})

    saved = save_category_rules(str(tmp_path / "nested" / "rules.json"), rules)
    loaded = load_category_rules(str(saved))

    assert saved.exists()
    assert _summary(loaded) == _summary(rules)
    assert categorize("Morning brew", loaded).category == "Coffee"


def test_load_category_rules_missing_file_uses_defaults(tmp_path: Path) -> None:
    assert load_category_rules(str(tmp_path / "missing.json")) is DEFAULT_CATEGORY_RULES


def test_load_category_rules_rejects_invalid_json(tmp_path: Path) -> None:
    target = tmp_path / "rules.json"
    target.write_text("{not json", encoding="utf-8")

    with pytest.raises(RuleConfigError) as excinfo:
        load_category_rules(str(target))
    assert excinfo.value.context["source"] == str(target)


def test_rules_from_payload_validates_entries() -> None:
    with pytest.raises(RuleConfigError):
        rules_from_payload({"categories": []})
    with pytest.raises(RuleConfigError):
        rules_from_payload({"categories": [{"keywords": ["x"]}]})
    with pytest.raises(RuleConfigError):
        rules_from_payload({"categories": [{"name": "Broken", "patterns": ["(unclosed"]}]})


def test_rules_from_payload_ignores_blank_keywords() -> None:
    rules = rules_from_payload({"categories": [{"name": "Pets", "keywords": ["Dog ", "", "  "]}]})

    assert rules[0].keywords == ("dog",)
    assert rules[0].patterns == ()


def test_get_category_rules_reads_configured_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = save_category_rules(str(tmp_path / "rules.json"), build_category_rules({"Books": ["novel"]}))
    monkeypatch.setattr(category_rules.settings, "category_rules_path", str(target))
    get_category_rules.cache_clear()

    try:
        rules = get_category_rules()
        assert [rule.name for rule in rules] == ["Books"]
        assert get_category_rules() is rules
    finally:
        get_category_rules.cache_clear()


def test_get_category_rules_defaults_without_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(category_rules.settings, "category_rules_path", "")
    get_category_rules.cache_clear()

    try:
        assert get_category_rules() is DEFAULT_CATEGORY_RULES
    finally:
        get_category_rules.cache_clear()
