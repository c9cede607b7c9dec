"""Persistence helpers for the category rule table."""

from __future__ import annotations

import functools
import json
import logging
import re
from pathlib import Path
from typing import Any

from categorization import DEFAULT_CATEGORY_RULES, CategoryRule, build_category_rules
from errors import RuleConfigError
from settings import settings

logger = logging.getLogger(__name__)


def _normalize_str_list(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(item).strip() for item in raw if str(item).strip()]


def rules_from_payload(payload: Any, source: str = "<memory>") -> tuple[CategoryRule, ...]:
    """Build rules from ``{"categories": [{"name", "keywords", "patterns"}]}``."""
    entries = payload.get("categories") if isinstance(payload, dict) else None
    if not isinstance(entries, list) or not entries:
        raise RuleConfigError("Rule file must contain a non-empty 'categories' list.", source=source)

    keyword_map: dict[str, list[str]] = {}
    pattern_map: dict[str, list[str]] = {}
    for entry in entries:
        name = str(entry.get("name", "")).strip() if isinstance(entry, dict) else ""
        if not name:
            raise RuleConfigError("Every category needs a name.", source=source)
        keyword_map[name] = _normalize_str_list(entry.get("keywords", []))
        pattern_map[name] = _normalize_str_list(entry.get("patterns", []))

    try:
        return build_category_rules(keyword_map, pattern_map)
    except re.error as exc:
        raise RuleConfigError(f"Invalid category pattern: {exc}", source=source) from exc


def load_category_rules(path: str) -> tuple[CategoryRule, ...]:
    """Load the rule table from disk, or the built-in table when the file is absent."""
    target = Path(path).expanduser()
    if not target.exists():
        logger.info("Category rule file not found, using defaults", extra={"path": str(target)})
        return DEFAULT_CATEGORY_RULES
    try:
        payload = json.loads(target.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise RuleConfigError(f"Rule file is not valid JSON: {exc}", source=str(target)) from exc
    rules = rules_from_payload(payload, source=str(target))
    logger.info("Loaded category rules", extra={"path": str(target), "categories": len(rules)})
    return rules


def save_category_rules(path: str, rules: tuple[CategoryRule, ...]) -> Path:
    """Save the rule table to disk and return saved path."""
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "categories": [
            {
                "name": rule.name,
                "keywords": list(rule.keywords),
                "patterns": [pattern.pattern for pattern in rule.patterns],
            }
            for rule in rules
        ]
    }
    target.write_text(json.dumps(payload, indent=2, ensure_ascii=True), encoding="utf-8")
    return target


@functools.lru_cache(maxsize=1)
def get_category_rules() -> tuple[CategoryRule, ...]:
    """Process-wide rule table, loaded once from the configured path."""
    if not settings.category_rules_path:
        return DEFAULT_CATEGORY_RULES
    return load_category_rules(settings.category_rules_path)
