"""Category rule table and keyword/pattern scoring for transactions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable

from records import CategorizedTransaction, CategoryResult, RawTransactionRecord

FALLBACK_CATEGORY = "Other"
UNCATEGORIZED = "Uncategorized"
MAX_TAGS = 5
KEYWORD_LONG_LENGTH = 5
PATTERN_WEIGHT = 1.5
CONFIDENCE_SCALE = 5.0

# Declaration order is significant: equal scores resolve to the earlier category.
DEFAULT_KEYWORD_MAP = {
    "Food & Dining": [
        "restaurant",
        "cafe",
        "coffee",
        "pizza",
        "burger",
        "sushi",
        "bakery",
        "deli",
        "grocery",
        "supermarket",
        "market",
        "food",
        "dining",
        "mcdonald",
        "subway",
        "starbucks",
        "dunkin",
        "chipotle",
        "panera",
    ],
    "Transportation": [
        "uber",
        "lyft",
        "taxi",
        "gas",
        "fuel",
        "parking",
        "transit",
        "metro",
        "bus",
        "train",
        "airline",
        "flight",
        "car rental",
        "toll",
    ],
    "Shopping": [
        "amazon",
        "walmart",
        "target",
        "store",
        "shop",
        "mall",
        "retail",
        "clothing",
        "shoes",
        "fashion",
        "department",
    ],
    "Entertainment": [
        "netflix",
        "spotify",
        "movie",
        "cinema",
        "theater",
        "concert",
        "game",
        "music",
        "streaming",
        "hulu",
        "disney",
        "hbo",
        "youtube",
    ],
    "Utilities": [
        "electric",
        "gas",
        "water",
        "internet",
        "cable",
        "phone",
        "mobile",
        "verizon",
        "at&t",
        "comcast",
        "utility",
        "power",
        "energy",
    ],
    "Healthcare": [
        "pharmacy",
        "doctor",
        "hospital",
        "medical",
        "health",
        "dental",
        "vision",
        "insurance",
        "cvs",
        "walgreens",
        "clinic",
    ],
    "Housing": [
        "rent",
        "mortgage",
        "lease",
        "apartment",
        "property",
        "real estate",
        "home",
        "house",
        "maintenance",
        "repair",
    ],
    "Insurance": [
        "insurance",
        "premium",
        "coverage",
        "policy",
        "geico",
        "allstate",
        "progressive",
        "state farm",
    ],
    "Education": [
        "school",
        "university",
        "college",
        "tuition",
        "course",
        "class",
        "book",
        "education",
        "training",
        "student",
    ],
    "Personal Care": [
        "salon",
        "spa",
        "barber",
        "hair",
        "nail",
        "beauty",
        "cosmetic",
        "gym",
        "fitness",
        "yoga",
        "massage",
    ],
    "Salary": [
        "salary",
        "paycheck",
        "payroll",
        "wage",
        "direct deposit",
    ],
    "Other Income": [
        "transfer",
        "refund",
        "reimbursement",
        "dividend",
        "interest",
        "income",
        "rebate",
        "cashback",
    ],
    "Investment": [
        "investment",
        "stock",
        "bond",
        "mutual fund",
        "etf",
        "crypto",
        "bitcoin",
        "trading",
        "brokerage",
        "robinhood",
        "fidelity",
    ],
    "Charity": [
        "donation",
        "charity",
        "nonprofit",
        "foundation",
        "contribute",
        "give",
        "fundraiser",
    ],
    "Fees & Charges": [
        "fee",
        "charge",
        "penalty",
        "interest",
        "overdraft",
        "atm",
        "service charge",
        "late fee",
    ],
    "Travel": [
        "hotel",
        "motel",
        "airbnb",
        "booking",
        "vacation",
        "trip",
        "resort",
        "tourism",
        "luggage",
    ],
    "Subscriptions": [
        "subscription",
        "membership",
        "monthly",
        "annual",
        "recurring",
        "prime",
        "costco",
    ],
    "Pets": [
        "pet",
        "vet",
        "veterinary",
        "animal",
        "dog",
        "cat",
        "petco",
        "petsmart",
        "grooming",
    ],
    "Gifts": [
        "gift",
        "present",
        "birthday",
        "holiday",
        "christmas",
        "anniversary",
    ],
    "Cash & ATM": [
        "atm",
        "cash",
        "withdrawal",
        "deposit",
    ],
}

DEFAULT_PATTERN_MAP = {
    "Food & Dining": [r"\b(food|meal|lunch|dinner|breakfast)\b"],
    "Transportation": [r"\b(transport|commute|travel)\b"],
    "Shopping": [r"\b(purchase|buy|order)\b"],
    "Entertainment": [r"\b(entertainment|show|event)\b"],
    "Utilities": [r"\b(bill|service|monthly)\b"],
    "Healthcare": [r"\b(health|medical|prescription)\b"],
    "Housing": [r"\b(housing|residence|dwelling)\b"],
    "Insurance": [r"\b(insurance|coverage|premium)\b"],
    "Education": [r"\b(education|learning|study)\b"],
    "Personal Care": [r"\b(personal|care|grooming)\b"],
    "Salary": [r"\b(salary|payroll|wages?)\b"],
    "Other Income": [r"\b(income|earning|revenue)\b"],
    "Investment": [r"\b(invest|trade|portfolio)\b"],
    "Charity": [r"\b(charity|donate|contribution)\b"],
    "Fees & Charges": [r"\b(fee|charge|penalty)\b"],
    "Travel": [r"\b(travel|vacation|trip)\b"],
    "Subscriptions": [r"\b(subscription|membership)\b"],
    "Pets": [r"\b(pet|animal|veterinary)\b"],
    "Gifts": [r"\b(gift|present)\b"],
    "Cash & ATM": [r"\b(atm|cash|withdrawal)\b"],
}

_AMOUNT_IN_TEXT = re.compile(r"\$?(\d[\d,]*(?:\.\d+)?)")
_RECURRING_PATTERN = re.compile(r"\b(monthly|weekly|annual|recurring)\b", re.IGNORECASE)
_ONLINE_PATTERN = re.compile(r"\b(online|web|internet)\b", re.IGNORECASE)


@dataclass(frozen=True)
class CategoryRule:
    name: str
    keywords: tuple[str, ...]
    patterns: tuple[re.Pattern, ...]


def build_category_rules(
    keyword_map: dict[str, list[str]],
    pattern_map: dict[str, list[str]] | None = None,
) -> tuple[CategoryRule, ...]:
    """Compile keyword and regex lists into an ordered, read-only rule table."""
    pattern_map = pattern_map or {}
    names = list(keyword_map) + [name for name in pattern_map if name not in keyword_map]
    rules = []
    for name in names:
        keywords = tuple(str(kw).lower().strip() for kw in keyword_map.get(name, []) if str(kw).strip())
        patterns = tuple(re.compile(str(p), re.IGNORECASE) for p in pattern_map.get(name, []))
        rules.append(CategoryRule(name=str(name), keywords=keywords, patterns=patterns))
    return tuple(rules)


DEFAULT_CATEGORY_RULES = build_category_rules(DEFAULT_KEYWORD_MAP, DEFAULT_PATTERN_MAP)


def category_names(rules: tuple[CategoryRule, ...] | None = None) -> list[str]:
    """Return the taxonomy in declaration order."""
    return [rule.name for rule in (rules or DEFAULT_CATEGORY_RULES)]


def _score_rule(lowered: str, description: str, rule: CategoryRule) -> tuple[float, list[str]]:
    score = 0.0
    matched: list[str] = []
    for keyword in rule.keywords:
        if keyword in lowered:
            score += 2 if len(keyword) > KEYWORD_LONG_LENGTH else 1
            matched.append(keyword)
    for pattern in rule.patterns:
        if pattern.search(description):
            score += PATTERN_WEIGHT
    return score, matched


def _amount_tags(description: str) -> list[str]:
    match = _AMOUNT_IN_TEXT.search(description)
    if not match:
        return []
    try:
        amount = Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return []
    if amount > 1000:
        return ["high-value"]
    if amount < 10:
        return ["small-purchase"]
    return []


def generate_tags(description: str, matched_keywords: list[str]) -> tuple[str, ...]:
    """Matched keywords plus amount, recurrence and channel hints; unique, at most five."""
    tags = list(matched_keywords)
    tags.extend(_amount_tags(description))
    if _RECURRING_PATTERN.search(description):
        tags.append("recurring")
    if _ONLINE_PATTERN.search(description):
        tags.append("online")
    return tuple(dict.fromkeys(tags))[:MAX_TAGS]


def categorize(description: str, rules: tuple[CategoryRule, ...] | None = None) -> CategoryResult:
    """Score a description against every category and return the best match."""
    text = str(description or "")
    lowered = text.lower()
    best_category = FALLBACK_CATEGORY
    best_score = 0.0
    best_keywords: list[str] = []

    for rule in rules or DEFAULT_CATEGORY_RULES:
        score, matched = _score_rule(lowered, text, rule)
        if score > best_score:
            best_category, best_score, best_keywords = rule.name, score, matched

    confidence = min(best_score / CONFIDENCE_SCALE, 1.0)
    return CategoryResult(
        category=best_category,
        confidence=confidence,
        tags=generate_tags(text, best_keywords),
    )


def categorize_transactions(
    records: Iterable[RawTransactionRecord],
    rules: tuple[CategoryRule, ...] | None = None,
) -> list[CategorizedTransaction]:
    """Categorize each record independently, keeping input order."""
    return [CategorizedTransaction.from_record(record, categorize(record.description, rules)) for record in records]


def review_queue(
    transactions: Iterable[CategorizedTransaction],
    min_confidence: float = 0.4,
) -> list[CategorizedTransaction]:
    """Transactions whose category needs a manual look, weakest match first."""
    flagged = [
        tx
        for tx in transactions
        if tx.category in {FALLBACK_CATEGORY, UNCATEGORIZED} or tx.confidence < min_confidence
    ]
    return sorted(flagged, key=lambda tx: (tx.confidence, tx.date))
