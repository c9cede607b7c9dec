"""Best-effort transaction extraction from statement document text."""

from __future__ import annotations

import datetime
import io
import logging
import re
from decimal import Decimal

import pdfplumber

from errors import ExtractionError
from parsing import parse_amount
from records import RawTransactionRecord

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".pdf", ".txt")
MAX_DESCRIPTION_LENGTH = 200

_AMOUNT = r"(\(?[-+]?\$?[-+]?\d[\d,]*(?:\.\d+)?\)?)"
_MARKER = r"(?:\s*\b(CR|DR)\b)?"

# Tried in order; the first pattern that yields a valid record wins.
LINE_PATTERNS = (
    re.compile(r"^(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})\s+(.+?)\s+" + _AMOUNT + _MARKER + r"$", re.IGNORECASE),
    re.compile(r"^(\d{4}-\d{2}-\d{2})\s+(.+?)\s+" + _AMOUNT + _MARKER + r"$", re.IGNORECASE),
    re.compile(r"^(\d{1,2}[/-]\d{1,2})\s+(.+?)\s+(\(?[-+]?\$?\d[\d,]*\.\d{2}\)?)" + _MARKER + r"$", re.IGNORECASE),
    re.compile(
        r"^([A-Za-z]{3,9}\.?\s+\d{1,2}(?:,?\s+\d{4})?)\s+(.+?)\s+" + _AMOUNT + _MARKER + r"$",
        re.IGNORECASE,
    ),
)

SCAN_PATTERNS = (
    re.compile(r"(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})\s+(.+?)\s+([-+]?\$?[\d,]*\d\.\d{2})" + _MARKER),
    re.compile(r"(\d{4}-\d{2}-\d{2})\s+(.+?)\s+([-+]?\$?[\d,]*\d\.\d{2})" + _MARKER),
    re.compile(r"([A-Za-z]{3,9}\.?\s+\d{1,2},?\s+\d{4})\s+(.+?)\s+([-+]?\$?[\d,]*\d\.\d{2})" + _MARKER),
)

_NOISE_PATTERN = re.compile(r"\bpage\s+\d+|\bbalance\b|\bstatement\s+period\b", re.IGNORECASE)
_NUMERIC_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})(?:[/-](\d{2,4}))?$")
_MONTH_NAME_FORMATS = ("%b %d %Y", "%B %d %Y")
_MONTH_DAY_FORMATS = ("%b %d", "%B %d")


def _expand_year(year: int) -> int:
    if year < 100:
        return year + (2000 if year < 30 else 1900)
    return year


def parse_document_date(text: str, today: datetime.date | None = None) -> datetime.date | None:
    """Parse numeric and month-name dates; a missing year means the current year."""
    value = str(text).strip()
    current_year = (today or datetime.date.today()).year

    numeric = _NUMERIC_DATE.match(value)
    if numeric:
        month, day, year = numeric.groups()
        try:
            return datetime.date(
                _expand_year(int(year)) if year else current_year,
                int(month),
                int(day),
            )
        except ValueError:
            return None

    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        pass

    cleaned = re.sub(r"[.,]", " ", value)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    # strptime only knows "Sep".
    cleaned = re.sub(r"^sept\b", "Sep", cleaned, flags=re.IGNORECASE)
    for fmt in _MONTH_NAME_FORMATS:
        try:
            return datetime.datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    for fmt in _MONTH_DAY_FORMATS:
        try:
            parsed = datetime.datetime.strptime(f"{cleaned} {current_year}", f"{fmt} %Y")
        except ValueError:
            continue
        return parsed.date()
    return None


def clean_description(text: str) -> str:
    cleaned = re.sub(r"\*+", "", str(text))
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned[:MAX_DESCRIPTION_LENGTH]


def _signed_amount(amount_text: str, marker: str | None) -> Decimal | None:
    amount = parse_amount(amount_text)
    if amount is None:
        return None
    explicit_sign = any(ch in amount_text for ch in "-+(")
    if marker and not explicit_sign and marker.upper() == "DR":
        return -amount
    return amount


def _build_record(
    date_text: str,
    description: str,
    amount_text: str,
    marker: str | None,
    today: datetime.date | None,
) -> RawTransactionRecord | None:
    date = parse_document_date(date_text, today=today)
    amount = _signed_amount(amount_text, marker)
    cleaned = clean_description(description)
    if date is None or amount is None or not re.search(r"[A-Za-z]", cleaned):
        return None
    return RawTransactionRecord(date=date, description=cleaned, amount=amount)


def parse_transaction_line(line: str, today: datetime.date | None = None) -> RawTransactionRecord | None:
    """Match one text line against the layout patterns; None when nothing fits."""
    stripped = line.strip()
    if not stripped or _NOISE_PATTERN.search(stripped):
        return None
    for pattern in LINE_PATTERNS:
        match = pattern.match(stripped)
        if not match:
            continue
        date_text, description, amount_text, marker = match.groups()
        record = _build_record(date_text, description, amount_text, marker, today)
        if record is not None:
            return record
    return None


def scan_text(text: str, today: datetime.date | None = None) -> list[RawTransactionRecord]:
    """Whole-text fallback for documents whose line breaks do not follow rows."""
    flattened = re.sub(r"\s+", " ", text)
    for pattern in SCAN_PATTERNS:
        records = []
        for match in pattern.finditer(flattened):
            date_text, description, amount_text, marker = match.groups()
            record = _build_record(date_text, description, amount_text, marker, today)
            if record is not None:
                records.append(record)
        if records:
            return records
    return []


def extract_transactions(text: str, today: datetime.date | None = None) -> list[RawTransactionRecord]:
    records = [
        record
        for record in (parse_transaction_line(line, today=today) for line in text.splitlines())
        if record is not None
    ]
    if records:
        return records
    return scan_text(text, today=today)


def _pdf_text(payload: bytes) -> str:
    with pdfplumber.open(io.BytesIO(payload)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


def document_text(payload: bytes, source_name: str = "uploaded_file") -> str:
    """Return the text layer of a PDF or plain-text payload."""
    if payload.startswith(b"%PDF-"):
        try:
            return _pdf_text(payload)
        except Exception as exc:
            raise ExtractionError(f"Failed to read PDF text: {exc}", source=source_name) from exc
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ExtractionError(f"Document text is not valid UTF-8: {exc}", source=source_name) from exc


def parse_document_statement(
    payload: bytes,
    source_name: str = "uploaded_file",
    today: datetime.date | None = None,
) -> list[RawTransactionRecord]:
    """Extract raw records from document text; an empty list when none are found."""
    text = document_text(payload, source_name=source_name)
    records = extract_transactions(text, today=today)
    logger.info("Parsed document statement", extra={"source": source_name, "records": len(records)})
    return records
