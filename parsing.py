"""Delimited statement loading and normalization helpers."""

from __future__ import annotations

import datetime
import io
import logging
import re
from collections import Counter
from decimal import Decimal, InvalidOperation
from typing import Iterable

import pandas as pd

from errors import FormatError
from records import RawTransactionRecord

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv",)

COLUMN_SYNONYMS = {
    "date": ("date", "transaction date", "posted date"),
    "description": ("description", "desc", "merchant", "payee"),
    "amount": ("amount", "debit", "credit", "value"),
    "account": ("account", "account number", "card"),
}
REQUIRED_COLUMNS = ("date", "description", "amount")

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d")

_AMOUNT_NOISE = re.compile(r"[$£€¥,\s]")


def parse_amount(text: str) -> Decimal | None:
    """Parse a currency-formatted amount; parentheses mean negative."""
    cleaned = _AMOUNT_NOISE.sub("", str(text))
    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = cleaned[1:-1]
        negative = True
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return -abs(value) if negative else value


def parse_statement_date(text: str) -> datetime.date | None:
    """Parse ISO and US-style statement dates."""
    value = str(text).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.datetime.fromisoformat(value).date()
    except ValueError:
        return None


def _match_columns(header: list[str]) -> dict[str, int]:
    normalized = [str(name).strip().lower() for name in header]
    matched: dict[str, int] = {}
    for column, synonyms in COLUMN_SYNONYMS.items():
        for synonym in synonyms:
            index = next((i for i, name in enumerate(normalized) if synonym in name), None)
            if index is not None:
                matched[column] = index
                break
    return matched


def _debit_credit_columns(header: list[str], amount_index: int) -> tuple[int, int] | None:
    """Return (debit, credit) indices when amounts are split over two columns."""
    normalized = [str(name).strip().lower() for name in header]
    amount_header = normalized[amount_index]
    if "debit" not in amount_header and "credit" not in amount_header:
        return None
    debit = next((i for i, name in enumerate(normalized) if "debit" in name), None)
    credit = next((i for i, name in enumerate(normalized) if "credit" in name), None)
    if debit is None or credit is None or debit == credit:
        return None
    return debit, credit


def _cell(row: tuple, index: int | None) -> str | None:
    if index is None or index >= len(row):
        return None
    value = row[index]
    # Short rows come back from pandas padded with NaN.
    return value.strip() if isinstance(value, str) else None


def _split_amount(row: tuple, split: tuple[int, int]) -> Decimal | None:
    debit_text = _cell(row, split[0]) or ""
    credit_text = _cell(row, split[1]) or ""
    if not debit_text and not credit_text:
        return None
    debit = parse_amount(debit_text) if debit_text else Decimal("0")
    credit = parse_amount(credit_text) if credit_text else Decimal("0")
    if debit is None or credit is None:
        return None
    return abs(credit) - abs(debit)


def _parse_row(
    row: tuple,
    columns: dict[str, int],
    split: tuple[int, int] | None,
) -> RawTransactionRecord | None:
    date_text = _cell(row, columns["date"])
    description = _cell(row, columns["description"])
    if not date_text or not description:
        return None

    date = parse_statement_date(date_text)
    if split is not None:
        amount = _split_amount(row, split)
    else:
        amount_text = _cell(row, columns["amount"])
        amount = parse_amount(amount_text) if amount_text else None
    if date is None or amount is None:
        return None

    account = _cell(row, columns.get("account")) or None
    return RawTransactionRecord(date=date, description=description, amount=amount, account=account)


def _read_rows(lines: list[str]) -> tuple[list[str], pd.DataFrame]:
    """Tokenize the export; the first line is the header and sets the row width."""
    width = pd.read_csv(io.StringIO(lines[0]), header=None, dtype=str, keep_default_na=False).shape[1]
    frame = pd.read_csv(
        io.StringIO("\n".join(lines)),
        header=None,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        engine="python",
        # Rows with trailing extra fields keep their leading columns.
        on_bad_lines=lambda fields: fields[:width],
    )
    header = [str(name).strip() for name in frame.iloc[0]]
    return header, frame.iloc[1:]


def parse_tabular_statement(payload: bytes, source_name: str = "uploaded_file") -> list[RawTransactionRecord]:
    """Parse a delimited statement export into raw records, in file order.

    Rows that cannot be parsed are dropped. Raises FormatError when there is no
    data row or the date/description/amount columns cannot be located.
    """
    text = payload.decode("utf-8-sig", errors="replace")
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise FormatError(
            "Statement must contain a header row and at least one data row.",
            source=source_name,
        )

    try:
        header, frame = _read_rows(lines)
    except pd.errors.ParserError as exc:
        raise FormatError(f"Unreadable delimited text: {exc}", source=source_name) from exc

    columns = _match_columns(header)
    missing = [col for col in REQUIRED_COLUMNS if col not in columns]
    if missing:
        raise FormatError(
            f"Statement is missing required columns: {', '.join(missing)}.",
            source=source_name,
            missing=missing,
            header=header,
        )

    split = _debit_credit_columns(header, columns["amount"])
    records: list[RawTransactionRecord] = []
    skipped = 0
    for row_number, row in enumerate(frame.itertuples(index=False, name=None), start=1):
        record = _parse_row(row, columns, split)
        if record is None:
            skipped += 1
            logger.debug("Skipping unparseable row", extra={"source": source_name, "row": row_number})
            continue
        records.append(record)

    logger.info(
        "Parsed tabular statement",
        extra={"source": source_name, "records": len(records), "skipped_rows": skipped},
    )
    return records


def merge_statements(
    batches: Iterable[list[RawTransactionRecord]],
    drop_duplicates: bool = True,
) -> list[RawTransactionRecord]:
    """Combine several parsed exports, dropping rows repeated by overlapping exports.

    Repeats inside a single export are kept; a record is dropped only as often as
    it already appeared in an earlier export.
    """
    merged: list[RawTransactionRecord] = []
    seen: Counter[RawTransactionRecord] = Counter()
    for batch in batches:
        batch_counts: Counter[RawTransactionRecord] = Counter()
        for record in batch:
            batch_counts[record] += 1
            if drop_duplicates and batch_counts[record] <= seen[record]:
                continue
            merged.append(record)
        for record, count in batch_counts.items():
            seen[record] = max(seen[record], count)
    return merged
