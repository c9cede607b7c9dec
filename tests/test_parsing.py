import datetime
from decimal import Decimal

import pytest

from errors import FormatError
from parsing import (
    merge_statements,
    parse_amount,
    parse_statement_date,
    parse_tabular_statement,
)
from records import RawTransactionRecord


def _csv(*lines: str) -> bytes:
    return "\n".join(lines).encode("utf-8")


def test_parse_amount_supported_formats() -> None:
    assert parse_amount("$1,234.56") == Decimal("1234.56")
    assert parse_amount("(1234.56)") == Decimal("-1234.56")
    assert parse_amount("-1234.56") == Decimal("-1234.56")
    assert parse_amount(" € 12.00 ") == Decimal("12.00")
    assert parse_amount("($45.10)") == Decimal("-45.10")


def test_parse_amount_rejects_non_numeric() -> None:
    assert parse_amount("") is None
    assert parse_amount("abc") is None
    assert parse_amount("nan") is None
    assert parse_amount("Infinity") is None


def test_parse_statement_date_formats() -> None:
    assert parse_statement_date("2024-01-15") == datetime.date(2024, 1, 15)
    assert parse_statement_date("01/15/2024") == datetime.date(2024, 1, 15)
    assert parse_statement_date("1/5/2024") == datetime.date(2024, 1, 5)
    assert parse_statement_date("01-15-2024") == datetime.date(2024, 1, 15)
    assert parse_statement_date("2024-01-15T10:30:00") == datetime.date(2024, 1, 15)
    assert parse_statement_date("15.01.2024") is None


def test_parse_tabular_statement_basic_rows() -> None:
    payload = _csv(
        "Date,Description,Amount",
        "2024-01-15,Starbucks Coffee,-5.50",
        "2024-01-16,Salary Deposit,3500.00",
        "2024-01-17,Amazon Purchase,-125.99",
    )

    records = parse_tabular_statement(payload)

    assert len(records) == 3
    assert records[0] == RawTransactionRecord(
        date=datetime.date(2024, 1, 15),
        description="Starbucks Coffee",
        amount=Decimal("-5.50"),
    )
    assert [r.amount for r in records] == [Decimal("-5.50"), Decimal("3500.00"), Decimal("-125.99")]


def test_parse_tabular_statement_preserves_row_order() -> None:
    payload = _csv(
        "Date,Description,Amount",
        "2024-03-01,Third,-3.00",
        "2024-01-01,First,-1.00",
        "2024-02-01,Second,-2.00",
    )

    records = parse_tabular_statement(payload)

    assert [r.description for r in records] == ["Third", "First", "Second"]


def test_parse_tabular_statement_header_synonyms_and_account() -> None:
    payload = _csv(
        "Posted Date,Payee,Value,Card",
        "01/15/2024,Corner Deli,$12.40,VISA-1234",
        "01-16-2024,Refund,(3.00),VISA-1234",
    )

    records = parse_tabular_statement(payload)

    assert records[0].description == "Corner Deli"
    assert records[0].amount == Decimal("12.40")
    assert records[0].account == "VISA-1234"
    assert records[1].date == datetime.date(2024, 1, 16)
    assert records[1].amount == Decimal("-3.00")


def test_parse_tabular_statement_handles_quotes_and_crlf() -> None:
    payload = (
        'Date,Description,Amount\r\n'
        '2024-01-05,"Joe\'s ""Best"" Pizza, Inc","-1,012.00"\r\n'
        '\r\n'
        '2024-01-06,Bus Ticket,-2.75\r\n'
    ).encode("utf-8")

    records = parse_tabular_statement(payload)

    assert len(records) == 2
    assert records[0].description == 'Joe\'s "Best" Pizza, Inc'
    assert records[0].amount == Decimal("-1012.00")


def test_parse_tabular_statement_skips_bad_rows() -> None:
    payload = _csv(
        "Date,Description,Amount",
        "not-a-date,Coffee,-4.50",
        "2024-01-02,Coffee,four dollars",
        "2024-01-03,Coffee",
        "2024-01-04,,-1.00",
        "2024-01-05,Tea,-3.20",
    )

    records = parse_tabular_statement(payload)

    assert len(records) == 1
    assert records[0].description == "Tea"


def test_parse_tabular_statement_keeps_rows_with_extra_fields() -> None:
    later = _csv(
        "Date,Description,Amount",
        "2024-01-15,Coffee,-5.50",
        "2024-01-16,Tea,-3.00,x,y",
        "2024-01-17,Bagel,-2.25",
    )
    first = _csv(
        "Date,Description,Amount",
        "2024-01-16,Tea,-3.00,x,y",
        "2024-01-15,Coffee,-5.50",
    )

    later_records = parse_tabular_statement(later)
    first_records = parse_tabular_statement(first)

    assert [r.description for r in later_records] == ["Coffee", "Tea", "Bagel"]
    assert later_records[1].amount == Decimal("-3.00")
    assert [r.description for r in first_records] == ["Tea", "Coffee"]
    assert first_records[0].date == datetime.date(2024, 1, 16)


def test_parse_tabular_statement_combines_debit_and_credit_columns() -> None:
    payload = _csv(
        "Date,Description,Debit,Credit",
        "2024-01-05,Coffee,4.50,",
        "2024-01-06,Refund,,20.00",
    )

    records = parse_tabular_statement(payload)

    assert [r.amount for r in records] == [Decimal("-4.50"), Decimal("20.00")]


def test_parse_tabular_statement_requires_data_row() -> None:
    with pytest.raises(FormatError) as excinfo:
        parse_tabular_statement(_csv("Date,Description,Amount", "", "   "), source_name="empty.csv")
    assert excinfo.value.context["source"] == "empty.csv"


def test_parse_tabular_statement_requires_semantic_columns() -> None:
    payload = _csv("When,What,HowMuch", "2024-01-01,Coffee,-4.00")

    with pytest.raises(FormatError) as excinfo:
        parse_tabular_statement(payload, source_name="odd.csv")

    assert set(excinfo.value.context["missing"]) == {"date", "description", "amount"}
    assert excinfo.value.context["source"] == "odd.csv"


def test_merge_statements_drops_overlap_but_keeps_repeats_within_export() -> None:
    coffee = RawTransactionRecord(datetime.date(2024, 1, 5), "Coffee", Decimal("-3.00"))
    lunch = RawTransactionRecord(datetime.date(2024, 1, 6), "Lunch", Decimal("-12.00"))
    rent = RawTransactionRecord(datetime.date(2024, 2, 1), "Rent", Decimal("-900.00"))

    merged = merge_statements([[coffee, coffee, lunch], [coffee, lunch, rent]])

    assert merged == [coffee, coffee, lunch, rent]


def test_merge_statements_can_keep_duplicates() -> None:
    coffee = RawTransactionRecord(datetime.date(2024, 1, 5), "Coffee", Decimal("-3.00"))
    assert merge_statements([[coffee], [coffee]], drop_duplicates=False) == [coffee, coffee]
