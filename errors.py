"""Errors raised by statement ingestion and forecasting."""

from __future__ import annotations

from typing import Any


class StatementError(Exception):
    """Base error; ``context`` names the file or scenario that failed."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context


class FormatError(StatementError):
    """Tabular input has no data rows or no usable date/description/amount columns."""


class ExtractionError(StatementError):
    """The text layer of a document could not be obtained."""


class UnsupportedFileTypeError(StatementError):
    """No parser is registered for the file extension."""


class InvalidHorizonError(StatementError):
    """Forecast horizon must be at least one month."""


class RuleConfigError(StatementError):
    """Category rule file is malformed."""
