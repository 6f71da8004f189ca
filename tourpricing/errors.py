"""Exception hierarchy for the pricing ingestion and query core.

Row-level problems (RowValidationError) stay inside the upload summary.
Everything else surfaces to the caller, who translates it into a response.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tourpricing.models import UploadSummary


class TourPricingError(Exception):
    """Base exception for tourpricing failures."""


class RowValidationError(TourPricingError):
    """Raised when one CSV record cannot be turned into a pricing row."""

    def __init__(self, row_number: int, message: str):
        super().__init__(message)
        self.row_number = row_number
        self.message = message

    def to_summary_line(self) -> str:
        return f"Row {self.row_number}: {self.message}"


class DuplicateKeyError(TourPricingError):
    """Raised when the store rejects a write because of a unique constraint."""


class DuplicateRowError(TourPricingError):
    """A duplicate pricing row under mode=error.

    Aborts the rest of the upload. ``summary`` holds what was accumulated
    before the duplicate was hit.
    """

    def __init__(self, row_number: int, summary: UploadSummary):
        super().__init__(f"Row {row_number}: duplicate pricing row for route/season/date.")
        self.row_number = row_number
        self.summary = summary


class DimensionResolutionError(TourPricingError):
    """Raised when a route/season code can neither be found nor created."""


class CSVFormatError(TourPricingError):
    """Raised when the uploaded stream is not a readable CSV document."""
