"""Field rules for one pricing CSV record.

Rules run in a fixed order and the first failure wins. Parsing is
locale-independent: dates must be exactly yyyy-MM-dd, numbers use "." as
the decimal point and may carry "," thousands separators.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from tourpricing.errors import RowValidationError
from tourpricing.ingestion.types import RawRecord, ValidatedPricingRow

DATE_FORMAT = "%Y-%m-%d"
DATE_FORMAT_LABEL = "yyyy-MM-dd"

COLUMNS = (
    "RouteCode",
    "SeasonCode",
    "Date",
    "EconomyPrice",
    "BusinessPrice",
    "EconomySeats",
    "BusinessSeats",
)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$", re.ASCII)
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d{1,3}(?:,\d{3})+|\d+)?(?:\.\d+)?$", re.ASCII)
_INTEGER_RE = re.compile(r"^[+-]?(?:\d{1,3}(?:,\d{3})+|\d+)$", re.ASCII)

# Storage limits: seats are 32-bit integers, prices Numeric(18, 2)
INT_MIN = -(2**31)
INT_MAX = 2**31 - 1
PRICE_LIMIT = Decimal("9999999999999999.995")  # rounds past 16 integer digits


def parse_date(text: str) -> date | None:
    if not _DATE_RE.match(text):
        return None
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError:
        return None


def parse_decimal(text: str) -> Decimal | None:
    if not text or not _DECIMAL_RE.match(text) or not any(c.isdigit() for c in text):
        return None
    try:
        value = Decimal(text.replace(",", ""))
    except InvalidOperation:
        return None
    if not value.is_finite() or abs(value) >= PRICE_LIMIT:
        return None
    return value


def parse_int(text: str) -> int | None:
    if not text or not _INTEGER_RE.match(text):
        return None
    value = int(text.replace(",", ""))
    return value if INT_MIN <= value <= INT_MAX else None


def validate_row(raw: RawRecord, tenant_id: UUID) -> ValidatedPricingRow:
    """Turn a raw record into a typed pricing row.

    Raises:
        RowValidationError: naming the record's row number and the first
            rule it broke.
    """
    row = raw.row_number

    route_code = raw.get("RouteCode").strip()
    season_code = raw.get("SeasonCode").strip()
    date_text = raw.get("Date").strip()
    econ_price_text = raw.get("EconomyPrice").strip()
    biz_price_text = raw.get("BusinessPrice").strip()
    econ_seats_text = raw.get("EconomySeats").strip()
    biz_seats_text = raw.get("BusinessSeats").strip()

    if not route_code:
        raise RowValidationError(row, "RouteCode is required.")
    if not season_code:
        raise RowValidationError(row, "SeasonCode is required.")
    if not date_text:
        raise RowValidationError(row, "Date is required.")

    parsed_date = parse_date(date_text)
    if parsed_date is None:
        raise RowValidationError(row, f"Invalid Date '{date_text}'. Expected {DATE_FORMAT_LABEL}.")

    econ_price = parse_decimal(econ_price_text)
    if econ_price is None:
        raise RowValidationError(row, f"EconomyPrice invalid '{econ_price_text}'.")
    biz_price = parse_decimal(biz_price_text)
    if biz_price is None:
        raise RowValidationError(row, f"BusinessPrice invalid '{biz_price_text}'.")
    econ_seats = parse_int(econ_seats_text)
    if econ_seats is None:
        raise RowValidationError(row, f"EconomySeats invalid '{econ_seats_text}'.")
    biz_seats = parse_int(biz_seats_text)
    if biz_seats is None:
        raise RowValidationError(row, f"BusinessSeats invalid '{biz_seats_text}'.")

    if econ_price < 0 or biz_price < 0:
        raise RowValidationError(row, "Prices must be >= 0.")
    if econ_seats < 0 or biz_seats < 0:
        raise RowValidationError(row, "Seats must be >= 0.")

    return ValidatedPricingRow(
        tenant_id=tenant_id,
        route_code=route_code,
        season_code=season_code,
        date=parsed_date,
        economy_price=econ_price,
        business_price=biz_price,
        economy_seats=econ_seats,
        business_seats=biz_seats,
    )
