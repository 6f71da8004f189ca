"""tourpricing Pydantic models shared by the API, CLI and cache layer."""

from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class UploadSummary(BaseModel):
    """Outcome of one pricing upload."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "inserted": 2,
                "skipped": 1,
                "errors": ["Row 3: SeasonCode is required."],
            }
        },
    )

    inserted: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class PricingRow(BaseModel):
    """Pricing fact joined with its route and season codes."""

    model_config = ConfigDict(frozen=True)

    date: datetime.date
    route_code: str
    season_code: str
    economy_price: Decimal
    business_price: Decimal
    economy_seats: int
    business_seats: int


class PagedResult(BaseModel, Generic[T]):
    """One page of a query plus the total number of matching rows."""

    items: list[T]
    total: int
    page: int
    page_size: int


class ProgressEvent(BaseModel):
    """Payload pushed to an upload observer."""

    stage: str
    pct: int | None = None
    message: str
