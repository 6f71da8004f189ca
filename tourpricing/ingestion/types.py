"""Type definitions for pricing upload operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class Dimension(str, Enum):
    """Tenant-scoped code lookup tables."""

    ROUTE = "route"
    SEASON = "season"


class ConflictMode(str, Enum):
    """How a duplicate (operator, route, season, date) row is handled."""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    ERROR = "error"

    @classmethod
    def parse(cls, value: str | ConflictMode | None) -> ConflictMode:
        """Lenient parse: anything unrecognised means skip."""
        if isinstance(value, ConflictMode):
            return value
        if value is None:
            return cls.SKIP
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.SKIP


class IngestionState(str, Enum):
    """Upload pipeline states."""

    VALIDATING = "validating"
    BATCH_ATTEMPT = "batch_attempt"
    PER_ROW_FALLBACK = "per_row_fallback"
    DONE = "done"


@dataclass(frozen=True)
class RawRecord:
    """One decoded CSV line, keyed by canonical column name."""

    row_number: int
    values: dict[str, str]

    def get(self, column: str) -> str:
        return self.values.get(column, "")


@dataclass(frozen=True)
class ValidatedPricingRow:
    """A CSV record that passed every field rule."""

    tenant_id: UUID
    route_code: str
    season_code: str
    date: date
    economy_price: Decimal
    business_price: Decimal
    economy_seats: int
    business_seats: int


@dataclass(frozen=True)
class FactCandidate:
    """A validated row with its dimensions resolved, ready to insert."""

    row_number: int
    tenant_id: UUID
    route_id: UUID
    season_id: UUID
    date: date
    economy_price: Decimal
    business_price: Decimal
    economy_seats: int
    business_seats: int

    @property
    def key(self) -> tuple[UUID, UUID, UUID, date]:
        """Unique conflict key in the store."""
        return (self.tenant_id, self.route_id, self.season_id, self.date)
