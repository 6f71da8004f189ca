"""Explicit unit-of-work repository for pricing writes.

Every public method opens its own short transaction from the session
factory and commits or rolls back before returning, so callers never hold
pending ORM state between steps. Unique-constraint rejections are
translated to DuplicateKeyError; every other store failure propagates as
the original SQLAlchemy exception.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from tourpricing.db.models import DailyPricingModel, RouteModel, SeasonModel
from tourpricing.errors import DuplicateKeyError
from tourpricing.ingestion.types import Dimension, FactCandidate

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"

_DIMENSION_MODELS = {
    Dimension.ROUTE: RouteModel,
    Dimension.SEASON: SeasonModel,
}


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tell a unique-key rejection apart from FK/NOT NULL/CHECK failures."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION
    message = str(orig).lower()
    return "unique constraint" in message or "duplicate key" in message


def _fact_values(candidate: FactCandidate) -> dict[str, Any]:
    return {
        "tour_operator_id": candidate.tenant_id,
        "route_id": candidate.route_id,
        "season_id": candidate.season_id,
        "date": candidate.date,
        "economy_price": candidate.economy_price,
        "business_price": candidate.business_price,
        "economy_seats": candidate.economy_seats,
        "business_seats": candidate.business_seats,
    }


class PricingRepository:
    """Store primitives the upload pipeline is allowed to use."""

    def __init__(self, session_factory: sessionmaker | None = None):
        if session_factory is None:
            from tourpricing.db.connection import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory

    async def _write(self, stmt, params: Sequence[dict[str, Any]] | None = None) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    if params is None:
                        await session.execute(stmt)
                    else:
                        await session.execute(stmt, params)
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DuplicateKeyError(str(e.orig)) from e
            raise

    # ------------------------------------------------------------------
    # Dimensions
    # ------------------------------------------------------------------

    async def find_dimension_id(
        self, dimension: Dimension, tenant_id: UUID, code: str
    ) -> UUID | None:
        model = _DIMENSION_MODELS[dimension]
        stmt = select(model.id).where(
            and_(model.tour_operator_id == tenant_id, model.code == code)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def insert_dimension(self, dimension: Dimension, tenant_id: UUID, code: str) -> UUID:
        """Create a dimension row.

        Raises:
            DuplicateKeyError: If (tenant_id, code) already exists
        """
        model = _DIMENSION_MODELS[dimension]
        new_id = uuid4()
        await self._write(
            insert(model).values(id=new_id, tour_operator_id=tenant_id, code=code)
        )
        logger.debug(f"Created {dimension.value} '{code}' ({new_id}) for operator {tenant_id}")
        return new_id

    # ------------------------------------------------------------------
    # Facts
    # ------------------------------------------------------------------

    async def insert_batch(self, candidates: Sequence[FactCandidate]) -> int:
        """Insert all candidates in one transaction, or none of them.

        Raises:
            DuplicateKeyError: If any candidate collides with an existing key
        """
        if not candidates:
            return 0
        await self._write(insert(DailyPricingModel), [_fact_values(c) for c in candidates])
        return len(candidates)

    async def insert_one(self, candidate: FactCandidate) -> None:
        await self._write(insert(DailyPricingModel).values(**_fact_values(candidate)))

    async def find_by_key(
        self, tenant_id: UUID, route_id: UUID, season_id: UUID, day: date
    ) -> int | None:
        stmt = select(DailyPricingModel.id).where(
            and_(
                DailyPricingModel.tour_operator_id == tenant_id,
                DailyPricingModel.route_id == route_id,
                DailyPricingModel.season_id == season_id,
                DailyPricingModel.date == day,
            )
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def update_one(self, fact_id: int, candidate: FactCandidate) -> None:
        """Replace price and seat fields; identity columns stay untouched."""
        await self._write(
            update(DailyPricingModel)
            .where(DailyPricingModel.id == fact_id)
            .values(
                economy_price=candidate.economy_price,
                business_price=candidate.business_price,
                economy_seats=candidate.economy_seats,
                business_seats=candidate.business_seats,
            )
        )
