"""Read-side pricing queries.

Facts are joined with their route and season codes and always ordered by
date, so paging is stable for a given data set.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourpricing.db.models import DailyPricingModel, RouteModel, SeasonModel
from tourpricing.models import PricingRow


async def count_pricings(session: AsyncSession, tour_operator_id: UUID) -> int:
    """Count every fact row for one tour operator."""
    stmt = (
        select(func.count())
        .select_from(DailyPricingModel)
        .where(DailyPricingModel.tour_operator_id == tour_operator_id)
    )
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def fetch_pricing_page(
    session: AsyncSession,
    tour_operator_id: UUID,
    offset: int,
    limit: int,
) -> list[PricingRow]:
    """Get one page of pricing rows ordered by date ascending.

    Args:
        session: Database session
        tour_operator_id: Tenant scope
        offset: Rows to skip
        limit: Max rows to return

    Returns:
        List of PricingRow with route/season codes resolved
    """
    stmt = (
        select(
            DailyPricingModel.date,
            RouteModel.code.label("route_code"),
            SeasonModel.code.label("season_code"),
            DailyPricingModel.economy_price,
            DailyPricingModel.business_price,
            DailyPricingModel.economy_seats,
            DailyPricingModel.business_seats,
        )
        .join(RouteModel, DailyPricingModel.route_id == RouteModel.id)
        .join(SeasonModel, DailyPricingModel.season_id == SeasonModel.id)
        .where(DailyPricingModel.tour_operator_id == tour_operator_id)
        .order_by(DailyPricingModel.date.asc(), DailyPricingModel.id.asc())
        .offset(offset)
        .limit(limit)
    )

    result = await session.execute(stmt)
    return [
        PricingRow(
            date=row.date,
            route_code=row.route_code,
            season_code=row.season_code,
            economy_price=row.economy_price,
            business_price=row.business_price,
            economy_seats=row.economy_seats,
            business_seats=row.business_seats,
        )
        for row in result.all()
    ]
