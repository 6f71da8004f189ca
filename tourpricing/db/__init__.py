"""Database layer for tourpricing with async SQLAlchemy."""

from tourpricing.db.connection import get_session, init_db
from tourpricing.db.models import (
    Base,
    DailyPricingModel,
    RouteModel,
    SeasonModel,
    TourOperatorModel,
)

__all__ = [
    "Base",
    "TourOperatorModel",
    "RouteModel",
    "SeasonModel",
    "DailyPricingModel",
    "get_session",
    "init_db",
]
