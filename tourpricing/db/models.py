"""SQLAlchemy async database models for tourpricing.

Maps to PostgreSQL schema. Every table is scoped by tour operator (tenant).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TourOperatorModel(Base):
    """Tenant record. Managed outside the ingestion core."""

    __tablename__ = "tour_operators"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class RouteModel(Base):
    """Route dimension, created lazily on first use of a code."""

    __tablename__ = "routes"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tour_operator_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("tour_operator_id", "code", name="uq_routes_operator_code"),
    )


class SeasonModel(Base):
    """Season dimension, created lazily on first use of a code."""

    __tablename__ = "seasons"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tour_operator_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("tour_operator_id", "code", name="uq_seasons_operator_code"),
    )


class DailyPricingModel(Base):
    """One date/route/season price and seat record.

    (tour_operator_id, route_id, season_id, date) is the conflict key the
    upload pipeline reacts to.
    """

    __tablename__ = "daily_pricings"

    # SQLite only autoincrements INTEGER PRIMARY KEY
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    tour_operator_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    route_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("routes.id"), nullable=False
    )
    season_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("seasons.id"), nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)

    economy_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    business_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    economy_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    business_seats: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "tour_operator_id",
            "route_id",
            "season_id",
            "date",
            name="uq_daily_pricings_key",
        ),
        CheckConstraint("economy_price >= 0 AND business_price >= 0", name="check_prices_non_negative"),
        CheckConstraint("economy_seats >= 0 AND business_seats >= 0", name="check_seats_non_negative"),
        Index("idx_daily_pricings_operator_date", "tour_operator_id", "date"),  # Query ordering
    )
