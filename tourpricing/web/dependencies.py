"""Shared dependencies for tourpricing web routes.

Dependencies are injected using FastAPI's Depends() system.

Identity comes from the authentication layer in front of this service. Until
that layer is wired in, it is read from the X-Tour-Operator-Id and X-Role
headers.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from tourpricing.config import get_config
from tourpricing.query.service import PricingQueryService
from tourpricing.utils.redis_cache import get_cache

ROLE_ADMIN = "admin"
ROLE_TOUR_OPERATOR = "tour_operator"


@dataclass(frozen=True)
class Identity:
    """Caller identity supplied by the auth layer."""

    role: str
    tenant_id: UUID | None = None


def get_identity(
    x_role: str | None = Header(default=None),
    x_tour_operator_id: str | None = Header(default=None),
) -> Identity:
    if not x_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    tenant_id = None
    if x_tour_operator_id:
        try:
            tenant_id = UUID(x_tour_operator_id)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid tour operator id"
            ) from None

    return Identity(role=x_role.strip().lower(), tenant_id=tenant_id)


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if identity.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return identity


def require_tour_operator(identity: Identity = Depends(get_identity)) -> Identity:
    if identity.role != ROLE_TOUR_OPERATOR or identity.tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Tour operator role required"
        )
    return identity


def get_query_service() -> PricingQueryService:
    config = get_config()
    return PricingQueryService(
        cache=get_cache(),
        ttl_seconds=config.cache.ttl_seconds,
        default_page_size=config.query.default_page_size,
        max_page_size=config.query.max_page_size,
    )
