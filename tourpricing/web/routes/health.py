"""Health check API routes.

Provides endpoints for monitoring application health and connectivity.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from tourpricing.db.connection import get_db
from tourpricing.utils.redis_cache import get_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", status_code=status.HTTP_200_OK)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Check application health.

    Verifies database and cache connectivity.
    """
    result = {"status": "ok", "database": "connected", "cache": "connected"}

    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Health check database failure: {e}")
        result.update(status="error", database="disconnected")

    try:
        await get_cache().ping()
    except Exception as e:
        logger.warning(f"Health check cache failure: {e}")
        result.update(status="error", cache="disconnected")

    return result
