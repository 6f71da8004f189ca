"""Pricing routes for the tourpricing API.

Routes:
- POST /api/touroperators/{tour_operator_id}/pricing-upload - Upload a pricing CSV
- GET  /api/data/{tour_operator_id}                         - Paged pricing rows (admin)
"""

from __future__ import annotations

import logging
from io import BytesIO
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse

from tourpricing.errors import CSVFormatError, DuplicateRowError
from tourpricing.ingestion.service import upload_pricing
from tourpricing.models import PagedResult, PricingRow, UploadSummary
from tourpricing.notifications.websocket import WebSocketProgressHub, get_progress_hub
from tourpricing.query.service import PricingQueryService
from tourpricing.web.dependencies import (
    Identity,
    get_query_service,
    require_admin,
    require_tour_operator,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pricing"])


@router.post(
    "/api/touroperators/{tour_operator_id}/pricing-upload",
    response_model=UploadSummary,
)
async def upload_pricing_csv(
    tour_operator_id: UUID,
    file: UploadFile = File(...),
    connection_id: str | None = Query(default=None, description="Progress websocket connection id"),
    skip_bad_rows: bool = Query(default=True),
    mode: str | None = Query(default=None, description="skip | overwrite | error"),
    identity: Identity = Depends(require_tour_operator),
    hub: WebSocketProgressHub = Depends(get_progress_hub),
):
    """Upload one pricing CSV for the caller's own tour operator.

    Returns the upload summary. A duplicate under mode=error answers 409
    with the summary accumulated before the duplicate.
    """
    if identity.tenant_id != tour_operator_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your tour operator")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV file is required")

    try:
        return await upload_pricing(
            tour_operator_id,
            BytesIO(content),
            connection_id=connection_id,
            skip_bad_rows=skip_bad_rows,
            mode=mode,
            channel=hub,
        )
    except CSVFormatError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except DuplicateRowError as e:
        logger.info(f"Upload for {tour_operator_id} aborted on duplicate row {e.row_number}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"message": str(e), "summary": e.summary.model_dump()},
        )
    finally:
        await file.close()


@router.get("/api/data/{tour_operator_id}", response_model=PagedResult[PricingRow])
async def get_pricing_data(
    tour_operator_id: UUID,
    page: int = Query(default=1),
    page_size: int = Query(default=50),
    identity: Identity = Depends(require_admin),
    service: PricingQueryService = Depends(get_query_service),
):
    """Paged pricing rows for one tour operator, ordered by date.

    Out-of-range paging is clamped rather than rejected.
    """
    return await service.query(tour_operator_id, page=page, page_size=page_size)
