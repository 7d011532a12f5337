"""M-Pesa router: C2B confirmation/validation webhooks and the pending review queue."""

import json
import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.auth.rbac import check_permission
from feeledger.core.enums import MpesaReviewReason
from feeledger.core.exceptions import RetryableLedgerError
from feeledger.db.session import get_db

from .schemas import C2BAck, C2BConfirmation, C2BValidationResponse, MpesaReviewItem
from . import service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/mpesa", tags=["mpesa"])


# Signature/IP checks happen upstream; these endpoints are open.
@router.post("/c2b/confirm", response_model=C2BAck)
async def c2b_confirm(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    raw = await request.body()
    try:
        payload = json.loads(raw or b"null")
        notification = C2BConfirmation.model_validate(payload)
    except (ValueError, ValidationError) as e:
        # Acknowledge anyway so the provider stops resending a body we can never parse
        logger.warning("Ignoring unparseable C2B confirmation: %s", e)
        return C2BAck()

    try:
        outcome = await service.process_c2b_confirmation(
            db,
            notification,
            raw_payload=payload if isinstance(payload, dict) else None,
        )
    except RetryableLedgerError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"ResultCode": "1", "ResultDesc": e.message},
        )

    if outcome.is_pending:
        background_tasks.add_task(service.notify_pending_review, outcome)
    return C2BAck()


@router.post("/c2b/validate", response_model=C2BValidationResponse)
async def c2b_validate(request: Request) -> C2BValidationResponse:
    return C2BValidationResponse()


@router.get(
    "/review",
    response_model=List[MpesaReviewItem],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_pending_reviews(
    take: Optional[int] = Query(None, description="Max rows, clamped to 1..200 (default 50)"),
    reason: Optional[MpesaReviewReason] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[MpesaReviewItem]:
    return await service.list_pending_reviews(db, take=take, reason=reason)
