"""
Tip API Routes
==============

REST endpoints for sending and reading tips.

  POST /api/v1/tips            -- Send a tip via M-Pesa (STK push)
  POST /api/v1/tips/direct     -- Record a direct in-app tip (when enabled)
  GET  /api/v1/tips/sent       -- Tips sent by the caller
  GET  /api/v1/tips/received   -- Tips received by the caller's creator profile
  GET  /api/v1/tips/{tip_id}   -- One tip (sender or recipient only)
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, status

from tipkesho.api.deps import CurrentSession, DBSession, PaymentGateway
from tipkesho.api.schemas.tip import (
    SendTipRequest,
    SendTipResponse,
    TipListResponse,
    TipOut,
    TipResponse,
)
from tipkesho.core.errors import NotFound, PermissionDenied
from tipkesho.services import directoryService, settlementService, tipLedger
from tipkesho.services.settlementService import SendTipResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tips", tags=["Tips"])


def _result_to_response(result: SendTipResult) -> SendTipResponse:
    return SendTipResponse(
        success=result.success,
        message=result.message,
        tip=TipOut.model_validate(result.tip),
        provider_receipt=result.provider_receipt,
    )


# ---------------------------------------------------------------------------
# POST /tips
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=SendTipResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a tip via M-Pesa",
    description=(
        "Validates the request, records the tip, and starts an M-Pesa STK push "
        "through Flutterwave. The outcome is written to the ledger before it "
        "is returned. A provider decline returns 409; an unknown outcome "
        "returns 500 and the tip is left in 'error_initiation'."
    ),
)
async def send_tip(
    body: SendTipRequest,
    db: DBSession,
    caller: CurrentSession,
    gateway: PaymentGateway,
) -> SendTipResponse:
    result = await settlementService.send_tip(db, caller, body.to_raw(), gateway)
    return _result_to_response(result)


# ---------------------------------------------------------------------------
# POST /tips/direct
# ---------------------------------------------------------------------------

@router.post(
    "/direct",
    response_model=SendTipResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a direct in-app tip",
    description=(
        "Records and immediately settles a tip without a provider call. "
        "Only available when ALLOW_DIRECT_TIPS is enabled."
    ),
)
async def send_direct_tip(
    body: SendTipRequest,
    db: DBSession,
    caller: CurrentSession,
) -> SendTipResponse:
    result = await settlementService.record_direct_tip(db, caller, body.to_raw())
    return _result_to_response(result)


# ---------------------------------------------------------------------------
# GET /tips/sent, /tips/received
# ---------------------------------------------------------------------------

@router.get(
    "/sent",
    response_model=TipListResponse,
    summary="List tips sent by the caller",
)
async def list_sent(
    db: DBSession,
    caller: CurrentSession,
    limit: Optional[int] = Query(default=None, ge=1),
) -> TipListResponse:
    tips = await tipLedger.list_tips_sent(db, caller.user_id, limit)
    return TipListResponse(data=[TipOut.model_validate(t) for t in tips])


@router.get(
    "/received",
    response_model=TipListResponse,
    summary="List tips received by the caller's creator profile",
)
async def list_received(
    db: DBSession,
    caller: CurrentSession,
    limit: Optional[int] = Query(default=None, ge=1),
) -> TipListResponse:
    creator = await directoryService.get_creator_for_user(db, caller.user_id)
    if creator is None:
        raise NotFound("No creator profile exists for this user.")
    tips = await tipLedger.list_tips_received(db, creator.id, limit)
    return TipListResponse(data=[TipOut.model_validate(t) for t in tips])


# ---------------------------------------------------------------------------
# GET /tips/{tip_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{tip_id}",
    response_model=TipResponse,
    summary="Get one tip",
    description="Readable by the sender and by the recipient creator only.",
)
async def get_tip(
    tip_id: uuid.UUID,
    db: DBSession,
    caller: CurrentSession,
) -> TipResponse:
    tip = await tipLedger.get_tip(db, tip_id)
    if tip is None:
        raise NotFound(f"Tip {tip_id} not found.")

    if tip.from_user_id != caller.user_id:
        creator = await directoryService.get_creator_for_user(db, caller.user_id)
        if creator is None or creator.id != tip.to_creator_id:
            raise PermissionDenied("You do not have access to this tip.")

    return TipResponse(data=TipOut.model_validate(tip))
