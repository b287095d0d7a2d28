"""
Settlement Service
==================

Runs the tip settlement workflow end to end:

1. authenticate the caller
2. confirm the payment provider is configured
3. validate and normalize the request
4. durably record the tip (``initiated``), then ``awaiting_provider``
5. call the provider exactly once
6. persist the outcome, then report it

An outcome is always written to the ledger before the caller hears about it,
so a tip is never reported as settled unless the ledger and the creator
aggregate both say so.

``record_direct_tip`` is the simulated in-app path. It shares the validator,
fee split and ledger contract but settles without a provider call.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tipkesho.core.config import settings
from tipkesho.core.errors import (
    Aborted,
    FailedPrecondition,
    Internal,
    Unauthenticated,
)
from tipkesho.integrations.flutterwave import (
    PROVIDER_NOT_CONFIGURED,
    FlutterwaveGateway,
    GatewayOutcome,
    OutcomeKind,
    build_payment_payload,
)
from tipkesho.models import PaymentProvider, TipRecord, TipStatus
from tipkesho.services import tipLedger
from tipkesho.services.auth_service import CallerSession
from tipkesho.services.tipValidator import validate_tip_request

logger = logging.getLogger(__name__)

STK_PUSH_MESSAGE = "STK Push initiated. Please complete the payment on your phone."
DIRECT_TIP_MESSAGE = "Tip recorded."
ANONYMOUS_SUPPORTER = "Anonymous Supporter"
GENERIC_PROVIDER_ERROR = "Could not initiate payment with the provider."
GENERIC_DECLINE = "Payment was declined by the provider."


@dataclass(frozen=True)
class SendTipResult:
    success: bool
    message: str
    tip: TipRecord
    provider_receipt: Optional[dict[str, Any]] = None


def _sender_name(caller: CallerSession, tipper_name: Optional[str]) -> str:
    return caller.display_name or tipper_name or ANONYMOUS_SUPPORTER


async def _reload(db: AsyncSession, tip_id: uuid.UUID) -> TipRecord:
    # Objects may be expired by a rollback inside the ledger; reload by id
    fresh = await tipLedger.get_tip(db, tip_id)
    if fresh is None:
        raise Internal("failed to record tip")
    return fresh


# ---------------------------------------------------------------------------
# Provider path
# ---------------------------------------------------------------------------

async def send_tip(
    db: AsyncSession,
    caller: Optional[CallerSession],
    raw_request: Mapping[str, Any],
    gateway: FlutterwaveGateway,
    *,
    fee_rate: Decimal | None = None,
) -> SendTipResult:
    """Send a tip through the mobile-money provider.

    Args:
        db: Async database session.
        caller: The authenticated caller, or None for an anonymous request.
        raw_request: Request fields keyed by wire name (``toCreatorId``, ...).
        gateway: Payment gateway adapter.
        fee_rate: Platform fee rate; defaults to the configured rate.

    Returns:
        ``SendTipResult`` for a settled tip.

    Raises:
        Unauthenticated: No caller.
        FailedPrecondition: Provider credential missing. Nothing is written.
        InvalidArgument: Request failed validation. Nothing is written.
        Aborted: Provider declined the charge (tip is ``failed_initiation``).
        Internal: Ledger write failed, or the provider outcome is unknown
                  (tip is ``error_initiation``).
    """
    if caller is None:
        raise Unauthenticated("The function must be called while authenticated.")

    # Raises FailedPrecondition before anything is written
    gateway.credential()

    request = validate_tip_request(raw_request)
    rate = fee_rate if fee_rate is not None else settings.platform_fee_rate

    tip = await tipLedger.create_tip_record(
        db,
        request,
        from_user_id=caller.user_id,
        from_username=_sender_name(caller, request.tipper_name),
        fee_rate=rate,
        payment_provider=PaymentProvider.FLUTTERWAVE,
        currency=settings.currency,
    )
    tip_id = tip.id
    await tipLedger.mark_awaiting_provider(db, tip_id)

    payload = build_payment_payload(tip, request, caller)
    try:
        outcome = await gateway.initiate_payment(payload)
    except FailedPrecondition:
        # Credential removed between the pre-check and the call
        await tipLedger.fail_tip(
            db,
            tip_id,
            TipStatus.ERROR_INITIATION,
            provider_error={"message": PROVIDER_NOT_CONFIGURED},
            last_error=PROVIDER_NOT_CONFIGURED,
        )
        raise
    except Exception as exc:
        logger.exception("Unexpected error calling payment provider for tip %s", tip_id)
        outcome = GatewayOutcome(
            kind=OutcomeKind.ERROR,
            error={"message": str(exc), "type": type(exc).__name__},
        )

    logger.info("Provider outcome for tip %s: %s", tip_id, outcome.kind.value)
    return await _apply_outcome(db, tip_id, outcome)


async def _apply_outcome(
    db: AsyncSession,
    tip_id: uuid.UUID,
    outcome: GatewayOutcome,
) -> SendTipResult:
    """Persist a provider outcome, then report it."""
    if outcome.kind is OutcomeKind.SETTLED:
        try:
            await tipLedger.settle_tip(db, tip_id, provider_response=outcome.payload)
        except Internal as exc:
            await tipLedger.record_unsettled_receipt(
                db,
                tip_id,
                provider_response=outcome.payload,
                last_error=f"provider accepted; local settlement failed: {exc.message}",
            )
            raise
        tip = await _reload(db, tip_id)
        if tip.status is not TipStatus.SETTLED:
            logger.error(
                "Provider accepted tip %s but ledger status is %s",
                tip_id,
                tip.status.value,
            )
            raise Internal("failed to record tip settlement")
        return SendTipResult(
            success=True,
            message=STK_PUSH_MESSAGE,
            tip=tip,
            provider_receipt=outcome.payload,
        )

    if outcome.kind is OutcomeKind.FAILED:
        message = outcome.message or GENERIC_DECLINE
        await tipLedger.fail_tip(
            db,
            tip_id,
            TipStatus.FAILED_INITIATION,
            provider_response=outcome.payload,
            last_error=message,
        )
        raise Aborted(message)

    message = outcome.message or GENERIC_PROVIDER_ERROR
    await tipLedger.fail_tip(
        db,
        tip_id,
        TipStatus.ERROR_INITIATION,
        provider_error=outcome.error,
        last_error=message,
    )
    raise Internal(message)


# ---------------------------------------------------------------------------
# Direct-ledger path
# ---------------------------------------------------------------------------

async def record_direct_tip(
    db: AsyncSession,
    caller: Optional[CallerSession],
    raw_request: Mapping[str, Any],
    *,
    fee_rate: Decimal | None = None,
) -> SendTipResult:
    """Record and immediately settle a tip without a provider call.

    Raises:
        Unauthenticated: No caller.
        FailedPrecondition: Direct tips are disabled.
        InvalidArgument: Request failed validation.
        Internal: Ledger write failed.
    """
    if caller is None:
        raise Unauthenticated("The function must be called while authenticated.")

    if not settings.allow_direct_tips:
        logger.error("Direct tip rejected: ALLOW_DIRECT_TIPS is disabled")
        raise FailedPrecondition("direct tips are disabled")

    request = validate_tip_request(raw_request, require_phone=False)
    rate = fee_rate if fee_rate is not None else settings.platform_fee_rate

    tip = await tipLedger.create_tip_record(
        db,
        request,
        from_user_id=caller.user_id,
        from_username=_sender_name(caller, request.tipper_name),
        fee_rate=rate,
        payment_provider=PaymentProvider.DIRECT,
        currency=settings.currency,
    )
    tip_id = tip.id
    await tipLedger.settle_tip(db, tip_id)
    tip = await _reload(db, tip_id)
    if tip.status is not TipStatus.SETTLED:
        raise Internal("failed to record tip settlement")

    logger.info("Direct tip settled: tip=%s, creator=%s", tip_id, tip.to_creator_id)
    return SendTipResult(success=True, message=DIRECT_TIP_MESSAGE, tip=tip)
