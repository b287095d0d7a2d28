"""
Tip Ledger
==========

Writes tip records through their lifecycle and maintains the creator running
totals.

Every status change is a conditional UPDATE guarded on the statuses the
target may be reached from (see ``tipStateManager``), so concurrent or
repeated outcome writes for the same tip apply at most once. Settlement pairs
that conditional UPDATE with an SQL-side increment of the creator aggregate in
a single transaction:

    UPDATE tips     SET status = 'settled' WHERE id = :id AND status IN (...)
    UPDATE creators SET total_tips = total_tips + 1,
                        total_amount_received = total_amount_received + :amt
                    WHERE id = :creator_id

The increment never reads the current totals into memory, so two tips
settling for the same creator cannot lose an update.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tipkesho.core.config import settings
from tipkesho.core.errors import Internal
from tipkesho.models import Creator, PaymentProvider, TipRecord, TipStatus
from tipkesho.services import directoryService
from tipkesho.services.tipStateManager import (
    OPEN_STATUSES,
    sources_for,
    validate_transition,
)
from tipkesho.services.tipValidator import NormalizedTipRequest, compute_fee_split

logger = logging.getLogger(__name__)

TX_REF_PREFIX = "TIPKESHO"


def generate_tx_ref() -> str:
    """Return a globally unique transaction reference (the idempotency key)."""
    return f"{TX_REF_PREFIX}-{uuid.uuid4()}"


def fallback_creator_handle(creator_id: str) -> str:
    return f"creator_{creator_id[:5]}"


async def _resolve_creator_handle(db: AsyncSession, creator_id: str) -> str:
    """Resolve the display handle, falling back to a placeholder.

    An unknown creator is a display concern only and never blocks the tip.
    """
    try:
        handle = await directoryService.get_creator_handle(db, creator_id)
    except SQLAlchemyError:
        logger.exception("Error fetching creator handle for %s", creator_id)
        await db.rollback()
        handle = None

    if handle:
        return handle

    fallback = fallback_creator_handle(creator_id)
    logger.warning(
        "Creator %s not found in directory; using placeholder handle %s",
        creator_id,
        fallback,
    )
    return fallback


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

async def create_tip_record(
    db: AsyncSession,
    request: NormalizedTipRequest,
    *,
    from_user_id: str,
    from_username: str,
    fee_rate: Decimal,
    payment_provider: PaymentProvider = PaymentProvider.FLUTTERWAVE,
    currency: str = "KES",
) -> TipRecord:
    """Persist a new tip in ``initiated`` status and commit it.

    The fee split is computed here, once, and never recomputed.

    Raises:
        Internal: If the record could not be durably written. No provider
                  call may be attempted in that case.
    """
    split = compute_fee_split(request.amount, fee_rate)
    to_creator_handle = await _resolve_creator_handle(db, request.to_creator_id)

    tip = TipRecord(
        tx_ref=generate_tx_ref(),
        from_user_id=from_user_id,
        from_username=from_username,
        to_creator_id=request.to_creator_id,
        to_creator_handle=to_creator_handle,
        amount=split.amount,
        platform_fee=split.platform_fee,
        creator_amount=split.creator_amount,
        currency=currency,
        message=request.message,
        mpesa_phone=request.tipper_phone_number,
        payment_provider=payment_provider,
        status=TipStatus.INITIATED,
    )

    try:
        db.add(tip)
        await db.commit()
        await db.refresh(tip)
    except SQLAlchemyError as exc:
        logger.error(
            "Error creating tip record: tx_ref=%s, creator=%s: %s",
            tip.tx_ref,
            request.to_creator_id,
            exc,
        )
        await db.rollback()
        raise Internal("failed to record tip") from exc

    logger.info(
        "Tip record created: tip=%s, tx_ref=%s, amount=%s, fee=%s, creator_amount=%s",
        tip.id,
        tip.tx_ref,
        tip.amount,
        tip.platform_fee,
        tip.creator_amount,
    )
    return tip


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

async def _transition(
    db: AsyncSession,
    tip_id: uuid.UUID,
    target: TipStatus,
    values: dict[str, Any],
) -> bool:
    """Conditionally move a tip to ``target``; return whether a row changed."""
    now = datetime.now(timezone.utc)
    result = await db.execute(
        update(TipRecord)
        .where(
            TipRecord.id == tip_id,
            TipRecord.status.in_(
                sorted(sources_for(target), key=lambda s: s.value)
            ),
        )
        .values(status=target, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _skip_reason(db: AsyncSession, tip_id: uuid.UUID, target: TipStatus) -> str:
    """Explain why a conditional transition to ``target`` changed no row."""
    current = (
        await db.execute(select(TipRecord.status).where(TipRecord.id == tip_id))
    ).scalar_one_or_none()
    if current is None:
        return "no such tip"
    return validate_transition(current, target).reason or "status changed concurrently"


async def mark_awaiting_provider(db: AsyncSession, tip_id: uuid.UUID) -> None:
    """Record that the provider is about to be called, and commit.

    Raises:
        Internal: If the write fails; the provider has not been called.
    """
    try:
        changed = await _transition(db, tip_id, TipStatus.AWAITING_PROVIDER, {})
        await db.commit()
    except SQLAlchemyError as exc:
        logger.error("Error marking tip %s awaiting provider: %s", tip_id, exc)
        await db.rollback()
        raise Internal("failed to record tip") from exc

    if not changed:
        raise Internal("failed to record tip")


async def settle_tip(
    db: AsyncSession,
    tip_id: uuid.UUID,
    *,
    provider_response: Optional[dict[str, Any]] = None,
) -> bool:
    """Mark a tip settled and credit the creator aggregate, atomically.

    Both writes share one transaction. If the tip is already terminal nothing
    is written and False is returned, so the aggregate is credited at most
    once per tip.

    Raises:
        Internal: If the transaction could not be committed.
    """
    values: dict[str, Any] = {"settled_at": datetime.now(timezone.utc)}
    if provider_response is not None:
        values["provider_response"] = provider_response

    try:
        changed = await _transition(db, tip_id, TipStatus.SETTLED, values)
        if not changed:
            reason = await _skip_reason(db, tip_id, TipStatus.SETTLED)
            await db.rollback()
            logger.warning("Settlement skipped for tip %s: %s", tip_id, reason)
            return False

        # creator_id and creator_amount are immutable after creation
        row = (
            await db.execute(
                select(TipRecord.to_creator_id, TipRecord.creator_amount).where(
                    TipRecord.id == tip_id
                )
            )
        ).one()

        aggregate = await db.execute(
            update(Creator)
            .where(Creator.id == row.to_creator_id)
            .values(
                total_tips=Creator.total_tips + 1,
                total_amount_received=Creator.total_amount_received + row.creator_amount,
            )
            .execution_options(synchronize_session=False)
        )
        if aggregate.rowcount == 0:
            logger.warning(
                "Tip %s settled for unknown creator %s; no aggregate to credit",
                tip_id,
                row.to_creator_id,
            )

        await db.commit()
    except SQLAlchemyError as exc:
        logger.error("Error settling tip %s: %s", tip_id, exc)
        await db.rollback()
        raise Internal("failed to record tip settlement") from exc

    logger.info(
        "Tip settled: tip=%s, creator=%s, credited=%s",
        tip_id,
        row.to_creator_id,
        row.creator_amount,
    )
    return True


async def record_unsettled_receipt(
    db: AsyncSession,
    tip_id: uuid.UUID,
    *,
    provider_response: Optional[dict[str, Any]],
    last_error: str,
) -> bool:
    """Keep the provider's acceptance on a tip whose settlement failed locally.

    Status is left as is so the tip stays open for reconciliation. Best
    effort: a failed write is logged and reported as False.
    """
    try:
        result = await db.execute(
            update(TipRecord)
            .where(
                TipRecord.id == tip_id,
                TipRecord.status.in_(sorted(OPEN_STATUSES, key=lambda s: s.value)),
            )
            .values(
                provider_response=provider_response,
                last_error=last_error,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as exc:
        logger.error(
            "CRITICAL: provider accepted tip %s but neither settlement nor "
            "receipt could be recorded: %s",
            tip_id,
            exc,
        )
        await db.rollback()
        return False

    recorded = result.rowcount == 1
    if recorded:
        logger.error(
            "Provider accepted tip %s but settlement failed; receipt kept for "
            "reconciliation",
            tip_id,
        )
    return recorded


async def fail_tip(
    db: AsyncSession,
    tip_id: uuid.UUID,
    status: TipStatus,
    *,
    provider_response: Optional[dict[str, Any]] = None,
    provider_error: Optional[dict[str, Any]] = None,
    last_error: Optional[str] = None,
) -> bool:
    """Record a failed or indeterminate provider outcome. Never touches the
    creator aggregate.

    Args:
        status: ``FAILED_INITIATION`` (provider declined) or
                ``ERROR_INITIATION`` (outcome unknown).

    Raises:
        ValueError: If ``status`` is not a failure status.
        Internal: If the outcome could not be committed.
    """
    if status not in (TipStatus.FAILED_INITIATION, TipStatus.ERROR_INITIATION):
        raise ValueError(f"{status} is not a failure status")

    values: dict[str, Any] = {"last_error": last_error}
    if provider_response is not None:
        values["provider_response"] = provider_response
    if provider_error is not None:
        values["provider_error"] = provider_error

    reason = None
    try:
        changed = await _transition(db, tip_id, status, values)
        if not changed:
            reason = await _skip_reason(db, tip_id, status)
        await db.commit()
    except SQLAlchemyError as exc:
        logger.error(
            "CRITICAL: failed to record %s outcome for tip %s: %s",
            status.value,
            tip_id,
            exc,
        )
        await db.rollback()
        raise Internal("failed to record tip outcome") from exc

    if not changed:
        logger.warning("%s not recorded for tip %s: %s", status.value, tip_id, reason)
    else:
        logger.info("Tip %s marked %s", tip_id, status.value)
    return changed


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _clamp_limit(limit: Optional[int]) -> int:
    if limit is None or limit <= 0:
        return settings.default_page_size
    return min(limit, settings.max_page_size)


async def get_tip(db: AsyncSession, tip_id: uuid.UUID) -> Optional[TipRecord]:
    """Return a tip with attributes freshly loaded from the database."""
    result = await db.execute(
        select(TipRecord)
        .where(TipRecord.id == tip_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_tips_sent(
    db: AsyncSession,
    user_id: str,
    limit: Optional[int] = None,
) -> list[TipRecord]:
    result = await db.execute(
        select(TipRecord)
        .where(TipRecord.from_user_id == user_id)
        .order_by(TipRecord.created_at.desc())
        .limit(_clamp_limit(limit))
    )
    return list(result.scalars().all())


async def list_tips_received(
    db: AsyncSession,
    creator_id: str,
    limit: Optional[int] = None,
) -> list[TipRecord]:
    result = await db.execute(
        select(TipRecord)
        .where(TipRecord.to_creator_id == creator_id)
        .order_by(TipRecord.created_at.desc())
        .limit(_clamp_limit(limit))
    )
    return list(result.scalars().all())
