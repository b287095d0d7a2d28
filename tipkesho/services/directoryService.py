"""
Directory Service
=================

Read-only lookups over user and creator profiles. The tip ledger uses this to
resolve display snapshots; creator aggregates are read here for display but
only ever written by ``tipLedger``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipkesho.models import Creator, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreatorStats:
    creator_id: str
    tip_handle: str
    total_tips: int
    total_amount_received: Decimal


async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_creator_for_user(db: AsyncSession, user_id: str) -> Optional[Creator]:
    result = await db.execute(select(Creator).where(Creator.user_id == user_id))
    return result.scalar_one_or_none()


async def get_creator_handle(db: AsyncSession, creator_id: str) -> Optional[str]:
    """Return the creator's tip handle, or None if no such creator exists."""
    result = await db.execute(
        select(Creator.tip_handle).where(Creator.id == creator_id)
    )
    return result.scalar_one_or_none()


async def get_creator_stats(db: AsyncSession, creator_id: str) -> Optional[CreatorStats]:
    """Return the running totals for a creator, read fresh from the database."""
    result = await db.execute(
        select(
            Creator.id,
            Creator.tip_handle,
            Creator.total_tips,
            Creator.total_amount_received,
        ).where(Creator.id == creator_id)
    )
    row = result.one_or_none()
    if row is None:
        return None
    return CreatorStats(
        creator_id=row.id,
        tip_handle=row.tip_handle,
        total_tips=row.total_tips,
        total_amount_received=row.total_amount_received,
    )
