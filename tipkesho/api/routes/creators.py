"""
Creator API Routes
==================

  GET /api/v1/creators/{creator_id}/stats  -- running tip totals
"""

from __future__ import annotations

from fastapi import APIRouter

from tipkesho.api.deps import DBSession
from tipkesho.api.schemas.creator import CreatorStatsOut, CreatorStatsResponse
from tipkesho.core.errors import NotFound
from tipkesho.services import directoryService

router = APIRouter(prefix="/creators", tags=["Creators"])


@router.get(
    "/{creator_id}/stats",
    response_model=CreatorStatsResponse,
    summary="Get a creator's tip totals",
    description="Totals over settled tips only, net of the platform fee.",
)
async def get_creator_stats(creator_id: str, db: DBSession) -> CreatorStatsResponse:
    stats = await directoryService.get_creator_stats(db, creator_id)
    if stats is None:
        raise NotFound(f"Creator {creator_id} not found.")
    return CreatorStatsResponse(data=CreatorStatsOut.model_validate(stats))
