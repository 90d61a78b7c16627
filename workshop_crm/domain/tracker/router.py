"""Tracker router - welcome-call / OTP follow-up status endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ...auth import require_roles
from .cache import StatusTrackerCache
from .schemas import (
    TrackerEntryResponse,
    TrackerStatusItem,
    TrackerStatusResponse,
    TrackerStatusUpdateRequest,
    TrackerUpdateResponse,
    TrackerUpdateResult,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracker-status", tags=["Tracker"])

FALLBACK_WARNING = "Saved to fallback storage only, database update failed"


def get_tracker_cache(request: Request) -> StatusTrackerCache:
    """The cache instance created in the application lifespan"""
    return request.app.state.tracker_cache


def _update_response(result: TrackerUpdateResult, cache: StatusTrackerCache) -> TrackerUpdateResponse:
    warning: Optional[str] = None
    if result.stale or cache.memory_only or cache.consecutive_failures:
        warning = FALLBACK_WARNING
    return TrackerUpdateResponse(
        message="Welcome call status updated successfully",
        applied=result.applied,
        skipped=result.skipped,
        warning=warning,
    )


@router.get("", response_model=TrackerStatusResponse)
async def get_tracker_status(
    refresh: bool = Query(False),
    _claims: dict = Depends(require_roles("admin", "staff")),
    cache: StatusTrackerCache = Depends(get_tracker_cache),
):
    """Get the merged map of child-row id -> tracker status"""
    entries, stale = await cache.snapshot(force=refresh)
    return TrackerStatusResponse(
        trackerStatus={
            key: TrackerEntryResponse(status=e.status, createdAt=e.createdAt, lastUpdatedAt=e.lastUpdatedAt)
            for key, e in entries.items()
        },
        stale=stale,
        message="Fetched tracker status from fallback storage" if stale else "Tracker status fetched successfully",
        warning="Database connection failed" if stale else None,
    )


@router.post("", response_model=TrackerUpdateResponse)
async def update_tracker_status(
    data: TrackerStatusUpdateRequest,
    claims: dict = Depends(require_roles("admin", "staff")),
    cache: StatusTrackerCache = Depends(get_tracker_cache),
):
    """Apply a full or partial status map; entries already done are left as they are"""
    result = await cache.apply_bulk_update(data.normalized(), updated_by=claims.get("userId"))
    logger.info(f"📊 Tracker update by {claims.get('email')}: {len(result.applied)} applied, {len(result.skipped)} skipped")
    return _update_response(result, cache)


@router.put("/{child_id}", response_model=TrackerUpdateResponse)
async def update_single_tracker_status(
    child_id: str,
    item: TrackerStatusItem,
    claims: dict = Depends(require_roles("admin", "staff")),
    cache: StatusTrackerCache = Depends(get_tracker_cache),
):
    """Set the status of one child row"""
    result = await cache.apply_update(child_id, item, updated_by=claims.get("userId"))
    return _update_response(result, cache)
