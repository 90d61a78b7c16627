"""Booking router - bookings, OTP verification listing and reconciled child rows"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_claims, require_roles
from ...config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ...database import get_db
from ..tracker.cache import StatusTrackerCache
from ..tracker.router import get_tracker_cache
from .schemas import Booking, BookingListResponse, ChildRowListResponse, OtpVerifiedUpdate
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Bookings"])


def get_booking_service(request: Request, db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, verification_cache=request.app.state.verification_cache)


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    page: int = Query(1, ge=1),
    pageSize: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    _claims: dict = Depends(get_current_claims),
    service: BookingService = Depends(get_booking_service),
):
    """Get bookings (test numbers excluded), one page at a time"""
    return service.list_bookings(page, pageSize)


@router.patch("/bookings/{booking_id}/otp-verified", response_model=Booking)
async def set_otp_verified(
    booking_id: str,
    data: OtpVerifiedUpdate,
    _claims: dict = Depends(require_roles("admin", "staff")),
    service: BookingService = Depends(get_booking_service),
):
    """Mark a booking's OTP as verified (or not)"""
    return service.set_otp_verified(booking_id, data.otpVerified)


@router.get("/otp-verification")
async def list_otp_verifications(
    refresh: bool = Query(False),
    _claims: dict = Depends(require_roles("admin", "staff")),
    service: BookingService = Depends(get_booking_service),
):
    """Get booking-level OTP verification data (cached briefly)"""
    return service.list_verifications(force_refresh=refresh)


@router.get("/child-rows", response_model=ChildRowListResponse)
async def list_child_rows(
    page: int = Query(1, ge=1),
    pageSize: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    category: Optional[Literal["all", "upcoming", "today", "past"]] = Query(None),
    sortBy: Optional[Literal["none", "date", "time"]] = Query(None),
    sortDirection: Literal["asc", "desc"] = Query("asc"),
    _claims: dict = Depends(require_roles("admin", "staff")),
    service: BookingService = Depends(get_booking_service),
    tracker_cache: StatusTrackerCache = Depends(get_tracker_cache),
):
    """One row per child with attendance and welcome-call state merged in"""
    entries, stale = await tracker_cache.snapshot()
    return service.list_child_rows(
        entries,
        page=page,
        page_size=pageSize,
        search=search,
        status=status,
        date=date,
        category=category,
        sort_by=sortBy,
        sort_direction=sortDirection,
        tracker_stale=stale,
    )
