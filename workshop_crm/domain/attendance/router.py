"""Attendance router - FastAPI endpoints for attendance marking"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_claims
from ...database import get_db
from .schemas import (
    AttendanceRecordCreate,
    BulkAttendanceRequest,
    BulkUpsertResponse,
    FetchAttendanceResponse,
    UpsertResponse,
)
from .service import AttendanceService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Attendance"])


def get_attendance_service(db: Session = Depends(get_db)) -> AttendanceService:
    """Dependency injection for AttendanceService"""
    return AttendanceService(db)


@router.post("/attendance", response_model=UpsertResponse)
async def mark_attendance(
    record: AttendanceRecordCreate,
    _claims: dict = Depends(get_current_claims),
    service: AttendanceService = Depends(get_attendance_service),
):
    """Insert or update the attendance record for one child"""
    return service.upsert_attendance(record)


@router.post("/bulk-attendance", response_model=BulkUpsertResponse)
async def bulk_mark_attendance(
    data: BulkAttendanceRequest,
    _claims: dict = Depends(get_current_claims),
    service: AttendanceService = Depends(get_attendance_service),
):
    """Upsert a batch of attendance records; reports inserted/updated/total counts"""
    return service.bulk_upsert_attendance(data.attendanceRecords)


@router.get("/fetch-attendance", response_model=FetchAttendanceResponse)
async def fetch_attendance(
    transactionId: Optional[list[str]] = Query(None),
    bookingId: Optional[list[str]] = Query(None),
    _claims: dict = Depends(get_current_claims),
    service: AttendanceService = Depends(get_attendance_service),
):
    """Get attendance records matching any of the given transaction or booking ids"""
    records = service.fetch_attendance(transactionId, bookingId)
    return FetchAttendanceResponse(
        message=f"Retrieved {len(records)} attendance records",
        attendanceRecords=records,
    )
