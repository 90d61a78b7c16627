"""Attendance domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator, model_validator

AttendanceStatus = Literal["pending", "present", "absent"]


class AttendanceRecordCreate(BaseModel):
    """Schema for marking attendance of one child"""

    bookingId: Optional[str] = None
    transactionId: Optional[str] = None
    childName: str
    childAge: Optional[int] = None
    parentName: Optional[str] = None
    phoneNumber: Optional[str] = None
    workshopId: Optional[str] = None
    workshopName: Optional[str] = None
    workshopDate: Optional[str] = None
    workshopTime: Optional[str] = None
    attendanceStatus: AttendanceStatus = "pending"
    comments: Optional[str] = ""
    markedAt: Optional[datetime] = None

    @field_validator("bookingId", "transactionId")
    @classmethod
    def blank_to_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("childName")
    @classmethod
    def validate_child_name(cls, v):
        if not v or not v.strip():
            raise ValueError("childName is required")
        return v

    @model_validator(mode="after")
    def require_identifier(self):
        if not self.transactionId and not self.bookingId:
            raise ValueError("Either transactionId or bookingId is required")
        return self


class BulkAttendanceRequest(BaseModel):
    attendanceRecords: list[AttendanceRecordCreate]


class AttendanceRecordResponse(BaseModel):
    """Schema for attendance record response"""

    id: int
    bookingId: Optional[str] = None
    transactionId: Optional[str] = None
    childName: str
    childAge: Optional[int] = None
    parentName: Optional[str] = None
    phoneNumber: Optional[str] = None
    workshopId: Optional[str] = None
    workshopName: Optional[str] = None
    workshopDate: Optional[str] = None
    workshopTime: Optional[str] = None
    attendanceStatus: str
    comments: Optional[str] = ""
    markedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class UpsertResponse(BaseModel):
    success: bool = True
    message: str
    operation: Literal["insert", "update"]
    matchedOn: Literal["transactionId", "bookingId"]
    key: dict


class BulkUpsertResult(BaseModel):
    inserted: int
    updated: int
    total: int
    failed: int = 0


class BulkUpsertResponse(BaseModel):
    success: bool = True
    message: str
    result: BulkUpsertResult
    warning: Optional[str] = None
    errors: list[dict] = []


class FetchAttendanceResponse(BaseModel):
    success: bool = True
    message: str
    attendanceRecords: list[AttendanceRecordResponse]
