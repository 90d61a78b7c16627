"""Booking domain schemas - normalised bookings and derived child rows"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class BookingChild(BaseModel):
    name: str
    age: int = 0


class BookingPayment(BaseModel):
    status: str = "Unknown"
    mode: Optional[str] = None
    gateway: str = "Unknown"
    amount: float = 0
    productInfo: str = "Unknown"


class Booking(BaseModel):
    """A booking document after storage-boundary normalisation"""

    id: str
    transactionId: str = ""
    # None marks a malformed document (no child array)
    children: Optional[list[BookingChild]] = None
    parentName: str = "Unknown"
    phoneNumber: str = "Unknown"
    workshopId: Optional[str] = None
    workshopDate: str = "Unknown"
    workshopTime: str = "Unknown"
    workshopLocation: str = "Unknown"
    payment: BookingPayment = Field(default_factory=BookingPayment)
    otpVerified: bool = False
    status: str = "pending"
    centerCode: str = "Unknown"
    createdAt: Optional[datetime] = None


class ChildRow(BaseModel):
    """One display/tracking row per (booking, child index)"""

    id: str
    bookingId: str
    transactionId: str
    childIndex: int
    totalChildren: int
    isFirstChild: bool
    childName: str
    childAge: int
    parentName: str
    phoneNumber: str
    otpVerified: bool
    workshopId: Optional[str] = None
    workshopDate: str
    workshopTime: str
    workshopLocation: str
    timeCategory: str
    productInfo: str
    amount: float
    paymentStatus: str
    paymentGateway: str
    createdAt: Optional[datetime] = None
    bookingDate: str
    bookingTime: str
    # Attendance overlay
    attendanceStatus: str = "pending"
    comments: str = ""
    saved: bool = False
    # Welcome-call tracker overlay
    trackerStatus: str = "pending"
    trackerCreatedAt: Optional[datetime] = None
    trackerUpdatedAt: Optional[datetime] = None


class VerificationSummary(BaseModel):
    """Booking-level row of the OTP verification listing"""

    id: str
    workshopId: Optional[str] = None
    childNames: list[str]
    childAges: list[int]
    parentName: str
    phoneNumber: str
    otpVerified: bool
    workshopDate: str
    workshopTime: str
    workshopLocation: str
    transactionId: str
    productInfo: str
    amount: float
    status: str
    centerCode: str
    createdAt: Optional[datetime] = None
    paymentStatus: str
    paymentGateway: str


class BookingListResponse(BaseModel):
    success: bool = True
    bookings: list[Booking]
    total: int
    page: int
    pageSize: int
    isUsingFallbackData: bool = False


class ChildRowListResponse(BaseModel):
    success: bool = True
    rows: list[ChildRow]
    total: int
    page: int
    pageSize: int
    stale: bool = False
    isUsingFallbackData: bool = False


class OtpVerifiedUpdate(BaseModel):
    otpVerified: bool
