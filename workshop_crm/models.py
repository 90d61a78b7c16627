import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from .database import Base


def generate_document_id():
    """Generate a 24-char hex id in the same shape as the booking flow's ids"""
    return uuid.uuid4().hex[:24]


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=generate_document_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="customer")  # admin, staff, customer
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Booking(Base):
    """Booking document written by the external payment/booking flow"""

    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True, default=generate_document_id)
    # Raw document as produced by the booking flow (child[], payment{}, ...)
    document = Column(JSON, nullable=False, default=dict)
    # The only field this service mutates; mirrored into document["otp_verified"]
    otp_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), index=True)


class WorkshopDetail(Base):
    __tablename__ = "workshop_details"

    id = Column(String(64), primary_key=True, default=generate_document_id)
    theme = Column(String(255), nullable=True)
    document = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, server_default=func.now())


class Attendance(Base):
    """One attendance record per child per booking (see match_key)"""

    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, index=True)
    # tx:<transactionId>:<childName> or bk:<bookingId>:<childName>:<workshopId>:<workshopDate>
    match_key = Column(String(512), unique=True, index=True, nullable=False)
    transaction_id = Column(String(255), nullable=True, index=True)
    booking_id = Column(String(64), nullable=True, index=True)
    child_name = Column(String(255), nullable=False)
    child_age = Column(Integer, nullable=True)
    parent_name = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)
    workshop_id = Column(String(64), nullable=True)
    workshop_name = Column(String(255), nullable=True)
    workshop_date = Column(String(50), nullable=True)
    workshop_time = Column(String(100), nullable=True)
    attendance_status = Column(String(20), nullable=False, default="pending")  # pending, present, absent
    comments = Column(Text, nullable=True)
    marked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class WelcomeCallStatus(Base):
    """Welcome-call / OTP follow-up status per child row"""

    __tablename__ = "welcome_call_status"

    child_id = Column(String(128), primary_key=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, done
    created_at = Column(DateTime, nullable=False)
    last_updated_at = Column(DateTime, nullable=False)
    updated_by = Column(String(64), nullable=True)
