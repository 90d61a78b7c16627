"""Attendance repository - Database operations for attendance records"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Attendance
from .schemas import AttendanceRecordCreate, AttendanceRecordResponse

# Maps request fields onto columns; everything here is overwritten on each write
_FIELD_COLUMNS = {
    "bookingId": "booking_id",
    "transactionId": "transaction_id",
    "childName": "child_name",
    "childAge": "child_age",
    "parentName": "parent_name",
    "phoneNumber": "phone_number",
    "workshopId": "workshop_id",
    "workshopName": "workshop_name",
    "workshopDate": "workshop_date",
    "workshopTime": "workshop_time",
    "attendanceStatus": "attendance_status",
    "comments": "comments",
    "markedAt": "marked_at",
}


def upsert_filter(record: AttendanceRecordCreate) -> tuple[str, dict]:
    """
    Return (matchedOn, filter) identifying the record's single stored row.

    A transaction id identifies the booking on its own; bookings without one
    are identified by booking, child, workshop and date together.
    """
    if record.transactionId:
        return "transactionId", {
            "transactionId": record.transactionId,
            "childName": record.childName,
        }
    return "bookingId", {
        "bookingId": record.bookingId,
        "childName": record.childName,
        "workshopId": record.workshopId,
        "workshopDate": record.workshopDate,
    }


def match_key(record: AttendanceRecordCreate) -> str:
    matched_on, key = upsert_filter(record)
    prefix = "tx" if matched_on == "transactionId" else "bk"
    parts = [str(v) if v is not None else "" for v in key.values()]
    return ":".join([prefix, *parts])


def to_response(row: Attendance) -> AttendanceRecordResponse:
    return AttendanceRecordResponse(
        id=row.id,
        bookingId=row.booking_id,
        transactionId=row.transaction_id,
        childName=row.child_name,
        childAge=row.child_age,
        parentName=row.parent_name,
        phoneNumber=row.phone_number,
        workshopId=row.workshop_id,
        workshopName=row.workshop_name,
        workshopDate=row.workshop_date,
        workshopTime=row.workshop_time,
        attendanceStatus=row.attendance_status,
        comments=row.comments or "",
        markedAt=row.marked_at,
        createdAt=row.created_at,
        updatedAt=row.updated_at,
    )


class AttendanceRepository:
    """Repository for attendance database operations"""

    @staticmethod
    def get_by_match_key(db: Session, key: str) -> Optional[Attendance]:
        return db.query(Attendance).filter(Attendance.match_key == key).first()

    @staticmethod
    def _apply(row: Attendance, record: AttendanceRecordCreate, now: datetime) -> None:
        for field, column in _FIELD_COLUMNS.items():
            setattr(row, column, getattr(record, field))
        if row.marked_at is None:
            row.marked_at = now
        row.updated_at = now

    @classmethod
    def upsert(cls, db: Session, record: AttendanceRecordCreate, now: datetime) -> tuple[Attendance, str]:
        """
        Insert or update the single row for this record's key and commit.

        Returns (row, "insert" | "update"). A concurrent insert of the same key
        surfaces as an IntegrityError and is retried as an update.
        """
        key = match_key(record)
        row = cls.get_by_match_key(db, key)
        if row is not None:
            cls._apply(row, record, now)
            db.commit()
            return row, "update"

        row = Attendance(match_key=key, created_at=now)
        cls._apply(row, record, now)
        db.add(row)
        try:
            db.commit()
            return row, "insert"
        except IntegrityError:
            db.rollback()
            row = cls.get_by_match_key(db, key)
            if row is None:
                raise
            cls._apply(row, record, now)
            db.commit()
            return row, "update"

    @staticmethod
    def find_by_identifiers(
        db: Session, transaction_ids: list[str], booking_ids: list[str]
    ) -> list[Attendance]:
        """Find records matching any of the transaction ids or booking ids"""
        conditions = []
        if transaction_ids:
            conditions.append(Attendance.transaction_id.in_(transaction_ids))
        if booking_ids:
            conditions.append(Attendance.booking_id.in_(booking_ids))
        if not conditions:
            return []
        return db.query(Attendance).filter(or_(*conditions)).order_by(Attendance.id.asc()).all()
