"""Attendance service - Business logic for attendance marking"""

import logging
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import BULK_WRITE_TIMEOUT_SECONDS
from ...errors import StoreUnavailableError, ValidationError
from ...normalize import utcnow
from .repository import AttendanceRepository, to_response, upsert_filter
from .schemas import (
    AttendanceRecordCreate,
    AttendanceRecordResponse,
    BulkUpsertResponse,
    BulkUpsertResult,
    UpsertResponse,
)

logger = logging.getLogger(__name__)


class AttendanceService:
    """Service layer for attendance business logic"""

    def __init__(self, db: Session, bulk_timeout: float = BULK_WRITE_TIMEOUT_SECONDS):
        self.db = db
        self.repo = AttendanceRepository()
        self.bulk_timeout = bulk_timeout

    def upsert_attendance(self, record: AttendanceRecordCreate) -> UpsertResponse:
        """Write one attendance record, inserting or updating its single row"""
        matched_on, key = upsert_filter(record)
        try:
            _, operation = self.repo.upsert(self.db, record, utcnow())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save attendance for {record.childName}: {e}")
            raise StoreUnavailableError("Failed to save attendance to database") from e

        logger.info(f"✅ Attendance {operation} for {record.childName} (matched on {matched_on})")
        return UpsertResponse(
            message="New attendance record created" if operation == "insert" else "Attendance record updated",
            operation=operation,
            matchedOn=matched_on,
            key=key,
        )

    def bulk_upsert_attendance(self, records: list[AttendanceRecordCreate]) -> BulkUpsertResponse:
        """
        Upsert each record independently.

        A failing record is rolled back on its own and reported in `errors`;
        the others still commit. If the batch runs past the bulk timeout the
        remaining records are not attempted and the call fails with 503;
        records committed before that point stay committed.
        """
        if not records:
            raise ValidationError("No attendance records provided")

        deadline = time.monotonic() + self.bulk_timeout
        inserted = updated = 0
        errors: list[dict] = []

        for index, record in enumerate(records):
            if time.monotonic() > deadline:
                logger.error(f"❌ Bulk attendance timed out after {index}/{len(records)} records")
                raise StoreUnavailableError(
                    f"Bulk attendance write timed out after {index} of {len(records)} records"
                )
            try:
                _, operation = self.repo.upsert(self.db, record, utcnow())
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"❌ Attendance record {index} ({record.childName}) failed: {e}")
                errors.append({"index": index, "childName": record.childName, "error": str(e)})
                continue

            if operation == "insert":
                inserted += 1
            else:
                updated += 1

        if errors and not inserted and not updated:
            raise StoreUnavailableError("Failed to save attendance records to database")

        result = BulkUpsertResult(inserted=inserted, updated=updated, total=len(records), failed=len(errors))
        logger.info(f"📊 Bulk attendance: {inserted} inserted, {updated} updated, {len(errors)} failed")

        return BulkUpsertResponse(
            message="Attendance processed successfully",
            result=result,
            warning=f"{len(errors)} record(s) failed and can be retried" if errors else None,
            errors=errors,
        )

    def fetch_attendance(
        self, transaction_ids: Optional[list[str]], booking_ids: Optional[list[str]]
    ) -> list[AttendanceRecordResponse]:
        transaction_ids = [t for t in (transaction_ids or []) if t]
        booking_ids = [b for b in (booking_ids or []) if b]
        if not transaction_ids and not booking_ids:
            raise ValidationError(
                "No identifiers provided. Please provide transactionId or bookingId parameters."
            )

        try:
            rows = self.repo.find_by_identifiers(self.db, transaction_ids, booking_ids)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to fetch attendance records: {e}")
            raise StoreUnavailableError("Failed to fetch attendance records from database") from e
        return [to_response(row) for row in rows]
