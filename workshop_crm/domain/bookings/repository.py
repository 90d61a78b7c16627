"""Booking repository - document reads and the otp_verified write"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ...models import Booking as BookingDocument, generate_document_id
from ...normalize import as_text, normalize_datetime, normalize_id, utcnow
from .schemas import Booking, BookingChild, BookingPayment

logger = logging.getLogger(__name__)


def _capitalize_status(status: Any) -> str:
    if not status:
        return "Unknown"
    lowered = str(status).lower()
    return lowered[:1].upper() + lowered[1:]


def _parse_children(raw: Any) -> Optional[list[BookingChild]]:
    if not isinstance(raw, list):
        return None
    children = []
    for child in raw:
        if not isinstance(child, dict):
            continue
        try:
            age = int(child.get("age") or 0)
        except (TypeError, ValueError):
            age = 0
        children.append(BookingChild(name=as_text(child.get("childname"), ""), age=age))
    return children


def booking_from_document(doc: dict, fallback_id: str = "") -> Booking:
    """
    Convert a raw booking document into a canonical Booking.

    Wrapped ids/dates are unwrapped, missing display fields get placeholders,
    and a document without a child array keeps children=None.
    """
    payment = doc.get("payment") or {}
    if not isinstance(payment, dict):
        payment = {}

    try:
        amount = float(payment.get("amount") or 0)
    except (TypeError, ValueError):
        amount = 0

    workshop_id = normalize_id(doc.get("workshop_id")) or None

    return Booking(
        id=normalize_id(doc.get("_id")) or fallback_id,
        transactionId=as_text(payment.get("Transaction_ID"), ""),
        children=_parse_children(doc.get("child")),
        parentName=as_text(doc.get("parent_name")),
        phoneNumber=as_text(doc.get("ph_number")),
        workshopId=workshop_id,
        workshopDate=as_text(doc.get("date_of_workshop")),
        workshopTime=as_text(doc.get("time")),
        workshopLocation=as_text(doc.get("workshop_location")),
        payment=BookingPayment(
            status=_capitalize_status(payment.get("status")),
            mode=payment.get("mode"),
            gateway=payment.get("gateway") or payment.get("mode") or "Unknown",
            amount=amount,
            productInfo=as_text(payment.get("product_info")),
        ),
        otpVerified=bool(doc.get("otp_verified", False)),
        status=as_text(doc.get("status"), "pending"),
        centerCode=as_text(doc.get("center_code")),
        createdAt=normalize_datetime(doc.get("created_at")),
    )


class BookingRepository:
    """Repository for booking document operations"""

    @staticmethod
    def list_bookings(db: Session) -> list[Booking]:
        """Get all bookings in arrival order"""
        rows = db.query(BookingDocument).order_by(BookingDocument.created_at.asc(), BookingDocument.id.asc()).all()
        bookings = []
        for row in rows:
            doc = dict(row.document or {})
            doc["otp_verified"] = row.otp_verified
            doc.setdefault("created_at", row.created_at)
            bookings.append(booking_from_document(doc, fallback_id=row.id))
        return bookings

    @staticmethod
    def get_document(db: Session, booking_id: str) -> Optional[BookingDocument]:
        return db.query(BookingDocument).filter(BookingDocument.id == booking_id).first()

    @staticmethod
    def set_otp_verified(db: Session, row: BookingDocument, verified: bool) -> Booking:
        row.otp_verified = verified
        document = dict(row.document or {})
        document["otp_verified"] = verified
        row.document = document
        flag_modified(row, "document")
        db.commit()
        db.refresh(row)
        return booking_from_document(row.document, fallback_id=row.id)

    @staticmethod
    def insert_document(db: Session, document: dict) -> BookingDocument:
        """Store a raw booking document as the booking flow would"""
        booking_id = normalize_id(document.get("_id")) or generate_document_id()
        row = BookingDocument(
            id=booking_id,
            document=document,
            otp_verified=bool(document.get("otp_verified", False)),
            created_at=normalize_datetime(document.get("created_at")) or utcnow(),
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
