"""
Booking reconciliation - turns booking documents into per-child rows and
overlays the separately stored attendance and welcome-call state.

All functions are pure: same input, same output, no store access.
"""

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Optional, TypeVar
from zoneinfo import ZoneInfo

from ...config import DISPLAY_TIMEZONE
from ..attendance.schemas import AttendanceRecordResponse
from ..tracker.schemas import TrackerEntry
from .schemas import Booking, ChildRow, VerificationSummary

logger = logging.getLogger(__name__)

T = TypeVar("T")

UPCOMING = "upcoming"
TODAY = "today"
PAST = "past"

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d")
_TIME_RE = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])?")


# ============================================================================
# DATE HELPERS
# ============================================================================


def parse_workshop_date(value: Optional[str]) -> Optional[date]:
    """Parse a workshop date string in any of the formats the booking flow uses"""
    if not value:
        return None
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def get_workshop_time_category(date_str: Optional[str], now: Optional[datetime] = None) -> str:
    """
    Classify a workshop date relative to today as upcoming, today or past.

    Comparison is done on calendar days (local midnight); anything that cannot
    be parsed is treated as upcoming so the row still renders.
    """
    workshop_day = parse_workshop_date(date_str)
    if workshop_day is None:
        return UPCOMING

    today = (now or datetime.now()).date()
    delta = (workshop_day - today).days
    if delta < 0:
        return PAST
    if delta == 0:
        return TODAY
    return UPCOMING


def _workshop_start_minutes(value: str) -> Optional[int]:
    """Minutes after midnight of the slot start in strings like '4:00 PM - 6:30 PM'"""
    match = _TIME_RE.search(value or "")
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = (match.group(3) or "").lower()
    if meridiem == "pm" and hour != 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    return hour * 60 + minute


def _display_tz():
    return ZoneInfo(DISPLAY_TIMEZONE)


def format_booking_date(created_at: Optional[datetime]) -> str:
    if created_at is None:
        return "Invalid Date"
    local = created_at.replace(tzinfo=timezone.utc).astimezone(_display_tz())
    return local.strftime("%d/%m/%Y")


def format_booking_time(created_at: Optional[datetime]) -> str:
    if created_at is None:
        return "Invalid Time"
    local = created_at.replace(tzinfo=timezone.utc).astimezone(_display_tz())
    return local.strftime("%I:%M %p")


# ============================================================================
# RECONCILIATION
# ============================================================================


def exclude_test_numbers(items: Iterable[T], blocklist: Iterable[str]) -> list[T]:
    """Drop bookings/rows whose phone number is on the internal test-number list"""
    blocked = set(blocklist)
    return [item for item in items if item.phoneNumber not in blocked]


def flatten(bookings: Iterable[Booking], now: Optional[datetime] = None) -> list[ChildRow]:
    """
    Emit one ChildRow per child, in booking order then child order.

    Bookings without a child array are skipped with a warning so that one bad
    document cannot block the rest.
    """
    rows: list[ChildRow] = []
    for booking in bookings:
        if booking.children is None:
            logger.warning(f"⚠️ Skipping booking {booking.id}: no children array")
            continue

        total = len(booking.children)
        category = get_workshop_time_category(booking.workshopDate, now)
        booking_date = format_booking_date(booking.createdAt)
        booking_time = format_booking_time(booking.createdAt)

        for index, child in enumerate(booking.children):
            rows.append(
                ChildRow(
                    id=f"{booking.id}-{index}",
                    bookingId=booking.id,
                    transactionId=booking.transactionId,
                    childIndex=index,
                    totalChildren=total,
                    isFirstChild=index == 0,
                    childName=child.name,
                    childAge=child.age,
                    parentName=booking.parentName,
                    phoneNumber=booking.phoneNumber,
                    otpVerified=booking.otpVerified,
                    workshopId=booking.workshopId,
                    workshopDate=booking.workshopDate,
                    workshopTime=booking.workshopTime,
                    workshopLocation=booking.workshopLocation,
                    timeCategory=category,
                    productInfo=booking.payment.productInfo,
                    amount=booking.payment.amount,
                    paymentStatus=booking.payment.status,
                    paymentGateway=booking.payment.gateway,
                    createdAt=booking.createdAt,
                    bookingDate=booking_date,
                    bookingTime=booking_time,
                )
            )
    return rows


def merge_attendance(
    rows: Sequence[ChildRow], records: Iterable[AttendanceRecordResponse]
) -> list[ChildRow]:
    """
    Overlay stored attendance onto rows.

    Rows with a transaction id match on (transactionId, childName); the rest
    fall back to (bookingId, childName).
    """
    by_transaction: dict[tuple[str, str], AttendanceRecordResponse] = {}
    by_booking: dict[tuple[str, str], AttendanceRecordResponse] = {}
    for record in records:
        if record.transactionId:
            by_transaction[(record.transactionId, record.childName)] = record
        if record.bookingId:
            by_booking[(record.bookingId, record.childName)] = record

    merged = []
    for row in rows:
        if row.transactionId:
            match = by_transaction.get((row.transactionId, row.childName))
        else:
            match = by_booking.get((row.bookingId, row.childName))

        if match is not None:
            overlay = {
                "attendanceStatus": match.attendanceStatus,
                "comments": match.comments or "",
                "saved": True,
            }
        else:
            overlay = {"attendanceStatus": "pending", "comments": "", "saved": False}
        merged.append(row.model_copy(update=overlay))
    return merged


def merge_tracker_status(rows: Sequence[ChildRow], entries: Mapping[str, TrackerEntry]) -> list[ChildRow]:
    """Overlay welcome-call tracker state keyed by row id"""
    merged = []
    for row in rows:
        entry = entries.get(row.id)
        if entry is None:
            merged.append(row.model_copy(update={"trackerStatus": "pending"}))
            continue
        merged.append(
            row.model_copy(
                update={
                    "trackerStatus": entry.status,
                    "trackerCreatedAt": entry.createdAt,
                    "trackerUpdatedAt": entry.lastUpdatedAt,
                }
            )
        )
    return merged


def to_verification_summary(booking: Booking) -> VerificationSummary:
    children = booking.children or []
    return VerificationSummary(
        id=booking.id,
        workshopId=booking.workshopId,
        childNames=[c.name for c in children],
        childAges=[c.age for c in children],
        parentName=booking.parentName,
        phoneNumber=booking.phoneNumber,
        otpVerified=booking.otpVerified,
        workshopDate=booking.workshopDate,
        workshopTime=booking.workshopTime,
        workshopLocation=booking.workshopLocation,
        transactionId=booking.transactionId or "N/A",
        productInfo=booking.payment.productInfo,
        amount=booking.payment.amount,
        status=booking.status,
        centerCode=booking.centerCode,
        createdAt=booking.createdAt,
        paymentStatus=booking.payment.status,
        paymentGateway=booking.payment.gateway,
    )


# ============================================================================
# FILTER / SORT / PAGINATE
# ============================================================================


def search_rows(rows: Iterable[ChildRow], query: Optional[str]) -> list[ChildRow]:
    if not query:
        return list(rows)
    q = query.lower()
    return [
        row
        for row in rows
        if q in row.childName.lower()
        or q in row.parentName.lower()
        or q in row.phoneNumber
        or q in row.productInfo.lower()
        or (row.transactionId and q in row.transactionId.lower())
    ]


def filter_rows_by_status(rows: Iterable[ChildRow], status: Optional[str]) -> list[ChildRow]:
    if not status or status == "all":
        return list(rows)

    def keep(row: ChildRow) -> bool:
        if status == "verified":
            return row.otpVerified
        if status == "pending":
            return not row.otpVerified
        if status == "payment_confirmed":
            return row.paymentStatus == "Confirmed"
        if status == "payment_pending":
            return row.paymentStatus == "Pending"
        if status == "payment_initiated":
            return row.paymentStatus == "Initiated"
        return True

    return [row for row in rows if keep(row)]


def filter_rows_by_date(rows: Iterable[ChildRow], date_str: Optional[str]) -> list[ChildRow]:
    if not date_str:
        return list(rows)
    wanted = parse_workshop_date(date_str)
    if wanted is None:
        return []
    return [row for row in rows if parse_workshop_date(row.workshopDate) == wanted]


def filter_rows_by_category(rows: Iterable[ChildRow], category: Optional[str]) -> list[ChildRow]:
    if not category or category == "all":
        return list(rows)
    return [row for row in rows if row.timeCategory == category]


def sort_rows(rows: Iterable[ChildRow], sort_by: Optional[str], direction: str = "asc") -> list[ChildRow]:
    """Sort by workshop date or slot start time; unparseable values sort last"""
    rows = list(rows)
    if not sort_by or sort_by == "none":
        return rows

    if sort_by == "date":

        def key(row: ChildRow):
            parsed = parse_workshop_date(row.workshopDate)
            return (parsed is None, parsed or date.min)

    elif sort_by == "time":

        def key(row: ChildRow):
            minutes = _workshop_start_minutes(row.workshopTime)
            return (minutes is None, minutes or 0)

    else:
        return rows

    known = [r for r in rows if not key(r)[0]]
    unknown = [r for r in rows if key(r)[0]]
    known.sort(key=key, reverse=direction == "desc")
    return known + unknown


def paginate(items: Sequence[T], page: int, page_size: int) -> tuple[list[T], int]:
    """Return the 1-based page of items and the total count"""
    total = len(items)
    start = max(page - 1, 0) * page_size
    return list(items[start : start + page_size]), total
