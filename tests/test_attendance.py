import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from workshop_crm.domain.attendance.repository import AttendanceRepository, match_key
from workshop_crm.domain.attendance.schemas import AttendanceRecordCreate
from workshop_crm.domain.attendance.service import AttendanceService
from workshop_crm.models import Attendance


def record(**fields):
    data = {"childName": "Asha", "attendanceStatus": "present"}
    data.update(fields)
    return AttendanceRecordCreate(**data)


def test_match_key_prefers_transaction_id():
    assert match_key(record(transactionId="tx-1", bookingId="b1")) == "tx:tx-1:Asha"
    assert match_key(record(bookingId="b1", workshopId="w1", workshopDate="2024-01-10")) == (
        "bk:b1:Asha:w1:2024-01-10"
    )


def test_record_requires_an_identifier():
    with pytest.raises(ValueError):
        record(transactionId="  ", bookingId="")


def test_upsert_is_idempotent(db):
    service = AttendanceService(db)

    first = service.upsert_attendance(record(transactionId="tx-1"))
    second = service.upsert_attendance(record(transactionId="tx-1", attendanceStatus="absent", comments="late"))

    assert first.operation == "insert"
    assert second.operation == "update"
    assert second.matchedOn == "transactionId"
    rows = db.query(Attendance).all()
    assert len(rows) == 1
    assert rows[0].attendance_status == "absent"
    assert rows[0].comments == "late"


def test_bulk_upsert_counts_inserts_and_updates(db):
    service = AttendanceService(db)
    service.upsert_attendance(record(transactionId="tx-1", childName="Asha"))
    service.upsert_attendance(record(transactionId="tx-1", childName="Ravi"))

    response = service.bulk_upsert_attendance(
        [
            record(transactionId="tx-1", childName="Asha"),
            record(transactionId="tx-1", childName="Ravi"),
            record(transactionId="tx-2", childName="Meera"),
            record(bookingId="b3", childName="Kiran"),
            record(bookingId="b4", childName="Dev"),
        ]
    )

    assert response.result.model_dump() == {"inserted": 3, "updated": 2, "total": 5, "failed": 0}
    assert response.warning is None
    assert db.query(Attendance).count() == 5


def test_bulk_upsert_rejects_empty_batch(db):
    with pytest.raises(HTTPException) as exc:
        AttendanceService(db).bulk_upsert_attendance([])
    assert exc.value.status_code == 400


def test_bulk_upsert_times_out(db):
    service = AttendanceService(db, bulk_timeout=-1)

    with pytest.raises(HTTPException) as exc:
        service.bulk_upsert_attendance([record(transactionId="tx-1")])
    assert exc.value.status_code == 503


def test_fetch_attendance_requires_identifiers(db):
    with pytest.raises(HTTPException) as exc:
        AttendanceService(db).fetch_attendance([], None)
    assert exc.value.status_code == 400


def test_attendance_endpoints(client, staff_headers):
    payload = {"transactionId": "tx-9", "bookingId": "b9", "childName": "Asha", "attendanceStatus": "present"}

    created = client.post("/attendance", json=payload, headers=staff_headers)
    updated = client.post("/attendance", json={**payload, "attendanceStatus": "absent"}, headers=staff_headers)

    assert created.status_code == 200
    assert created.json()["operation"] == "insert"
    assert updated.json()["operation"] == "update"

    fetched = client.get("/fetch-attendance", params={"transactionId": "tx-9"}, headers=staff_headers)
    assert fetched.status_code == 200
    records = fetched.json()["attendanceRecords"]
    assert len(records) == 1
    assert records[0]["attendanceStatus"] == "absent"

    assert client.get("/fetch-attendance", headers=staff_headers).status_code == 400


def test_attendance_validation_errors_are_400(client, staff_headers):
    response = client.post("/attendance", json={"childName": "Asha"}, headers=staff_headers)

    assert response.status_code == 400


class FlakyAttendanceRepository(AttendanceRepository):
    """Fails every write for the child named "Broken" """

    @classmethod
    def upsert(cls, db, record, now):
        if record.childName == "Broken":
            raise OperationalError("INSERT INTO attendance", {}, Exception("disk I/O error"))
        return super().upsert(db, record, now)


def test_bulk_upsert_reports_partial_failure(db):
    service = AttendanceService(db)
    service.repo = FlakyAttendanceRepository()

    response = service.bulk_upsert_attendance(
        [
            record(transactionId="tx-1", childName="Asha"),
            record(transactionId="tx-1", childName="Broken"),
            record(bookingId="b2", childName="Ravi"),
        ]
    )

    assert response.success is True
    assert response.result.model_dump() == {"inserted": 2, "updated": 0, "total": 3, "failed": 1}
    assert response.warning
    assert [e["index"] for e in response.errors] == [1]
    assert sorted(r.child_name for r in db.query(Attendance).all()) == ["Asha", "Ravi"]


def test_bulk_upsert_all_failed_is_503(db):
    service = AttendanceService(db)
    service.repo = FlakyAttendanceRepository()

    with pytest.raises(HTTPException) as exc:
        service.bulk_upsert_attendance([record(transactionId="tx-1", childName="Broken")])
    assert exc.value.status_code == 503
    assert db.query(Attendance).count() == 0


def test_bulk_attendance_endpoint(client, staff_headers):
    client.post(
        "/attendance",
        json={"transactionId": "tx-1", "childName": "Asha", "attendanceStatus": "present"},
        headers=staff_headers,
    )

    response = client.post(
        "/bulk-attendance",
        json={
            "attendanceRecords": [
                {"transactionId": "tx-1", "childName": "Asha", "attendanceStatus": "absent"},
                {"bookingId": "b2", "childName": "Ravi", "attendanceStatus": "present"},
            ]
        },
        headers=staff_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["result"] == {"inserted": 1, "updated": 1, "total": 2, "failed": 0}
    assert body["warning"] is None

    empty = client.post("/bulk-attendance", json={"attendanceRecords": []}, headers=staff_headers)
    assert empty.status_code == 400
    assert client.post("/bulk-attendance", json={"attendanceRecords": []}).status_code == 401
