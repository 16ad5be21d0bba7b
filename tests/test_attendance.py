# tests/test_attendance.py
from datetime import date, datetime, timedelta

import pytest
from helpers import login_staff, login_student, qr_data, register

from studyhall.core.errors import ConflictError, InvalidLibraryError, ValidationError
from studyhall.models import AttendanceDay, AttendanceScan, Library, Student
from studyhall.services import attendance as attendance_svc


@pytest.fixture()
def student(client, demo, db):
    rid = register(
        client, demo["branch"].id, membership_start="2026-01-01", membership_end="2099-12-31",
        total_fee="1000", amount_paid="1000",
    ).json()["requestId"]
    login_staff(client)
    sid = client.post(f"/api/admission-requests/{rid}/approve").json()["student"]["id"]
    client.post("/api/logout")
    db.expire_all()
    return db.get(Student, sid)


def test_scan_requires_student_login(client, demo):
    r = client.post("/api/student/attendance/qr", json={"qrData": qr_data(demo["library"].id)})
    assert r.status_code == 401


def test_student_login_with_phone_as_initial_password(client, student):
    r = login_student(client, "9000000001", code="demo")
    body = r.json()
    assert body["mustChangePassword"] is True
    assert body["student"]["library"]["code"] == "DEMO"

    bad = client.post(
        "/api/student/login",
        json={"libraryCode": "DEMO", "phone": "9000000001", "password": "wrong"},
    )
    assert bad.status_code == 401
    assert bad.json() == {"message": "Invalid credentials", "error": "unauthorized"}


def test_scans_alternate_in_and_out(client, demo, student):
    login_student(client, "9000000001")
    payload = {"qrData": qr_data(demo["library"].id)}

    first = client.post("/api/student/attendance/qr", json=payload)
    assert first.status_code == 201, first.text
    assert first.json()["message"] == "Checked In successfully."
    assert first.json()["attendance"]["action"] == "in"
    assert first.json()["day"]["checkedIn"] is True
    assert first.json()["membership"]["membershipStatus"] == "active"

    second = client.post("/api/student/attendance/qr", json=payload)
    assert second.json()["message"] == "Checked Out successfully."
    assert second.json()["day"]["status"] == "Completed"

    today = client.get("/api/student/attendance/today").json()
    assert today["hasMarkedToday"] is True
    assert today["checkedIn"] is False
    assert today["today"]["scanCount"] == 2


def test_qr_for_another_library_is_rejected(client, demo, other, student):
    login_student(client, "9000000001")
    r = client.post("/api/student/attendance/qr", json={"qrData": qr_data(other["library"].id)})
    assert r.status_code == 400
    assert r.json() == {"message": "Invalid QR code for this library", "error": "invalid_library"}

    r = client.post("/api/student/attendance/qr", json={"qrData": "not json"})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid QR code format"

    r = client.post("/api/student/attendance/qr", json={"qrData": qr_data(demo["library"].id, kind="menu")})
    assert r.status_code == 400


def test_third_scan_starts_new_session_and_keeps_first_in(db, demo, student):
    lib = db.get(Library, demo["library"].id)
    t0 = datetime(2026, 3, 2, 8, 0, 0)

    _, day = attendance_svc.record_scan(db, student, lib, now=t0)
    _, day = attendance_svc.record_scan(db, student, lib, now=t0 + timedelta(hours=3))
    scan, day = attendance_svc.record_scan(db, student, lib, now=t0 + timedelta(hours=4))

    assert scan.sequence == 3
    assert scan.action == "in"
    assert day.first_in == t0
    assert day.last_out == t0 + timedelta(hours=3)
    assert day.checked_in is True
    assert day.status == "Present"

    _, day = attendance_svc.record_scan(db, student, lib, now=t0 + timedelta(hours=6, minutes=30))
    assert day.first_in == t0
    assert day.last_out == t0 + timedelta(hours=6, minutes=30)
    assert attendance_svc.day_to_dict(day)["duration"] == "6h 30m"

    scans = db.query(AttendanceScan).filter_by(student_id=student.id).all()
    summary = attendance_svc.summarize_day(date(2026, 3, 2), scans)
    assert summary["totalHours"] == "06:30:00"
    assert [s["minutes"] for s in summary["sessions"]] == [180, 150]


def test_days_follow_library_timezone(db, demo, student):
    lib = db.get(Library, demo["library"].id)
    lib.timezone = "Asia/Kolkata"
    db.commit()

    # 20:00 UTC is already the next day in India
    scan, _ = attendance_svc.record_scan(db, student, lib, now=datetime(2026, 3, 2, 20, 0))
    assert scan.scan_date == date(2026, 3, 3)


def test_history_views(client, demo, db, student):
    lib = db.get(Library, demo["library"].id)
    attendance_svc.record_scan(db, student, lib, now=datetime(2026, 3, 2, 8, 0))
    attendance_svc.record_scan(db, student, lib, now=datetime(2026, 3, 2, 10, 15))
    attendance_svc.record_scan(db, student, lib, now=datetime(2026, 3, 5, 9, 0))

    login_student(client, "9000000001")
    daily = client.get("/api/student/attendance", params={"view": "daily", "date": "2026-03-02"}).json()
    assert len(daily["attendance"]) == 1
    assert daily["attendance"][0]["totalHours"] == "02:15:00"

    monthly = client.get("/api/student/attendance", params={"view": "monthly", "month": 3, "year": 2026}).json()
    assert [d["date"] for d in monthly["attendance"]] == ["2026-03-05", "2026-03-02"]
    assert monthly["attendance"][0]["sessions"] == [
        {"checkIn": "2026-03-05T09:00:00", "checkOut": None, "minutes": None},
    ]

    assert client.get("/api/student/attendance", params={"view": "weekly"}).status_code == 400


def test_staff_day_report_carries_membership(client, demo, db, student):
    lib = db.get(Library, demo["library"].id)
    attendance_svc.record_scan(db, student, lib, now=datetime(2026, 3, 2, 8, 0))

    login_staff(client, "staff", "staff123")
    r = client.get("/api/attendance", params={"date": "2026-03-02"})
    assert r.status_code == 200
    rows = r.json()["records"]
    assert len(rows) == 1
    assert rows[0]["name"] == "Asha Rao"
    assert rows[0]["status"] == "Present"
    assert rows[0]["membershipStatus"] == "active"
    assert rows[0]["hasDueAmount"] is False

    assert client.get("/api/attendance", params={"date": "02/03/2026"}).status_code == 400


def test_parse_qr_payload():
    assert attendance_svc.parse_qr_payload('{"type": "attendance", "libraryId": 1}')["libraryId"] == 1
    with pytest.raises(ValidationError):
        attendance_svc.parse_qr_payload("")
    with pytest.raises(ValidationError):
        attendance_svc.parse_qr_payload("[1, 2]")


def test_verify_qr_accepts_string_library_id(db, demo, student):
    attendance_svc.verify_qr_for_student({"type": "attendance", "libraryId": str(demo["library"].id)}, student)
    with pytest.raises(InvalidLibraryError):
        attendance_svc.verify_qr_for_student({"type": "attendance"}, student)


def test_colliding_scan_position_is_conflict(db, demo, other, student):
    lib = db.get(Library, demo["library"].id)
    t0 = datetime(2026, 3, 2, 8, 0)
    # a scan filed under another tenant is not counted but still owns sequence 1
    db.add(AttendanceScan(
        library_id=other["library"].id, student_id=student.id,
        scanned_at=t0, scan_date=date(2026, 3, 2), sequence=1,
    ))
    db.commit()

    with pytest.raises(ConflictError):
        attendance_svc.record_scan(db, student, lib, now=t0 + timedelta(minutes=5))

    assert db.query(AttendanceDay).filter_by(student_id=student.id).count() == 0
    assert db.query(AttendanceScan).filter_by(student_id=student.id).count() == 1
