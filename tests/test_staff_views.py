# tests/test_staff_views.py
from helpers import login_staff, login_student, qr_data, register

from studyhall.models import AuditLog
from studyhall.services.audit import verify_audit


def _admit(client, demo, phone, **fields):
    rid = register(client, demo["branch"].id, phone=phone, name=f"Student {phone[-1]}", **fields).json()["requestId"]
    r = client.post(f"/api/admission-requests/{rid}/approve")
    assert r.status_code == 200, r.text
    return r.json()["student"]["id"]


def test_health(client):
    assert client.get("/api/health").json()["ok"] is True
    assert client.get("/health").status_code == 200


def test_login_and_me(client, demo):
    bad = client.post("/api/login", data={"username": "owner", "password": "nope"})
    assert bad.status_code == 401

    login_staff(client)
    me = client.get("/api/me").json()
    assert me["username"] == "owner"
    assert me["library_id"] == demo["library"].id

    client.post("/api/logout")
    assert client.get("/api/me").status_code == 401


def test_students_dues_and_dashboard(client, demo):
    login_staff(client)
    _admit(client, demo, "9000000001", membership_end="2000-01-31", total_fee="1000", amount_paid="400")
    _admit(client, demo, "9000000002", membership_end="2099-01-31", total_fee="500", amount_paid="500")
    register(client, demo["branch"].id, phone="9000000003")

    everyone = client.get("/api/students").json()
    assert everyone["total"] == 2

    expired = client.get("/api/students", params={"status": "expired"}).json()["students"]
    assert [s["phone"] for s in expired] == ["9000000001"]
    assert expired[0]["membershipStatus"] == "expired"

    active = client.get("/api/students", params={"status": "active"}).json()["students"]
    assert [s["phone"] for s in active] == ["9000000002"]

    dues = client.get("/api/students/dues").json()
    assert dues["total"] == 1
    assert dues["totalDue"] == 600.0
    assert dues["students"][0]["dueAmount"] == 600.0

    dash = client.get("/api/dashboard").json()
    assert dash["totalStudents"] == 2
    assert dash["activeMemberships"] == 1
    assert dash["expiredMemberships"] == 1
    assert dash["studentsWithDues"] == 1
    assert dash["pendingAdmissions"] == 1
    assert dash["presentToday"] == 0

    assert client.get("/api/students", params={"status": "frozen"}).status_code == 400


def test_students_are_tenant_scoped(client, demo, other):
    login_staff(client)
    _admit(client, demo, "9000000001")
    client.post("/api/logout")

    login_staff(client, "other", "other123")
    assert client.get("/api/students").json()["total"] == 0
    assert client.get("/api/dashboard").json()["totalStudents"] == 0


def test_library_qr_code(client, demo):
    login_staff(client)
    payload = client.get("/api/library/qr-code").json()["payload"]
    assert payload == {
        "libraryId": demo["library"].id,
        "libraryCode": "DEMO",
        "libraryName": "Demo Study Hall",
        "type": "attendance",
    }

    png = client.get("/api/library/qr-code", params={"format": "png"})
    assert png.status_code == 200
    assert png.headers["content-type"] == "image/png"
    assert png.content[:8] == b"\x89PNG\r\n\x1a\n"


def test_journal_lists_signed_entries_for_admins_only(client, demo, db):
    register(client, demo["branch"].id)
    login_staff(client, "staff", "staff123")
    assert client.get("/api/journal").status_code == 403
    client.post("/api/logout")

    login_staff(client)
    r = client.get("/api/journal", params={"action": "register"})
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 1
    assert body["items"][0]["verified"] is True

    db.expire_all()
    row = db.query(AuditLog).filter_by(action="REGISTER").one()
    row.new_values = {"name": "tampered"}
    assert verify_audit(row) is False


def test_dashboard_counts_scans_today(client, demo):
    login_staff(client)
    _admit(client, demo, "9000000001", membership_end="2099-01-31")

    login_student(client, "9000000001")
    r = client.post("/api/student/attendance/qr", json={"qrData": qr_data(demo["library"].id)})
    assert r.status_code == 201

    login_staff(client)
    dash = client.get("/api/dashboard").json()
    assert dash["presentToday"] == 1
    assert dash["checkedInNow"] == 1
