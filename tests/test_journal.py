# tests/test_journal.py
from helpers import login_staff, login_student, qr_data, register

from studyhall.models import AuditLog


def test_failed_review_and_foreign_qr_are_journaled(client, demo, other, db):
    rid = register(client, demo["branch"].id).json()["requestId"]
    login_staff(client)
    client.post(f"/api/admission-requests/{rid}/approve")
    assert client.post(f"/api/admission-requests/{rid}/reject").status_code == 400

    login_student(client, "9000000001")
    assert client.post(
        "/api/student/attendance/qr", json={"qrData": qr_data(other["library"].id)}
    ).status_code == 400

    db.expire_all()
    failures = {
        (a.action, a.actor_type)
        for a in db.query(AuditLog).filter(AuditLog.status == "FAILURE").all()
    }
    assert ("REJECT", "staff") in failures
    assert ("SCAN", "student") in failures

    login_staff(client)
    body = client.get("/api/journal", params={"action": "scan"}).json()
    assert body["total"] == 1
    assert body["items"][0]["status"] == "FAILURE"


def test_journal_is_tenant_scoped(client, demo, other):
    register(client, demo["branch"].id)
    login_staff(client, "other", "other123")
    assert client.get("/api/journal").json()["total"] == 0
