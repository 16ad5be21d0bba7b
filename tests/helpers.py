# tests/helpers.py
import json


def login_staff(client, username="owner", password="owner123"):
    r = client.post("/api/login", data={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return r


def login_student(client, phone, code="DEMO", password=None):
    r = client.post(
        "/api/student/login",
        json={"libraryCode": code, "phone": phone, "password": password or phone},
    )
    assert r.status_code == 200, r.text
    return r


def register(client, branch_id, code="DEMO", **fields):
    body = {"name": "Asha Rao", "phone": "9000000001", "branch_id": branch_id}
    body.update(fields)
    return client.post(f"/api/public-registration/library/{code}/register", json=body)


def qr_data(library_id, kind="attendance"):
    return json.dumps({"libraryId": library_id, "libraryCode": "DEMO", "type": kind})
