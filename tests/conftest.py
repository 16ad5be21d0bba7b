# tests/conftest.py
import os

# must be set before studyhall.core.config is imported
os.environ["DB_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SESSION_SECRET"] = "test-secret"
os.environ["DEFAULT_TIMEZONE"] = "UTC"

import pytest
from fastapi.testclient import TestClient

from studyhall.core.security import hash_password
from studyhall.db import session as db_session
from studyhall.main import app
from studyhall.models import Base, Branch, Library, Locker, Seat, Shift, User


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=db_session.engine)
    Base.metadata.create_all(bind=db_session.engine)
    s = db_session.SessionLocal()
    try:
        yield s
    finally:
        s.close()


def _seed_library(db, code, name):
    lib = Library(library_code=code, library_name=name, owner_name=f"{name} Owner", status="active", timezone="UTC")
    db.add(lib)
    db.flush()
    branch = Branch(library_id=lib.id, name="Main Branch")
    db.add(branch)
    db.flush()
    seats = [Seat(library_id=lib.id, branch_id=branch.id, seat_number=f"S{n}") for n in (1, 2)]
    shifts = [
        Shift(library_id=lib.id, title="Morning", time="06:00 - 12:00"),
        Shift(library_id=lib.id, title="Evening", time="12:00 - 18:00"),
    ]
    lockers = [Locker(library_id=lib.id, locker_number=f"L{n}", is_assigned=False) for n in (1, 2)]
    db.add_all(seats + shifts + lockers)
    db.flush()
    return {
        "library": lib,
        "branch": branch,
        "seats": seats,
        "shifts": shifts,
        "lockers": lockers,
    }


@pytest.fixture()
def demo(db):
    data = _seed_library(db, "DEMO", "Demo Study Hall")
    owner = User(
        library_id=data["library"].id, username="owner", password_hash=hash_password("owner123"),
        role="Owner", full_name="Demo Owner", is_active=True,
    )
    staff = User(
        library_id=data["library"].id, username="staff", password_hash=hash_password("staff123"),
        role="Staff", full_name="Front Desk", is_active=True,
    )
    db.add_all([owner, staff])
    db.commit()
    data["owner"] = owner
    data["staff"] = staff
    return data


@pytest.fixture()
def other(db, demo):
    data = _seed_library(db, "OTHER", "Other Hall")
    user = User(
        library_id=data["library"].id, username="other", password_hash=hash_password("other123"),
        role="Owner", full_name="Other Owner", is_active=True,
    )
    db.add(user)
    db.commit()
    data["owner"] = user
    return data


@pytest.fixture()
def client(db):
    with TestClient(app) as c:
        yield c


