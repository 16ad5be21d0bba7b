# scripts/ensure_demo.py
"""Create tables and seed the DEMO library with a branch, seats, shifts, lockers and staff."""
from studyhall.core.security import hash_password
from studyhall.db import session as db_session
from studyhall.models import Branch, Library, Locker, Seat, Shift, User

LIBRARY = ("DEMO", "Demo Study Hall", "Demo Owner")

SHIFTS = [
    ("Morning", "06:00 - 12:00"),
    ("Evening", "12:00 - 18:00"),
    ("Night", "18:00 - 23:00"),
]

USERS_TO_ENSURE = [
    ("owner", "owner123", "Owner", "Demo Owner", "owner@demo.local"),
    ("staff", "staff123", "Staff", "Front Desk", "staff@demo.local"),
]


def ensure_library(db):
    code, name, owner = LIBRARY
    lib = db.query(Library).filter(Library.library_code == code).first()
    if lib:
        return lib, f"EXISTS {code}"

    lib = Library(library_code=code, library_name=name, owner_name=owner, status="active")
    db.add(lib)
    db.flush()

    branch = Branch(library_id=lib.id, name="Main Branch")
    db.add(branch)
    db.flush()

    for n in range(1, 21):
        db.add(Seat(library_id=lib.id, branch_id=branch.id, seat_number=f"S{n:02d}"))
    for n in range(1, 11):
        db.add(Locker(library_id=lib.id, locker_number=f"L{n:02d}", is_assigned=False))
    for title, time in SHIFTS:
        db.add(Shift(library_id=lib.id, title=title, time=time))
    return lib, f"CREATED {code}"


def upsert_user(db, library_id, username, password, role, full_name, email):
    u = db.query(User).filter(User.username == username).first()
    if u:
        u.password_hash = hash_password(password)
        u.role = role
        u.library_id = library_id
        msg = f"UPDATED {username}"
    else:
        u = User(library_id=library_id, username=username, password_hash=hash_password(password),
                 role=role, full_name=full_name, email=email, is_active=True)
        db.add(u)
        msg = f"CREATED {username}"
    return msg


def main():
    db_session.init_db()
    print("DB =", db_session.engine.url.render_as_string(hide_password=True))
    db = db_session.SessionLocal()
    try:
        lib, msg = ensure_library(db)
        print(msg)
        for (u, p, r, f, e) in USERS_TO_ENSURE:
            print(upsert_user(db, lib.id, u, p, r, f, e))
        db.commit()
        users = db.query(User).filter(User.library_id == lib.id).all()
        print("Users in DEMO:", [(x.id, x.username, x.role, x.is_active) for x in users])
    finally:
        db.close()


if __name__ == "__main__":
    main()
