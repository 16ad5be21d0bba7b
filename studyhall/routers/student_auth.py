# studyhall/routers/student_auth.py
"""Student login, own account and profile, plus the student-facing attendance endpoints."""
import time
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from starlette.status import HTTP_401_UNAUTHORIZED

from studyhall.core.config import settings
from studyhall.core.errors import AuthError, InvalidLibraryError, ValidationError
from studyhall.core.security import hash_password, verify_password
from studyhall.db.session import get_db
from studyhall.models import Library, Student, StudentAccount
from studyhall.services import attendance as attendance_svc
from studyhall.services.audit import write_audit
from studyhall.services.libraries import normalize_code
from studyhall.services.admissions import student_to_dict
from studyhall.services.membership import derive_status, membership_history
from studyhall.utils.datetime import library_today, parse_iso_date, utcnow
from studyhall.utils.tenant import TenantScope

log = logging.getLogger("auth")

router = APIRouter(prefix="/student", tags=["Student"])


def require_student(request: Request, db: Session = Depends(get_db)) -> Student:
    sess = request.session
    now = int(time.time())
    last = int(sess.get("_last_seen") or 0)
    sid = sess.get("student_id")
    if not sid or (last and now - last > settings.IDLE_TIMEOUT_SEC):
        sess.pop("student_id", None)
        raise HTTPException(HTTP_401_UNAUTHORIZED, "Student login required")
    sess["_last_seen"] = now

    student = db.get(Student, sid)
    if student is None or not student.is_active:
        sess.clear()
        raise HTTPException(HTTP_401_UNAUTHORIZED, "Student account is inactive. Please contact your library.")
    return student


def _library_of(db: Session, student: Student) -> Library:
    return db.get(Library, student.library_id)


# ================= Login =================
@router.post("/login")
def student_login(
    request: Request,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
):
    code = normalize_code(payload.get("libraryCode"))
    phone = str(payload.get("phone") or "").strip()
    password = str(payload.get("password") or "")
    if not code or not phone or not password:
        raise ValidationError("Library code, phone number, and password are required")

    library = db.query(Library).filter(Library.library_code == code).first()
    if library is None:
        raise AuthError("Invalid library code")
    if library.status != "active":
        raise AuthError("Library is currently inactive. Please contact your library.")

    account = (
        db.query(StudentAccount)
        .filter(StudentAccount.library_id == library.id, StudentAccount.phone == phone)
        .first()
    )
    if account is None:
        raise AuthError("Student account not found. Please contact your library.")
    if account.status != "active":
        raise AuthError("Student account is inactive. Please contact your library.")
    if not verify_password(password, account.password_hash):
        log.info("student login failed: library=%s phone=%s", library.id, phone)
        raise AuthError("Invalid credentials")

    student = db.get(Student, account.student_id)
    account.last_login_at = utcnow()
    db.commit()

    request.session.clear()
    request.session["student_id"] = student.id
    request.session["student_name"] = student.name
    request.session["library_id"] = library.id
    request.session["_last_seen"] = int(time.time())

    return {
        "ok": True,
        "mustChangePassword": bool(account.must_change_password),
        "student": {
            "id": student.id,
            "name": student.name,
            "phone": student.phone,
            "registrationNumber": student.registration_number,
            "library": {"id": library.id, "name": library.library_name, "code": library.library_code},
        },
    }


@router.post("/logout")
def student_logout(request: Request):
    request.session.clear()
    return {"ok": True}


@router.get("/status")
def student_status(request: Request):
    sess = request.session
    if not sess.get("student_id"):
        return {"isAuthenticated": False, "student": None}
    return {
        "isAuthenticated": True,
        "student": {
            "id": sess.get("student_id"),
            "name": sess.get("student_name"),
            "libraryId": sess.get("library_id"),
        },
    }


# ================= Own account =================
MIN_PASSWORD_LEN = 6

@router.post("/change-password")
def student_change_password(
    request: Request,
    payload: dict = Body(...),
    student: Student = Depends(require_student),
    db: Session = Depends(get_db),
):
    old = str(payload.get("oldPassword") or "")
    new = str(payload.get("newPassword") or "")
    confirm = str(payload.get("confirmPassword") or "")

    if len(new) < MIN_PASSWORD_LEN:
        raise ValidationError(f"New password must be at least {MIN_PASSWORD_LEN} characters")
    if new != confirm:
        raise ValidationError("Password confirmation does not match")

    account = (
        TenantScope(student.library_id)
        .query(db, StudentAccount)
        .filter(StudentAccount.student_id == student.id)
        .first()
    )
    if account is None:
        raise AuthError("Student account not found. Please contact your library.")
    if not verify_password(old, account.password_hash):
        raise AuthError("Current password is incorrect")
    if verify_password(new, account.password_hash):
        raise ValidationError("New password must differ from the current one")

    account.password_hash = hash_password(new)
    account.must_change_password = False
    account.password_changed_at = utcnow()
    write_audit(
        db,
        action="CHANGE_PASSWORD",
        library_id=student.library_id,
        target_type="StudentAccount",
        target_id=account.id,
        request=request,
    )
    db.commit()
    return {"ok": True, "message": "Password changed successfully"}


@router.get("/profile")
def student_profile(
    student: Student = Depends(require_student),
    db: Session = Depends(get_db),
):
    library = _library_of(db, student)
    return {
        "student": {
            **student_to_dict(student),
            **derive_status(student, library_today(library.timezone)),
            "library": {"id": library.id, "name": library.library_name, "code": library.library_code},
        }
    }


@router.get("/membership-history")
def my_membership_history(
    student: Student = Depends(require_student),
    db: Session = Depends(get_db),
):
    return membership_history(db, student)


# ================= Attendance =================
@router.post("/attendance/qr", status_code=201)
def scan_qr(
    request: Request,
    payload: dict = Body(...),
    student: Student = Depends(require_student),
    db: Session = Depends(get_db),
):
    qr = attendance_svc.parse_qr_payload(payload.get("qrData"))
    try:
        attendance_svc.verify_qr_for_student(qr, student)
    except InvalidLibraryError:
        write_audit(
            db,
            action="SCAN",
            library_id=student.library_id,
            target_type="Student",
            target_id=student.id,
            status="FAILURE",
            new_values={"qrLibraryId": qr.get("libraryId"), "type": qr.get("type")},
            request=request,
        )
        db.commit()
        raise

    library = _library_of(db, student)
    scan, day = attendance_svc.record_scan(db, student, library, notes=payload.get("notes"))
    friendly = "Checked In" if scan.action == "in" else "Checked Out"
    return {
        "message": f"{friendly} successfully.",
        "attendance": attendance_svc.scan_to_dict(scan),
        "day": attendance_svc.day_to_dict(day),
        "membership": derive_status(student, library_today(library.timezone)),
    }


@router.get("/attendance")
def my_attendance(
    view: str = Query("daily"),
    date_q: Optional[str] = Query(None, alias="date"),
    month: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    student: Student = Depends(require_student),
    db: Session = Depends(get_db),
):
    library = _library_of(db, student)
    today = library_today(library.timezone)
    on = parse_iso_date(date_q) if date_q else today
    if date_q and on is None:
        raise ValidationError("date must be YYYY-MM-DD")
    rows = attendance_svc.student_history(
        db, student, view=view, on=on,
        month=month or today.month, year=year or today.year,
    )
    return {"attendance": rows}


@router.get("/attendance/today")
def my_attendance_today(
    student: Student = Depends(require_student),
    db: Session = Depends(get_db),
):
    library = _library_of(db, student)
    today = library_today(library.timezone)
    day = attendance_svc.today_summary(db, student, today)
    return {
        "date": today.isoformat(),
        "hasMarkedToday": day is not None,
        "checkedIn": bool(day and day.checked_in),
        "today": attendance_svc.day_to_dict(day) if day else None,
    }
