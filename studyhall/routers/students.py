# studyhall/routers/students.py
"""Staff views that annotate students with their derived membership status."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from studyhall.core.errors import ValidationError
from studyhall.db.session import get_db
from studyhall.models import AdmissionRequest, AttendanceDay, Library, Student
from studyhall.models.admission import PENDING
from studyhall.routers.auth import get_scope
from studyhall.services import attendance as attendance_svc
from studyhall.services import qr as qr_svc
from studyhall.services.admissions import student_to_dict
from studyhall.services.membership import ACTIVE, EXPIRED, derive_status
from studyhall.utils.datetime import library_today, parse_iso_date
from studyhall.utils.tenant import TenantScope

router = APIRouter(tags=["Students"])


def _today(db: Session, scope: TenantScope) -> date:
    lib = db.get(Library, scope.library_id)
    return library_today(lib.timezone if lib else None)


def _annotated(students, today: date):
    for s in students:
        yield {**student_to_dict(s), **derive_status(s, today)}


# ================= Student lists =================
@router.get("/students")
def list_students(
    status: Optional[str] = Query("all", description="active / expired / all"),
    q: Optional[str] = Query(None),
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    st = (status or "all").lower()
    if st not in ("all", ACTIVE, EXPIRED):
        raise ValidationError("status must be one of: all, active, expired")

    query = scope.query(db, Student).filter(Student.is_active.is_(True))
    if q and q.strip():
        like = f"%{q.strip()}%"
        query = query.filter(
            Student.name.ilike(like) | Student.phone.ilike(like) | Student.registration_number.ilike(like)
        )
    today = _today(db, scope)
    rows = list(_annotated(query.order_by(Student.name.asc()).all(), today))
    if st != "all":
        rows = [r for r in rows if r["membershipStatus"] == st]
    return {"students": rows, "total": len(rows)}


@router.get("/students/dues")
def collection_due(
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    today = _today(db, scope)
    students = scope.query(db, Student).filter(Student.is_active.is_(True)).order_by(Student.name.asc()).all()
    rows = [r for r in _annotated(students, today) if r["hasDueAmount"]]
    return {
        "students": rows,
        "total": len(rows),
        "totalDue": round(sum(r["dueAmount"] for r in rows), 2),
    }


# ================= Dashboard =================
@router.get("/dashboard")
def dashboard(
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    today = _today(db, scope)
    students = scope.query(db, Student).filter(Student.is_active.is_(True)).all()
    statuses = [derive_status(s, today) for s in students]

    pending = (
        scope.query(db, AdmissionRequest).filter(AdmissionRequest.status == PENDING).count()
    )
    days = scope.query(db, AttendanceDay).filter(AttendanceDay.scan_date == today).all()

    return {
        "date": today.isoformat(),
        "totalStudents": len(students),
        "activeMemberships": sum(1 for s in statuses if s["membershipStatus"] == ACTIVE),
        "expiredMemberships": sum(1 for s in statuses if s["membershipStatus"] == EXPIRED),
        "studentsWithDues": sum(1 for s in statuses if s["hasDueAmount"]),
        "totalDue": round(sum(s["dueAmount"] for s in statuses if s["hasDueAmount"]), 2),
        "pendingAdmissions": pending,
        "presentToday": len(days),
        "checkedInNow": sum(1 for d in days if d.checked_in),
    }


# ================= Attendance (staff) =================
@router.get("/attendance")
def attendance_report(
    date_q: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD, default today"),
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    today = _today(db, scope)
    day = parse_iso_date(date_q) if date_q else today
    if day is None:
        raise ValidationError("date must be YYYY-MM-DD")
    records = attendance_svc.library_day_report(db, scope, day, today)
    return {"date": day.isoformat(), "records": records, "total": len(records)}


@router.get("/library/qr-code")
def library_qr_code(
    format: str = Query("json", pattern="^(json|png)$"),
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    lib = db.get(Library, scope.library_id)
    payload = qr_svc.attendance_payload(lib)
    if format == "png":
        return Response(content=qr_svc.render_png(payload), media_type="image/png")
    return {"payload": payload}
