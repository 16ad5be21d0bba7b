# studyhall/services/attendance.py
"""
QR attendance: every scan toggles the student between checked-in and
checked-out for the library-local day.

Position in the day decides the direction: the 1st, 3rd, 5th... scan is a
check-in, the 2nd, 4th... a check-out. `first_in` of the day summary is set
once and never overwritten; `last_out` follows the latest check-out.
"""
from __future__ import annotations

import json
import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy import extract
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studyhall.core.errors import (
    AppError, ConflictError, InternalError, InvalidLibraryError, ValidationError,
)
from studyhall.models import AttendanceDay, AttendanceScan, Library, Student
from studyhall.services.membership import derive_status
from studyhall.utils.datetime import iso, local_day, utcnow
from studyhall.utils.tenant import TenantScope

log = logging.getLogger("attendance")

QR_TYPE = "attendance"


# ================= QR payload =================
def parse_qr_payload(qr_data: Any) -> dict:
    if qr_data in (None, ""):
        raise ValidationError("QR data is required")
    if isinstance(qr_data, dict):
        return qr_data
    try:
        parsed = json.loads(str(qr_data))
    except ValueError:
        raise ValidationError("Invalid QR code format")
    if not isinstance(parsed, dict):
        raise ValidationError("Invalid QR code format")
    return parsed


def verify_qr_for_student(payload: dict, student: Student) -> None:
    """Students can only mark attendance with their own library's code."""
    try:
        qr_library_id = int(payload.get("libraryId"))
    except (TypeError, ValueError):
        qr_library_id = None
    if payload.get("type") != QR_TYPE or qr_library_id != student.library_id:
        log.warning(
            "QR rejected: student=%s library=%s qr_library=%r type=%r",
            student.id, student.library_id, payload.get("libraryId"), payload.get("type"),
        )
        raise InvalidLibraryError("Invalid QR code for this library")


# ================= Scan =================
def record_scan(
    db: Session,
    student: Student,
    library: Library,
    *,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[AttendanceScan, AttendanceDay]:
    ts = now or utcnow()
    day = local_day(ts, library.timezone)
    scope = TenantScope(library.id)

    try:
        summary = (
            scope.query(db, AttendanceDay)
            .filter(AttendanceDay.student_id == student.id, AttendanceDay.scan_date == day)
            .with_for_update()
            .first()
        )
        if summary is None:
            summary = AttendanceDay(
                library_id=library.id, student_id=student.id, scan_date=day, scan_count=0,
            )
            db.add(summary)
            db.flush()

        prior = (
            scope.query(db, AttendanceScan)
            .filter(AttendanceScan.student_id == student.id, AttendanceScan.scan_date == day)
            .count()
        )
        scan = AttendanceScan(
            library_id=library.id,
            student_id=student.id,
            scanned_at=ts,
            scan_date=day,
            sequence=prior + 1,
            notes=(notes or "").strip() or None,
        )
        db.add(scan)

        summary.scan_count = scan.sequence
        if scan.action == "in":
            if summary.first_in is None:
                summary.first_in = ts
        else:
            summary.last_out = ts

        db.commit()
    except AppError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        log.info("concurrent scan for student=%s day=%s", student.id, day)
        raise ConflictError("Another scan for this student is being recorded, please scan again.")
    except SQLAlchemyError:
        db.rollback()
        err = InternalError()
        log.exception("scan failed [ref=%s] student=%s", err.reference, student.id)
        raise err

    log.info("scan %s: student=%s day=%s seq=%s", scan.action, student.id, day, scan.sequence)
    return scan, summary


def scan_to_dict(scan: AttendanceScan) -> dict:
    return {
        "id": scan.id,
        "action": scan.action,
        "timestamp": iso(scan.scanned_at),
        "date": iso(scan.scan_date),
        "sequence": scan.sequence,
        "notes": scan.notes,
    }


def day_to_dict(d: AttendanceDay) -> dict:
    return {
        "date": iso(d.scan_date),
        "firstIn": iso(d.first_in),
        "lastOut": iso(d.last_out),
        "scanCount": d.scan_count,
        "checkedIn": d.checked_in,
        "status": d.status,
        "duration": format_duration(d.first_in, d.last_out),
    }


# ================= Reading history =================
def _minutes(a: Optional[datetime], b: Optional[datetime]) -> Optional[int]:
    if not a or not b or b < a:
        return None
    return int((b - a).total_seconds() // 60)


def format_duration(first_in: Optional[datetime], last_out: Optional[datetime]) -> Optional[str]:
    """'3h 45m' / '45m' / '2h'; None while incomplete or inconsistent."""
    total = _minutes(first_in, last_out)
    if total is None:
        return None
    hours, minutes = divmod(total, 60)
    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


def _hhmmss(first_in: Optional[datetime], last_out: Optional[datetime]) -> Optional[str]:
    if not first_in or not last_out or last_out < first_in:
        return None
    secs = int((last_out - first_in).total_seconds())
    h, rem = divmod(secs, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def sessions(scans: Iterable[AttendanceScan]) -> List[dict]:
    """Pair check-ins with the following check-out; an open session has no checkOut."""
    out: List[dict] = []
    for scan in sorted(scans, key=lambda s: s.sequence):
        if scan.action == "in":
            out.append({"checkIn": iso(scan.scanned_at), "checkOut": None, "minutes": None, "_in": scan.scanned_at})
        elif out and out[-1]["checkOut"] is None:
            out[-1]["checkOut"] = iso(scan.scanned_at)
            out[-1]["minutes"] = _minutes(out[-1]["_in"], scan.scanned_at)
    for s in out:
        s.pop("_in", None)
    return out


def summarize_day(day: date, scans: List[AttendanceScan]) -> dict:
    ins = [s.scanned_at for s in scans if s.action == "in"]
    outs = [s.scanned_at for s in scans if s.action == "out"]
    first_in = min(ins) if ins else None
    last_out = max(outs) if outs else None
    return {
        "date": iso(day),
        "firstIn": iso(first_in),
        "lastOut": iso(last_out),
        "totalHours": _hhmmss(first_in, last_out),
        "scanCount": len(scans),
        "sessions": sessions(scans),
    }


def student_history(
    db: Session,
    student: Student,
    *,
    view: str = "daily",
    on: Optional[date] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> List[dict]:
    scope = TenantScope(student.library_id)
    q = scope.query(db, AttendanceScan).filter(AttendanceScan.student_id == student.id)
    if view == "daily":
        if on is None:
            raise ValidationError("date is required for the daily view")
        q = q.filter(AttendanceScan.scan_date == on)
    elif view == "monthly":
        if not month or not year or not 1 <= month <= 12:
            raise ValidationError("month (1-12) and year are required for the monthly view")
        q = q.filter(
            extract("month", AttendanceScan.scan_date) == month,
            extract("year", AttendanceScan.scan_date) == year,
        )
    else:
        raise ValidationError("view must be 'daily' or 'monthly'")

    by_day: dict = defaultdict(list)
    for scan in q.order_by(AttendanceScan.scan_date.desc(), AttendanceScan.sequence.asc()).all():
        by_day[scan.scan_date].append(scan)
    return [summarize_day(d, by_day[d]) for d in sorted(by_day, reverse=True)]


def today_summary(db: Session, student: Student, today: date) -> Optional[AttendanceDay]:
    return (
        TenantScope(student.library_id)
        .query(db, AttendanceDay)
        .filter(AttendanceDay.student_id == student.id, AttendanceDay.scan_date == today)
        .first()
    )


def library_day_report(db: Session, scope: TenantScope, day: date, today: date) -> List[dict]:
    """Staff attendance view for one day; each row carries the derived membership status."""
    rows = (
        scope.query(db, AttendanceDay, Student)
        .join(Student, AttendanceDay.student_id == Student.id)
        .filter(AttendanceDay.scan_date == day)
        .order_by(AttendanceDay.first_in.asc(), Student.name.asc())
        .all()
    )
    out = []
    for d, s in rows:
        item = {
            "studentId": s.id,
            "name": s.name,
            "phone": s.phone,
            "registrationNumber": s.registration_number,
            **day_to_dict(d),
        }
        item.update(derive_status(s, today))
        out.append(item)
    return out
