# studyhall/services/admissions.py
"""
Admin review of admission requests.

Approval turns a pending request into a Student with its seat/shift and
locker assignments, a membership-history (payment ledger) row and a login
account, all in one transaction. Only `pending` rows can be approved or
rejected; anything else is a conflict, so a double click never creates two
students.
"""
from __future__ import annotations

import logging
import math
from typing import Optional

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from studyhall.core.errors import AppError, ConflictError, InternalError, NotFoundError, ValidationError
from studyhall.core.security import hash_password
from studyhall.models import (
    AdmissionRequest, Branch, Locker, MembershipHistory, Seat, SeatAssignment, Shift,
    Student, StudentAccount, User,
)
from studyhall.models.admission import APPROVED, PENDING, REJECTED, STATUSES
from studyhall.services.audit import write_audit
from studyhall.utils.datetime import iso, utcnow
from studyhall.utils.money import to_float
from studyhall.utils.tenant import TenantScope

log = logging.getLogger("admissions")

MONEY_COLUMNS = ("total_fee", "amount_paid", "due_amount", "cash", "online", "security_money", "discount")
COPIED_FIELDS = (
    "name", "email", "phone", "address", "branch_id", "membership_start", "membership_end",
    *MONEY_COLUMNS,
    "remark", "profile_image_url", "registration_number", "father_name", "aadhar_number",
    "aadhaar_front_url", "aadhaar_back_url",
)


# ================= Serialisation =================
def request_to_dict(r: AdmissionRequest, **extra) -> dict:
    out = {
        "id": r.id,
        "library_id": r.library_id,
        "name": r.name,
        "email": r.email,
        "phone": r.phone,
        "address": r.address,
        "registration_number": r.registration_number,
        "father_name": r.father_name,
        "aadhar_number": r.aadhar_number,
        "branch_id": r.branch_id,
        "membership_start": iso(r.membership_start),
        "membership_end": iso(r.membership_end),
        "remark": r.remark,
        "profile_image_url": r.profile_image_url,
        "aadhaar_front_url": r.aadhaar_front_url,
        "aadhaar_back_url": r.aadhaar_back_url,
        "shift_ids": r.shift_id_list,
        "seat_id": r.seat_id,
        "locker_id": r.locker_id,
        "status": r.status,
        "created_at": iso(r.created_at),
        "updated_at": iso(r.updated_at),
        "processed_at": iso(r.processed_at),
        "processed_by": r.processed_by,
        "rejection_reason": r.rejection_reason,
    }
    for c in MONEY_COLUMNS:
        out[c] = to_float(getattr(r, c))
    out.update(extra)
    return out


def student_to_dict(s: Student) -> dict:
    out = {
        "id": s.id,
        "library_id": s.library_id,
        "name": s.name,
        "email": s.email,
        "phone": s.phone,
        "address": s.address,
        "registration_number": s.registration_number,
        "father_name": s.father_name,
        "aadhar_number": s.aadhar_number,
        "branch_id": s.branch_id,
        "membership_start": iso(s.membership_start),
        "membership_end": iso(s.membership_end),
        "remark": s.remark,
        "locker_id": s.locker_id,
        "is_active": bool(s.is_active),
        "created_at": iso(s.created_at),
    }
    for c in MONEY_COLUMNS:
        out[c] = to_float(getattr(s, c))
    return out


# ================= List / detail =================
def _joined_query(db: Session, scope: TenantScope):
    processor = aliased(User)
    return (
        scope.query(
            db, AdmissionRequest,
            Branch.name, Seat.seat_number, Locker.locker_number, processor.username,
        )
        .outerjoin(Branch, AdmissionRequest.branch_id == Branch.id)
        .outerjoin(Seat, AdmissionRequest.seat_id == Seat.id)
        .outerjoin(Locker, AdmissionRequest.locker_id == Locker.id)
        .outerjoin(processor, AdmissionRequest.processed_by == processor.id)
    )


def _row_with_names(row) -> dict:
    r, branch_name, seat_number, locker_number, processed_by_username = row
    return request_to_dict(
        r,
        branch_name=branch_name,
        seat_number=seat_number,
        locker_number=locker_number,
        processed_by_username=processed_by_username,
    )


def list_requests(
    db: Session,
    scope: TenantScope,
    *,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    st = (status or "all").strip().lower()
    if st != "all" and st not in STATUSES:
        raise ValidationError(f"Unknown status '{status}'. Use one of: all, {', '.join(STATUSES)}")

    q = _joined_query(db, scope)
    count_q = scope.query(db, AdmissionRequest)
    if st != "all":
        q = q.filter(AdmissionRequest.status == st)
        count_q = count_q.filter(AdmissionRequest.status == st)

    total = count_q.count()
    rows = (
        q.order_by(AdmissionRequest.created_at.desc(), AdmissionRequest.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "requests": [_row_with_names(r) for r in rows],
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total / limit) if limit else 0,
            "totalCount": total,
            "limit": limit,
        },
    }


def request_detail(db: Session, scope: TenantScope, request_id: int) -> dict:
    row = _joined_query(db, scope).filter(AdmissionRequest.id == request_id).first()
    if row is None:
        raise NotFoundError("Admission request not found")

    shift_ids = row[0].shift_id_list
    shifts = []
    if shift_ids:
        by_id = {s.id: s for s in scope.query(db, Shift).filter(Shift.id.in_(shift_ids)).all()}
        shifts = [
            {"id": s.id, "title": s.title, "description": s.description, "time": s.time}
            for s in (by_id.get(i) for i in shift_ids) if s is not None
        ]
    out = _row_with_names(row)
    out["shifts"] = shifts
    return out


def stats_summary(db: Session, scope: TenantScope) -> dict:
    stats = {s: 0 for s in STATUSES}
    stats["total"] = 0
    rows = (
        scope.query(db, AdmissionRequest)
        .with_entities(AdmissionRequest.status, func.count(AdmissionRequest.id))
        .group_by(AdmissionRequest.status)
        .all()
    )
    for st, n in rows:
        stats[st] = int(n)
        stats["total"] += int(n)
    return stats


# ================= Approve / reject =================
def _load_for_update(db: Session, scope: TenantScope, request_id: int) -> AdmissionRequest:
    r = (
        scope.query(db, AdmissionRequest)
        .filter(AdmissionRequest.id == request_id)
        .with_for_update()
        .first()
    )
    if r is None:
        raise NotFoundError("Admission request not found")
    if r.status != PENDING:
        raise ConflictError(f"Admission request is already {r.status}")
    return r


def _assign_seat(db: Session, scope: TenantScope, r: AdmissionRequest, student: Student) -> Optional[int]:
    """One SeatAssignment per requested shift; returns the first shift id."""
    shift_ids = r.shift_id_list
    if not (r.seat_id and shift_ids):
        return None
    if scope.get(db, Seat, r.seat_id) is None:
        raise ValidationError("Requested seat no longer exists")

    known = {s.id for s in scope.query(db, Shift).filter(Shift.id.in_(shift_ids)).all()}
    for shift_id in shift_ids:
        if shift_id not in known:
            raise ValidationError(f"Requested shift {shift_id} no longer exists")
        taken = (
            scope.query(db, SeatAssignment)
            .filter(SeatAssignment.seat_id == r.seat_id, SeatAssignment.shift_id == shift_id)
            .first()
        )
        if taken:
            raise ConflictError(f"Seat is already assigned for shift {shift_id}")
        db.add(SeatAssignment(
            library_id=scope.library_id, seat_id=r.seat_id, shift_id=shift_id, student_id=student.id,
        ))
    return shift_ids[0]


def _assign_locker(db: Session, scope: TenantScope, r: AdmissionRequest, student: Student) -> None:
    if not r.locker_id:
        return
    locker = scope.get(db, Locker, r.locker_id)
    if locker is None:
        raise ValidationError("Requested locker no longer exists")
    if locker.is_assigned:
        raise ConflictError("Requested locker is already assigned")
    locker.is_assigned = True
    locker.student_id = student.id
    student.locker_id = locker.id


def _audit_failure(db: Session, scope: TenantScope, action: str, request_id: int, reason: str, request) -> None:
    try:
        write_audit(
            db,
            action=action,
            library_id=scope.library_id,
            target_type="AdmissionRequest",
            target_id=request_id,
            status="FAILURE",
            new_values={"reason": reason},
            request=request,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.warning("could not write %s failure audit for request %s", action, request_id, exc_info=True)


def approve_request(
    db: Session,
    scope: TenantScope,
    request_id: int,
    *,
    user: Optional[User] = None,
    request: Optional[Request] = None,
) -> Student:
    try:
        r = _load_for_update(db, scope, request_id)

        if scope.query(db, Student).filter(Student.phone == r.phone).first():
            raise ConflictError("A student with this phone number already exists in the system")

        student = Student(library_id=scope.library_id, is_active=True, admission_request_id=r.id)
        for f in COPIED_FIELDS:
            setattr(student, f, getattr(r, f))
        db.add(student)
        db.flush()

        first_shift_id = _assign_seat(db, scope, r, student)
        _assign_locker(db, scope, r, student)

        db.add(MembershipHistory(
            student_id=student.id,
            library_id=scope.library_id,
            membership_start=student.membership_start,
            membership_end=student.membership_end,
            total_fee=student.total_fee,
            amount_paid=student.amount_paid,
            due_amount=student.due_amount,
            cash=student.cash,
            online=student.online,
            security_money=student.security_money,
            discount=student.discount,
            remark=student.remark,
            seat_id=r.seat_id,
            shift_id=first_shift_id,
            branch_id=student.branch_id,
            locker_id=student.locker_id,
            changed_at=utcnow(),
        ))

        account_exists = (
            scope.query(db, StudentAccount).filter(StudentAccount.phone == r.phone).first()
        )
        if not account_exists:
            # initial password is the phone number; changed on first login
            db.add(StudentAccount(
                library_id=scope.library_id,
                student_id=student.id,
                phone=r.phone,
                password_hash=hash_password(r.phone),
                must_change_password=True,
            ))

        r.mark_processed(APPROVED, utcnow(), user_id=getattr(user, "id", None))

        write_audit(
            db,
            action="APPROVE",
            library_id=scope.library_id,
            target_type="AdmissionRequest",
            target_id=r.id,
            prev_values={"status": PENDING},
            new_values={"status": APPROVED, "student_id": student.id},
            request=request,
        )
        db.commit()
    except AppError as e:
        db.rollback()
        _audit_failure(db, scope, "APPROVE", request_id, e.message, request)
        raise
    except IntegrityError:
        db.rollback()
        log.info("approve %s hit a unique constraint", request_id)
        raise ConflictError("Admission request could not be approved: phone, seat or locker already taken")
    except SQLAlchemyError:
        db.rollback()
        err = InternalError()
        log.exception("approve failed [ref=%s] request=%s", err.reference, request_id)
        raise err

    log.info("admission request %s approved -> student %s", request_id, student.id)
    return student


def reject_request(
    db: Session,
    scope: TenantScope,
    request_id: int,
    *,
    reason: Optional[str] = None,
    user: Optional[User] = None,
    request: Optional[Request] = None,
) -> AdmissionRequest:
    try:
        r = _load_for_update(db, scope, request_id)
        r.mark_processed(REJECTED, utcnow(), user_id=getattr(user, "id", None), reason=reason)
        write_audit(
            db,
            action="REJECT",
            library_id=scope.library_id,
            target_type="AdmissionRequest",
            target_id=r.id,
            prev_values={"status": PENDING},
            new_values={"status": REJECTED, "reason": reason},
            request=request,
        )
        db.commit()
    except AppError as e:
        db.rollback()
        _audit_failure(db, scope, "REJECT", request_id, e.message, request)
        raise
    except SQLAlchemyError:
        db.rollback()
        err = InternalError()
        log.exception("reject failed [ref=%s] request=%s", err.reference, request_id)
        raise err

    log.info("admission request %s rejected", request_id)
    return r
