# studyhall/services/registration.py
"""
Public (unauthenticated) registration intake.

Flow: resolve library by code -> check no pending request / student for the
phone -> insert one `pending` AdmissionRequest. The unique key on
(library_id, pending_phone) backs the duplicate check, so two concurrent
submissions cannot both end up pending.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studyhall.core.errors import AppError, ConflictError, InternalError, NotFoundError, ValidationError
from studyhall.models import AdmissionRequest, Branch, Library, Locker, Seat, Shift, Student
from studyhall.models.admission import PENDING, REJECTED
from studyhall.schemas.admission import RegistrationIn
from studyhall.services.audit import write_audit
from studyhall.services.libraries import find_library, normalize_code
from studyhall.utils.datetime import iso, utcnow
from studyhall.utils.money import to_float
from studyhall.utils.tenant import TenantScope

log = logging.getLogger("registration")

REQUIRED_FIELDS = ("name", "phone", "branch_id")

MSG_REQUIRED = "Required fields missing: Name, Phone, and Branch are required."
MSG_DUP_PENDING = "A registration request with this phone number is already pending for this library."
MSG_DUP_STUDENT = "A student with this phone number already exists in this library."
NOTE_PENDING = (
    "Your registration request has been sent to the library administration for review. "
    "You will be contacted once your request is processed."
)


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def first_error_message(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
    msg = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
    return f"{loc}: {msg}" if loc else msg


# ================= Form metadata =================
def registration_form(db: Session, library_code: str) -> dict:
    lib = find_library(db, library_code)
    scope = TenantScope(lib.id)

    branches = scope.query(db, Branch).order_by(Branch.name.asc()).all()
    seats = scope.query(db, Seat).order_by(Seat.seat_number.asc()).all()
    shifts = scope.query(db, Shift).order_by(Shift.time.asc(), Shift.id.asc()).all()
    lockers = (
        scope.query(db, Locker)
        .filter(Locker.is_assigned.is_(False))
        .order_by(Locker.locker_number.asc())
        .all()
    )

    return {
        "library": {
            "id": lib.id,
            "name": lib.library_name,
            "owner": lib.owner_name,
            "code": lib.library_code,
        },
        "branches": [{"id": b.id, "name": b.name} for b in branches],
        "seats": [{"id": s.id, "seat_number": s.seat_number} for s in seats],
        "shifts": [
            {"id": s.id, "title": s.title, "description": s.description, "time": s.time}
            for s in shifts
        ],
        "lockers": [{"id": l.id, "locker_number": l.locker_number} for l in lockers],
    }


# ================= Submit =================
def _check_references(db: Session, scope: TenantScope, form: RegistrationIn) -> None:
    """Branch / seat / locker / shifts must belong to the same library."""
    if scope.get(db, Branch, form.branch_id) is None:
        raise ValidationError("Unknown branch_id for this library")
    if form.seat_id is not None and scope.get(db, Seat, form.seat_id) is None:
        raise ValidationError("Unknown seat_id for this library")
    if form.locker_id is not None:
        locker = scope.get(db, Locker, form.locker_id)
        if locker is None:
            raise ValidationError("Unknown locker_id for this library")
        if locker.is_assigned:
            raise ConflictError("The selected locker is no longer available.")
    if form.shift_ids:
        found = {
            s.id for s in scope.query(db, Shift).filter(Shift.id.in_(set(form.shift_ids))).all()
        }
        unknown = [sid for sid in form.shift_ids if sid not in found]
        if unknown:
            raise ValidationError(f"Unknown shift_ids for this library: {unknown}")


def submit_registration(
    db: Session,
    library_code: str,
    payload: Any,
    request: Optional[Request] = None,
) -> AdmissionRequest:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    if any(_blank(payload.get(k)) for k in REQUIRED_FIELDS):
        raise ValidationError(MSG_REQUIRED)

    lib = find_library(db, library_code)
    scope = TenantScope(lib.id)

    try:
        form = RegistrationIn.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(first_error_message(e))

    try:
        pending = (
            scope.query(db, AdmissionRequest)
            .filter(AdmissionRequest.phone == form.phone, AdmissionRequest.status == PENDING)
            .first()
        )
        if pending:
            raise ConflictError(MSG_DUP_PENDING)

        if scope.query(db, Student).filter(Student.phone == form.phone).first():
            raise ConflictError(MSG_DUP_STUDENT)

        _check_references(db, scope, form)

        now = utcnow()
        row = AdmissionRequest(
            library_id=lib.id,
            name=form.name,
            email=form.email,
            phone=form.phone,
            address=form.address,
            branch_id=form.branch_id,
            membership_start=form.membership_start,
            membership_end=form.membership_end,
            total_fee=form.total_fee,
            amount_paid=form.amount_paid,
            due_amount=form.computed_due,
            cash=form.cash,
            online=form.online,
            security_money=form.security_money,
            discount=form.discount,
            remark=form.remark,
            profile_image_url=form.profile_image_url,
            registration_number=form.registration_number,
            father_name=form.father_name,
            aadhar_number=form.aadhar_number,
            locker_id=form.locker_id,
            aadhaar_front_url=form.aadhaar_front_url,
            aadhaar_back_url=form.aadhaar_back_url,
            shift_ids=json.dumps(form.shift_ids) if form.shift_ids else None,
            seat_id=form.seat_id,
            status=PENDING,
            pending_phone=form.phone,
            created_at=now,
            updated_at=now,
        )
        db.add(row)
        db.flush()

        write_audit(
            db,
            action="REGISTER",
            library_id=lib.id,
            target_type="AdmissionRequest",
            target_id=row.id,
            new_values={"name": row.name, "phone": row.phone, "due_amount": to_float(row.due_amount)},
            request=request,
        )
        db.commit()
    except ConflictError as e:
        db.rollback()
        _audit_rejected_submission(db, lib.id, form.phone, e.message, request)
        raise
    except AppError:
        db.rollback()
        raise
    except IntegrityError:
        # lost the race against a concurrent submission for the same phone
        db.rollback()
        log.info("duplicate pending registration blocked by constraint: library=%s phone=%s", lib.id, form.phone)
        raise ConflictError(MSG_DUP_PENDING)
    except SQLAlchemyError:
        db.rollback()
        err = InternalError()
        log.exception("registration failed [ref=%s] library=%s", err.reference, lib.id)
        raise err

    log.info("registration submitted: library=%s request=%s", lib.id, row.id)
    return row


def _audit_rejected_submission(db: Session, library_id: int, phone: str, reason: str, request) -> None:
    try:
        write_audit(
            db,
            action="REGISTER",
            library_id=library_id,
            target_type="AdmissionRequest",
            target_id=None,
            status="FAILURE",
            new_values={"phone": phone, "reason": reason},
            request=request,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        log.warning("could not write audit row for rejected registration", exc_info=True)


def submission_response(row: AdmissionRequest) -> dict:
    return {
        "message": "Registration request submitted successfully!",
        "requestId": row.id,
        "submittedAt": iso(row.created_at),
        "status": PENDING,
        "note": NOTE_PENDING,
    }


# ================= Status =================
def registration_status(db: Session, library_code: str, phone: str) -> dict:
    lib: Library = find_library(db, library_code)
    scope = TenantScope(lib.id)

    row = (
        scope.query(db, AdmissionRequest)
        .filter(AdmissionRequest.phone == (phone or "").strip())
        .order_by(AdmissionRequest.created_at.desc(), AdmissionRequest.id.desc())
        .first()
    )
    if row is None:
        raise NotFoundError("No registration request found for this phone number in this library.")

    return {
        "library": {"name": lib.library_name, "code": normalize_code(lib.library_code)},
        "request": {
            "id": row.id,
            "name": row.name,
            "status": row.status,
            "submittedAt": iso(row.created_at),
            "lastUpdated": iso(row.updated_at),
            "processedAt": iso(row.processed_at),
            "rejectionReason": row.rejection_reason if row.status == REJECTED else None,
        },
    }
