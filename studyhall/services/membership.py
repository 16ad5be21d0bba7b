# studyhall/services/membership.py
"""
Membership / financial status of a student, derived at read time.

Nothing here is persisted or cached: every view calls `derive_status` with
its own `today`, so the label always matches the current date. The payment
ledger (`student_membership_history`) is only read here, for the student's
own history view.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, TypedDict

from sqlalchemy.orm import Session

from studyhall.models import MembershipHistory
from studyhall.utils.money import coerce_amount
from studyhall.utils.datetime import iso, parse_iso_date
from studyhall.utils.tenant import TenantScope

ACTIVE = "active"
EXPIRED = "expired"


class MembershipStatus(TypedDict):
    membershipStatus: str
    hasDueAmount: bool
    dueAmount: float


def _field(student: Any, name: str):
    if isinstance(student, Mapping):
        return student.get(name)
    return getattr(student, name, None)


def _as_date(v) -> date | None:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    return parse_iso_date(v) if isinstance(v, str) else None


def derive_status(student: Any, today: date) -> MembershipStatus:
    """
    `student` is an ORM row or a plain mapping with `membership_end` and
    `due_amount`.

    Expired iff membership_end < today (date only; ending today is still
    active). A student without an end date is active.
    """
    end = _as_date(_field(student, "membership_end"))
    due = coerce_amount(_field(student, "due_amount"))
    return {
        "membershipStatus": EXPIRED if (end is not None and end < today) else ACTIVE,
        "hasDueAmount": due > 0,
        "dueAmount": due,
    }


def is_expired(student: Any, today: date) -> bool:
    return derive_status(student, today)["membershipStatus"] == EXPIRED


def _month_key(row) -> tuple:
    d = _as_date(row.membership_start) or _as_date(row.changed_at)
    if d is None:
        return ("", "Unknown")
    return (d.strftime("%Y-%m"), d.strftime("%B %Y"))


def history_to_dict(row) -> dict:
    return {
        "id": row.id,
        "membership_start": iso(row.membership_start),
        "membership_end": iso(row.membership_end),
        "total_fee": coerce_amount(row.total_fee),
        "amount_paid": coerce_amount(row.amount_paid),
        "due_amount": coerce_amount(row.due_amount),
        "cash": coerce_amount(row.cash),
        "online": coerce_amount(row.online),
        "discount": coerce_amount(row.discount),
        "remark": row.remark,
        "seat_id": row.seat_id,
        "shift_id": row.shift_id,
        "changed_at": iso(row.changed_at),
    }


def membership_history(db: Session, student) -> dict:
    """Ledger rows newest first, plus per-month totals keyed on membership start."""
    rows = (
        TenantScope(student.library_id)
        .query(db, MembershipHistory)
        .filter(MembershipHistory.student_id == student.id)
        .order_by(MembershipHistory.membership_start.desc(), MembershipHistory.id.desc())
        .all()
    )

    months: dict = {}
    for r in rows:
        key, label = _month_key(r)
        m = months.setdefault(key, {"month": label, "records": [], "totalFee": 0.0, "totalPaid": 0.0, "totalDue": 0.0})
        m["records"].append(r.id)
        m["totalFee"] += coerce_amount(r.total_fee)
        m["totalPaid"] += coerce_amount(r.amount_paid)
        m["totalDue"] += coerce_amount(r.due_amount)

    for m in months.values():
        for k in ("totalFee", "totalPaid", "totalDue"):
            m[k] = round(m[k], 2)

    return {
        "membershipHistory": [history_to_dict(r) for r in rows],
        "monthlySummary": list(months.values()),
        "totalRecords": len(rows),
    }
