# studyhall/routers/journal.py
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from studyhall.db.session import get_db
from studyhall.models import AuditLog
from studyhall.routers.auth import require_admin
from studyhall.services.audit import verify_audit
from studyhall.utils.datetime import parse_iso_date
from studyhall.utils.tenant import TenantScope

router = APIRouter(prefix="/journal", tags=["Journal"])


@router.get("")
@router.get("/")
def list_logs(
    db: Session = Depends(get_db),
    me=Depends(require_admin),
    action: Optional[str] = Query(None),
    target_id: Optional[str] = Query(None),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
):
    qset = TenantScope(me.library_id).query(db, AuditLog)

    if action:
        qset = qset.filter(AuditLog.action == action.upper())
    if target_id:
        qset = qset.filter(AuditLog.target_id == target_id)

    # date range on occurred_at, upper bound exclusive
    from_d = parse_iso_date(from_)
    to_d = parse_iso_date(to)
    if from_d:
        qset = qset.filter(AuditLog.occurred_at >= from_d)
    if to_d:
        qset = qset.filter(AuditLog.occurred_at < to_d + timedelta(days=1))

    total = qset.count()
    items = (
        qset.order_by(AuditLog.occurred_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "total": total,
        "page": page,
        "size": page_size,
        "items": [{**it.to_dict(), "verified": verify_audit(it)} for it in items],
    }
