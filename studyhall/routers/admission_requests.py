# studyhall/routers/admission_requests.py
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from studyhall.db.session import get_db
from studyhall.models import User
from studyhall.routers.auth import get_scope, require_staff
from studyhall.schemas.admission import RejectIn
from studyhall.services import admissions as admissions_svc
from studyhall.services.admissions import request_to_dict, student_to_dict
from studyhall.utils.tenant import TenantScope

router = APIRouter(prefix="/admission-requests", tags=["Admission requests"])


@router.get("")
@router.get("/")
def list_admission_requests(
    status: Optional[str] = Query(None, description="pending / approved / rejected / all"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    return admissions_svc.list_requests(db, scope, status=status, page=page, limit=limit)


@router.get("/stats/summary")
def admission_stats(
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    return admissions_svc.stats_summary(db, scope)


@router.get("/{request_id}")
def admission_request_detail(
    request_id: int,
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    return admissions_svc.request_detail(db, scope, request_id)


@router.post("/{request_id}/approve")
@router.post("/{request_id}/accept", include_in_schema=False)
def approve_admission_request(
    request_id: int,
    request: Request,
    me: User = Depends(require_staff),
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    student = admissions_svc.approve_request(db, scope, request_id, user=me, request=request)
    return {
        "message": "Admission request approved successfully",
        "student": student_to_dict(student),
    }


@router.post("/{request_id}/reject")
def reject_admission_request(
    request_id: int,
    request: Request,
    body: Optional[dict] = Body(None),
    me: User = Depends(require_staff),
    scope: TenantScope = Depends(get_scope),
    db: Session = Depends(get_db),
):
    data = RejectIn.model_validate(body or {})
    row = admissions_svc.reject_request(db, scope, request_id, reason=data.reason, user=me, request=request)
    return {
        "message": "Admission request rejected successfully",
        "request": request_to_dict(row),
    }
