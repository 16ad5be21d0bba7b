# studyhall/services/audit.py
from __future__ import annotations

import json
import hmac
import hashlib
from typing import Optional, Any, Dict

from fastapi import Request
from sqlalchemy.orm import Session

from studyhall.core.config import settings
from studyhall.models.audit import AuditLog


def _norm_json(val: Any) -> Dict[str, Any]:
    """
    prev_values/new_values -> dict for the JSON column.
    None -> {}, dict as is, JSON text parsed, anything else wrapped in {"_raw": ...}.
    """
    if val is None:
        return {}
    if isinstance(val, dict):
        return val
    if isinstance(val, str):
        try:
            parsed = json.loads(val)
            return parsed if isinstance(parsed, dict) else {"_raw": parsed}
        except ValueError:
            return {"_raw": val}
    return {"_raw": val}


def _build_hmac_hash(
    *,
    action: str,
    status: Optional[str],
    library_id: Optional[int],
    target_type: Optional[str],
    target_id: Optional[str],
    correlation_id: Optional[str],
    prev_values: Dict[str, Any],
    new_values: Dict[str, Any],
) -> str:
    """HMAC-SHA256 over the normalised audit payload."""
    payload = {
        "action": action or "",
        "status": status or "",
        "library_id": library_id,
        "target_type": target_type or "",
        "target_id": str(target_id or ""),
        "correlation_id": correlation_id or "",
        "prev_values": prev_values,
        "new_values": new_values,
    }
    raw = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
    return hmac.new(settings.AUDIT_HMAC_SECRET.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()


def _actor_from_session(request: Optional[Request]):
    if request is None or "session" not in request.scope:
        return "public", None, None
    sess = request.session
    if sess.get("uid"):
        return "staff", sess.get("uid"), sess.get("full_name") or sess.get("username")
    if sess.get("student_id"):
        return "student", sess.get("student_id"), sess.get("student_name")
    return "public", None, None


def write_audit(
    db: Session,
    *,
    action: str,
    library_id: Optional[int] = None,
    target_type: Optional[str] = None,
    target_id: Optional[Any] = None,
    status: str = "SUCCESS",
    prev_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """
    Add one audit row to the session. Does not commit: it rides on the
    caller's transaction (or the caller commits it on its own after a rollback).
    """
    actor_type, actor_id, actor_name = _actor_from_session(request)

    ip = request.client.host if (request and request.client) else None
    path = request.url.path if request else None
    cid = getattr(request.state, "correlation_id", None) if request else None

    prev_j = _norm_json(prev_values)
    new_j = _norm_json(new_values)

    h = _build_hmac_hash(
        action=action,
        status=status,
        library_id=library_id,
        target_type=target_type,
        target_id=target_id,
        correlation_id=cid,
        prev_values=prev_j,
        new_values=new_j,
    )

    row = AuditLog(
        library_id=library_id,
        action=action,
        status=status,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        prev_values=prev_j,
        new_values=new_j,
        actor_type=actor_type,
        actor_id=str(actor_id) if actor_id is not None else None,
        actor_name=str(actor_name) if actor_name is not None else None,
        ip_address=ip,
        path=path,
        correlation_id=cid,
        hmac_hash=h,
    )
    db.add(row)
    return row


def verify_audit(row: AuditLog) -> bool:
    """Recompute the signature of a stored row; False means it was edited."""
    expected = _build_hmac_hash(
        action=row.action,
        status=row.status,
        library_id=row.library_id,
        target_type=row.target_type,
        target_id=row.target_id,
        correlation_id=row.correlation_id,
        prev_values=row.prev_values or {},
        new_values=row.new_values or {},
    )
    return hmac.compare_digest(expected, row.hmac_hash or "")
