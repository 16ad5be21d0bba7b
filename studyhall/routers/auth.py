# studyhall/routers/auth.py
import time
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Form, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import or_
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from studyhall.core.config import settings
from studyhall.core.security import verify_password, try_rehash_on_success
from studyhall.db.session import get_db
from studyhall.models import Library, User
from studyhall.services.audit import write_audit
from studyhall.utils.datetime import utcnow
from studyhall.utils.tenant import TenantScope

log = logging.getLogger("auth")

router = APIRouter()

def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    sess = request.session
    now = int(time.time())
    last = int(sess.get("_last_seen") or 0)
    if last and (now - last) > settings.IDLE_TIMEOUT_SEC:
        sess.clear()
        return None
    sess["_last_seen"] = now

    uid = sess.get("uid")
    if not uid:
        return None
    return db.get(User, uid)

def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if not user:
        raise HTTPException(HTTP_401_UNAUTHORIZED, "Session expired, please log in again.")
    if not user.is_active:
        raise HTTPException(HTTP_403_FORBIDDEN, "User disabled")
    return user

def require_roles(*roles: str):
    def _dep(user: User = Depends(require_user)) -> User:
        if roles and user.role not in roles:
            raise HTTPException(HTTP_403_FORBIDDEN, "Access denied. Admin, staff, or owner privileges required.")
        return user
    return _dep

require_staff = require_roles("Owner", "Admin", "Staff")
require_admin = require_roles("Owner", "Admin")

def get_scope(user: User = Depends(require_staff)) -> TenantScope:
    """Tenant boundary for every staff route: the logged-in user's library."""
    return TenantScope(user.library_id)

@router.post("/login")
def login(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    user = (
        db.query(User)
        .filter(or_(User.username == username, User.email == username))
        .first()
    )
    if not user or not verify_password(password, user.password_hash):
        write_audit(
            db,
            action="LOGIN",
            library_id=getattr(user, "library_id", None),
            target_type="User",
            target_id=username,
            status="FAILURE",
            request=request,
        )
        db.commit()
        log.info("staff login failed for %r", username)
        raise HTTPException(HTTP_401_UNAUTHORIZED, "Invalid credentials")
    if not user.is_active:
        raise HTTPException(HTTP_403_FORBIDDEN, "User disabled")

    library = db.get(Library, user.library_id)
    if library is None or library.status != "active":
        raise HTTPException(HTTP_403_FORBIDDEN, "Library is currently inactive.")

    new_hash = try_rehash_on_success(password, user.password_hash)
    if new_hash:
        user.password_hash = new_hash

    user.last_login_at = utcnow()
    db.commit()

    request.session.clear()
    request.session["uid"] = user.id
    request.session["_last_seen"] = int(time.time())
    request.session["full_name"] = user.full_name or user.username
    request.session["username"] = user.username
    request.session["role"] = user.role
    request.session["library_id"] = user.library_id

    return {
        "ok": True,
        "user": {
            "id": user.id,
            "username": user.username,
            "full_name": user.full_name,
            "role": user.role,
            "library": {"id": library.id, "name": library.library_name, "code": library.library_code},
        },
    }

@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"ok": True}

@router.get("/me")
def me(user: User = Depends(require_user)):
    return {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "email": user.email,
        "role": user.role,
        "library_id": user.library_id,
        "is_active": user.is_active,
        "last_login_at": user.last_login_at,
    }
